"""Project aggregation and management"""
import pytest

from clipdesk.core.exceptions import AssetNotFoundError, ValidationError
from clipdesk.services.project_service import (
    client_label, compute_stats, create_project, get_project, is_project_resolved, recompute_project_stats,
    update_project
)


@pytest.mark.critical
class TestRecomputeStats:
    def test_status_mix_is_bucketed(self, store, project, video_factory):
        for status in ["dismissed", "approved", "scheduled", "pending", "published"]:
            video_factory(project_id=project["id"], status=status)

        stats = recompute_project_stats(store, project["id"])

        assert stats == {
            "total": 5,
            "pending_review": 1,
            "approved": 1,
            "scheduled_or_published": 2,
            "discarded": 1,
        }
        stored = store.get("projects", project["id"])
        assert stored["stats"] == stats
        assert stored["video_count"] == 5

    def test_unknown_statuses_await_review(self):
        stats = compute_stats([{"status": "transcribing"}, {"status": "error"}, {"status": None}])
        assert stats["pending_review"] == 3

    def test_other_projects_are_not_counted(self, store, project, video_factory):
        video_factory(project_id=project["id"])
        video_factory(project_id=None)
        assert recompute_project_stats(store, project["id"])["total"] == 1

    def test_missing_project_raises(self, store):
        with pytest.raises(AssetNotFoundError):
            recompute_project_stats(store, "missing")


@pytest.mark.high
class TestResolved:
    @pytest.mark.parametrize("stats, expected", [
        ({"total": 2, "pending_review": 0, "approved": 0, "scheduled_or_published": 1, "discarded": 1}, True),
        ({"total": 2, "pending_review": 1, "approved": 0, "scheduled_or_published": 1, "discarded": 0}, False),
        ({"total": 1, "pending_review": 0, "approved": 1, "scheduled_or_published": 0, "discarded": 0}, False),
        ({"total": 0, "pending_review": 0, "approved": 0, "scheduled_or_published": 0, "discarded": 0}, False),
        (None, False),
    ])
    def test_is_project_resolved(self, stats, expected):
        assert is_project_resolved(stats) is expected


@pytest.mark.high
class TestProjectManagement:
    def test_create_starts_with_zero_stats(self, store):
        project = create_project(store, "user-1", "  Autumn  ", client_name="Acme")
        assert project["name"] == "Autumn"
        assert project["stats"]["total"] == 0

    def test_blank_name_is_rejected(self, store):
        with pytest.raises(ValidationError):
            create_project(store, "user-1", "   ")

    def test_other_users_project_is_not_found(self, store, project):
        with pytest.raises(AssetNotFoundError):
            get_project(store, project["id"], "user-2")

    def test_update_only_editable_fields(self, store, project):
        updated = update_project(store, project["id"], "user-1", {"agency_name": "Studio"})
        assert updated["agency_name"] == "Studio"
        with pytest.raises(ValidationError):
            update_project(store, project["id"], "user-1", {"stats": {}})

    def test_client_label_prefers_client_name(self, store, project):
        assert client_label(store, project["id"]) == "Acme"
        assert client_label(store, None) == ""
