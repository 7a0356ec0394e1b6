"""API route tests"""
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from clipdesk.api.deps import get_content_generator, get_ingest_service, get_workflow
from clipdesk.core.config import settings
from clipdesk.db.store import get_store
from clipdesk.main import app
from clipdesk.services.video.registry import get_platform_adapters

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def generator():
    content_generator = Mock()
    content_generator.generate = AsyncMock(return_value={"caption": "Fresh drop"})
    return content_generator


@pytest.fixture
def ingest():
    service = Mock()
    service.ingest_video = AsyncMock(side_effect=lambda user_id, path, filename, **kwargs: {
        "id": "new-video", "user_id": user_id, "title": filename, "status": "ready", **kwargs
    })
    service.transcribe_video = AsyncMock(return_value="hello world")
    return service


@pytest.fixture
def client(store, workflow, adapters, generator, ingest):
    """TestClient wired to the test store, fake adapters and mocked media services"""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_workflow] = lambda: workflow
    app.dependency_overrides[get_platform_adapters] = lambda: adapters
    app.dependency_overrides[get_content_generator] = lambda: generator
    app.dependency_overrides[get_ingest_service] = lambda: ingest
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.mark.critical
class TestAuthentication:
    def test_routes_require_caller_identity(self, client):
        assert client.get("/api/projects").status_code == status.HTTP_401_UNAUTHORIZED
        assert client.get("/api/videos").status_code == status.HTTP_401_UNAUTHORIZED
        assert client.get("/api/analytics/overview").status_code == status.HTTP_401_UNAUTHORIZED

    def test_other_users_video_is_not_found(self, client, video_factory):
        video = video_factory()
        response = client.get(f"/api/videos/{video['id']}", headers={"X-User-Id": "user-2"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


@pytest.mark.high
class TestProjectRoutes:
    def test_create_update_and_list(self, client):
        response = client.post("/api/projects", json={"name": "Launch", "client_name": "Acme"}, headers=HEADERS)
        assert response.status_code == status.HTTP_201_CREATED
        project = response.json()
        assert project["resolved"] is False

        response = client.patch(f"/api/projects/{project['id']}", json={"agency_name": "Studio"}, headers=HEADERS)
        assert response.json()["agency_name"] == "Studio"
        assert response.json()["name"] == "Launch"

        projects = client.get("/api/projects", headers=HEADERS).json()["projects"]
        assert [p["id"] for p in projects] == [project["id"]]

    def test_empty_update_rejected(self, client, project):
        response = client.patch(f"/api/projects/{project['id']}", json={}, headers=HEADERS)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_recompute_stats(self, client, project, video_factory):
        video_factory(project_id=project["id"], status="published")
        response = client.post(f"/api/projects/{project['id']}/recompute-stats", headers=HEADERS)
        body = response.json()
        assert body["stats"]["scheduled_or_published"] == 1
        assert body["resolved"] is True

    def test_project_videos_filtered_by_status(self, client, project, video_factory):
        pending = video_factory(project_id=project["id"])
        video_factory(project_id=project["id"], status="dismissed")
        response = client.get(f"/api/projects/{project['id']}/videos?status=pending", headers=HEADERS)
        assert [v["id"] for v in response.json()["videos"]] == [pending["id"]]


@pytest.mark.critical
class TestApprovalAndDistribution:
    def test_full_flow(self, client, store, video_factory, integration_factory, adapters):
        video = video_factory()
        account = integration_factory("youtube")
        base = f"/api/videos/{video['id']}"

        assert client.put(f"{base}/platforms/youtube", json={"enabled": True}, headers=HEADERS).status_code == 200
        response = client.post(f"{base}/accounts", json={"platform": "youtube", "account_id": account["id"]},
                               headers=HEADERS)
        assert len(response.json()["distribution_config"]) == 1

        response = client.post(f"{base}/approve", headers=HEADERS)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["readiness"]["platforms"]["youtube"]["missing_fields"] == ["title", "description"]

        response = client.post(f"{base}/approve", json={"content": {"youtube": {"title": "T", "description": "D"}}},
                               headers=HEADERS)
        assert response.status_code == status.HTTP_200_OK
        approved = response.json()
        assert approved["status"] == "approved"
        assert approved["distribution_config"][0]["metadata"]["title"] == "T"

        response = client.post(f"{base}/distribute", json={"configs": approved["distribution_config"]}, headers=HEADERS)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "published"
        assert response.json()["distribution_config"][0]["external_id"] == "youtube-remote-1"
        adapters["youtube"].publish.assert_awaited_once()

    def test_distribute_requires_approval(self, client, video_factory):
        video = video_factory()
        target = {"platform": "tiktok", "account_id": "acct", "post_type": "reel", "metadata": {}}
        response = client.post(f"/api/videos/{video['id']}/distribute", json={"configs": [target]}, headers=HEADERS)
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_distribute_requires_targets(self, client, video_factory):
        video = video_factory(status="approved")
        response = client.post(f"/api/videos/{video['id']}/distribute", json={"configs": []}, headers=HEADERS)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_ineligible_platform_rejected(self, client, video_factory):
        video = video_factory(width=1920, height=1080, duration_seconds=600.0, format="horizontal")
        response = client.put(f"/api/videos/{video['id']}/platforms/instagram", json={"enabled": True},
                              headers=HEADERS)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_eligibility_report(self, client, video_factory):
        video = video_factory()
        body = client.get(f"/api/videos/{video['id']}/eligibility", headers=HEADERS).json()
        assert body["duration"] == 45.0
        assert set(body["platforms"]) == {"youtube", "instagram", "tiktok"}

    def test_delete_releases_cached_upload(self, client, store, video_factory, ingest):
        video = video_factory()
        response = client.delete(f"/api/videos/{video['id']}", headers=HEADERS)
        assert response.json() == {"ok": True}
        assert store.get("videos", video["id"]) is None
        ingest.discard_local_copy.assert_called_once_with(video["id"])

    def test_unknown_account_rejected(self, client, video_factory):
        video = video_factory(platforms=["youtube"])
        response = client.post(f"/api/videos/{video['id']}/accounts",
                               json={"platform": "youtube", "account_id": "missing"}, headers=HEADERS)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["field"] == "account_id"

    def test_dismiss_and_restore(self, client, video_factory):
        video = video_factory()
        assert client.post(f"/api/videos/{video['id']}/dismiss", headers=HEADERS).json()["status"] == "dismissed"
        assert client.post(f"/api/videos/{video['id']}/restore", headers=HEADERS).json()["status"] == "pending"

    def test_busy_video_conflicts(self, client, mock_redis, video_factory):
        video = video_factory()
        mock_redis.set(f"lock:video:{video['id']}", "other")
        response = client.post(f"/api/videos/{video['id']}/dismiss", headers=HEADERS)
        assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.high
class TestContentRoutes:
    def test_content_edit_rejects_unknown_fields(self, client, video_factory):
        video = video_factory()
        response = client.put(f"/api/videos/{video['id']}/content/tiktok", json={"headline": "x"}, headers=HEADERS)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_generate_caption(self, client, store, video_factory, generator):
        video = video_factory(transcription="we launched")
        response = client.post(f"/api/videos/{video['id']}/generate/tiktok", headers=HEADERS)
        assert response.json()["content"]["caption"] == "Fresh drop"
        assert store.get("videos", video["id"])["tiktok_metadata"]["caption"] == "Fresh drop"

    def test_generate_without_transcript(self, client, video_factory):
        video = video_factory(transcription="")
        response = client.post(f"/api/videos/{video['id']}/generate/tiktok", headers=HEADERS)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_transcribe(self, client, video_factory, ingest):
        video = video_factory(status="ready")
        response = client.post(f"/api/videos/{video['id']}/transcribe", headers=HEADERS)
        assert response.json()["transcription"] == "hello world"
        ingest.transcribe_video.assert_awaited_once_with(video["id"], raise_errors=True)


@pytest.mark.high
class TestUpload:
    def test_upload_runs_ingestion(self, client, ingest, project, tmp_path):
        with patch.object(settings, "UPLOAD_DIR", tmp_path):
            response = client.post(
                "/api/videos",
                files={"file": ("clip.mp4", b"video-bytes", "video/mp4")},
                data={"project_id": project["id"]},
                headers=HEADERS,
            )
        assert response.status_code == status.HTTP_201_CREATED
        user_id, path, filename = ingest.ingest_video.await_args.args
        assert (user_id, filename) == ("user-1", "clip.mp4")
        assert path.read_bytes() == b"video-bytes"
        assert ingest.ingest_video.await_args.kwargs["project_id"] == project["id"]

    def test_oversized_upload_is_discarded(self, client, ingest, tmp_path):
        with patch.object(settings, "UPLOAD_DIR", tmp_path), patch.object(settings, "MAX_FILE_SIZE", 4):
            response = client.post("/api/videos", files={"file": ("clip.mp4", b"too-large", "video/mp4")},
                                   headers=HEADERS)
        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert list(tmp_path.iterdir()) == []
        ingest.ingest_video.assert_not_called()

    def test_unknown_project_rejected(self, client, ingest):
        response = client.post("/api/videos", files={"file": ("clip.mp4", b"x", "video/mp4")},
                               data={"project_id": "missing"}, headers=HEADERS)
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.high
class TestIntegrationRoutes:
    def test_connect_hides_tokens(self, client):
        response = client.post("/api/integrations", json={
            "platform": "instagram", "name": "Brand IG", "access_token": "secret", "external_account_id": "biz-1"
        }, headers=HEADERS)
        assert response.status_code == status.HTTP_201_CREATED
        assert "access_token" not in response.json()

    def test_refresh_and_overview(self, client, integration_factory):
        integration = integration_factory("tiktok")
        response = client.post(f"/api/integrations/{integration['id']}/refresh-stats", headers=HEADERS)
        assert response.json()["stats"]["followers"] == 10
        overview = client.get("/api/analytics/overview", headers=HEADERS).json()
        assert overview["platforms"]["tiktok"]["followers"] == 10
