"""Eligibility rules and per-platform rule lookup"""
import pytest

from clipdesk.core.exceptions import ValidationError
from clipdesk.services.video.config import check_eligibility, default_post_types, get_platform_rules
from clipdesk.services.video.eligibility import (
    aspect_ratio, check_vertical_short_form, derive_youtube_post_type, detect_format
)


@pytest.mark.critical
class TestVerticalShortForm:
    """Instagram ratio/duration windows"""

    @pytest.mark.parametrize("ratio, expected", [
        (0.49, False),
        (0.50, True),
        (0.85, True),
        (0.86, False),
    ])
    def test_ratio_bounds_are_inclusive(self, ratio, expected):
        result = check_eligibility("instagram", ratio, 10)
        assert result.eligible is expected
        assert result.ratio_ok is expected
        assert result.duration_ok is True

    @pytest.mark.parametrize("duration, expected", [
        (2, False),
        (3, True),
        (3600, True),
        (3601, False),
    ])
    def test_duration_bounds_are_inclusive(self, duration, expected):
        result = check_eligibility("instagram", 0.6, duration)
        assert result.eligible is expected
        assert result.duration_ok is expected
        assert result.ratio_ok is True

    def test_failures_are_reported_per_rule(self):
        result = check_vertical_short_form("instagram", 1.78, 7200)
        rules = [f["rule"] for f in result.failures()]
        assert rules == ["ratio", "duration"]
        assert result.to_dict()["eligible"] is False

    def test_unknown_values_pass(self):
        assert check_vertical_short_form("instagram", None, None).eligible
        assert check_vertical_short_form("instagram", 0, 0).eligible


@pytest.mark.high
class TestOtherPlatforms:
    def test_youtube_and_tiktok_accept_any_geometry(self):
        assert check_eligibility("youtube", 1.78, 7200).eligible
        assert check_eligibility("tiktok", 1.78, 7200).eligible

    def test_unknown_platform_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            check_eligibility("myspace", 0.6, 10)
        assert exc_info.value.field == "platform"


@pytest.mark.critical
class TestYouTubePostTypeDerivation:
    def test_vertical_under_a_minute_is_shorts(self):
        assert derive_youtube_post_type(0.5, 45) == "shorts"

    def test_vertical_over_a_minute_is_long_form(self):
        assert derive_youtube_post_type(0.5, 90) == "video"

    def test_square_under_a_minute_is_shorts(self):
        assert derive_youtube_post_type(1.0, 30) == "shorts"

    def test_horizontal_is_always_long_form(self):
        assert derive_youtube_post_type(16 / 9, 20) == "video"

    def test_unknown_values_do_not_derive(self):
        assert derive_youtube_post_type(None, 45) is None
        assert derive_youtube_post_type(0.5, None) is None


@pytest.mark.high
class TestFormatDetection:
    @pytest.mark.parametrize("width, height, expected", [
        (1920, 1080, "horizontal"),
        (1080, 1920, "vertical"),
        (1080, 1080, "square"),
        (None, 1080, None),
    ])
    def test_detect_format(self, width, height, expected):
        assert detect_format(width, height) == expected

    def test_aspect_ratio_requires_both_dimensions(self):
        assert aspect_ratio(1080, 0) is None
        assert aspect_ratio(1080, 1920) == pytest.approx(0.5625)

    def test_default_post_types_follow_format(self):
        assert default_post_types("vertical") == {"youtube": "shorts", "instagram": "reel", "tiktok": "reel"}
        assert default_post_types("horizontal")["youtube"] == "video"

    @pytest.mark.parametrize("width,height,duration,expected", [
        (1080, 1920, 120.0, "video"),
        (1080, 1080, 20.0, "shorts"),
        (1920, 1080, 30.0, "video"),
    ])
    def test_default_youtube_type_is_derived_when_measured(self, width, height, duration, expected):
        types = default_post_types(detect_format(width, height), aspect_ratio(width, height), duration)
        assert types["youtube"] == expected
        assert types["instagram"] == "reel"

    def test_invalid_post_type_is_rejected(self):
        with pytest.raises(ValidationError):
            get_platform_rules("tiktok").validate_post_type("story")
