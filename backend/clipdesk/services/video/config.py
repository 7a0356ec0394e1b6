"""Platform rules - single source of truth for per-platform behaviour

Each supported platform has exactly one rules object here. Guards, config
management and eligibility look the platform up once via PLATFORM_RULES
instead of branching on the platform string.
"""
from typing import List, Optional, Tuple

from clipdesk.core.exceptions import ValidationError
from clipdesk.services.video.content import CaptionContent, YouTubeContent
from clipdesk.services.video import eligibility

YOUTUBE = "youtube"
INSTAGRAM = "instagram"
TIKTOK = "tiktok"


class PlatformRules:
    platform: str = ""
    display_name: str = ""
    legacy_field: str = ""
    content_model = CaptionContent
    post_types: Tuple[str, ...] = ("reel",)
    required_fields: Tuple[str, ...] = ("caption",)
    # Clamp applied to generated suggestions
    field_limits = {"caption": 2200}

    def required_metadata_fields(self) -> Tuple[str, ...]:
        return self.required_fields

    def missing_metadata(self, content) -> List[str]:
        return [
            field for field in self.required_fields
            if not str(getattr(content, field, "") or "").strip()
        ]

    def eligibility_check(self, ratio: Optional[float], duration: Optional[float]) -> eligibility.EligibilityResult:
        return eligibility.accept_any(self.platform, ratio, duration)

    def default_post_type(self, video_format: Optional[str] = None) -> str:
        return self.post_types[0]

    def derived_post_type(self, ratio: Optional[float], duration: Optional[float]) -> Optional[str]:
        """Sub-type forced by geometry/duration, or None when the choice is manual"""
        return None

    def validate_post_type(self, post_type: str) -> None:
        if post_type not in self.post_types:
            raise ValidationError(
                "post_type",
                f"'{post_type}' is not a valid {self.display_name} post type "
                f"(expected one of: {', '.join(self.post_types)})"
            )

    def empty_content(self):
        return self.content_model()


class YouTubeRules(PlatformRules):
    platform = YOUTUBE
    display_name = "YouTube"
    legacy_field = "youtube_metadata"
    content_model = YouTubeContent
    post_types = (eligibility.LONG_FORM, eligibility.SHORTS)
    required_fields = ("title", "description")
    field_limits = {"title": 100, "description": 5000}

    def default_post_type(self, video_format: Optional[str] = None) -> str:
        return eligibility.SHORTS if video_format == "vertical" else eligibility.LONG_FORM

    def derived_post_type(self, ratio, duration):
        return eligibility.derive_youtube_post_type(ratio, duration)


class InstagramRules(PlatformRules):
    platform = INSTAGRAM
    display_name = "Instagram"
    legacy_field = "instagram_metadata"
    post_types = ("reel", "story", "feed")

    def eligibility_check(self, ratio, duration):
        return eligibility.check_vertical_short_form(self.platform, ratio, duration)


class TikTokRules(PlatformRules):
    platform = TIKTOK
    display_name = "TikTok"
    legacy_field = "tiktok_metadata"
    post_types = ("reel",)


PLATFORM_RULES = {
    YOUTUBE: YouTubeRules(),
    INSTAGRAM: InstagramRules(),
    TIKTOK: TikTokRules(),
}

SUPPORTED_PLATFORMS = tuple(PLATFORM_RULES)


def get_platform_rules(platform: str) -> PlatformRules:
    rules = PLATFORM_RULES.get(platform)
    if rules is None:
        raise ValidationError(
            "platform",
            f"Unsupported platform '{platform}' (expected one of: {', '.join(SUPPORTED_PLATFORMS)})"
        )
    return rules


def check_eligibility(platform: str, ratio: Optional[float], duration: Optional[float]) -> eligibility.EligibilityResult:
    """Evaluate one platform's eligibility for the given geometry and duration"""
    return get_platform_rules(platform).eligibility_check(ratio, duration)


def default_post_types(video_format: Optional[str] = None, ratio: Optional[float] = None,
                       duration: Optional[float] = None) -> dict:
    """Initial sub-type per platform; geometry and duration win over the format class"""
    return {
        platform: rules.derived_post_type(ratio, duration) or rules.default_post_type(video_format)
        for platform, rules in PLATFORM_RULES.items()
    }
