"""Eligibility rules over video geometry and duration

Pure functions only. Unknown dimensions or duration (extraction still
pending) always evaluate as passing.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

# Short-form vertical feed (Instagram)
VERTICAL_MIN_RATIO = 0.50
VERTICAL_MAX_RATIO = 0.85
VERTICAL_MIN_DURATION = 3
VERTICAL_MAX_DURATION = 3600

# YouTube geometry classes
SQUARE_MIN_RATIO = 0.9
SQUARE_MAX_RATIO = 1.1
SHORTS_MAX_DURATION = 60

# Upload-time aspect ratio classes
HORIZONTAL_FORMAT_MIN_RATIO = 1.2
VERTICAL_FORMAT_MAX_RATIO = 0.8

SHORTS = "shorts"
LONG_FORM = "video"


@dataclass
class EligibilityResult:
    """Per-rule outcome; ratio and duration are reported separately"""
    platform: str
    ratio_ok: bool = True
    duration_ok: bool = True
    ratio: Optional[float] = None
    duration: Optional[float] = None

    @property
    def eligible(self) -> bool:
        return self.ratio_ok and self.duration_ok

    def failures(self) -> List[Dict[str, str]]:
        failures = []
        if not self.ratio_ok:
            failures.append({
                "rule": "ratio",
                "message": (
                    f"aspect ratio {self.ratio:.2f} is outside "
                    f"{VERTICAL_MIN_RATIO:.2f}-{VERTICAL_MAX_RATIO:.2f}"
                ),
            })
        if not self.duration_ok:
            failures.append({
                "rule": "duration",
                "message": (
                    f"duration {self.duration:g}s is outside "
                    f"{VERTICAL_MIN_DURATION}-{VERTICAL_MAX_DURATION}s"
                ),
            })
        return failures

    def to_dict(self) -> Dict:
        return {
            "platform": self.platform,
            "eligible": self.eligible,
            "ratio_ok": self.ratio_ok,
            "duration_ok": self.duration_ok,
            "failures": self.failures(),
        }


def aspect_ratio(width: Optional[int], height: Optional[int]) -> Optional[float]:
    """width / height, or None while either is unknown"""
    if not width or not height:
        return None
    return width / height


def detect_format(width: Optional[int], height: Optional[int]) -> Optional[str]:
    """Aspect-ratio class recorded on the asset at ingestion"""
    ratio = aspect_ratio(width, height)
    if ratio is None:
        return None
    if ratio > HORIZONTAL_FORMAT_MIN_RATIO:
        return "horizontal"
    if ratio < VERTICAL_FORMAT_MAX_RATIO:
        return "vertical"
    return "square"


def classify_geometry(ratio: float) -> str:
    if SQUARE_MIN_RATIO <= ratio <= SQUARE_MAX_RATIO:
        return "square"
    if ratio < SQUARE_MIN_RATIO:
        return "vertical"
    return "horizontal"


def derive_youtube_post_type(ratio: Optional[float], duration: Optional[float]) -> Optional[str]:
    """Square or vertical clips under a minute are Shorts; None while unknown"""
    if not ratio or not duration:
        return None
    geometry = classify_geometry(ratio)
    if geometry in ("square", "vertical") and duration < SHORTS_MAX_DURATION:
        return SHORTS
    return LONG_FORM


def check_vertical_short_form(platform: str, ratio: Optional[float],
                              duration: Optional[float]) -> EligibilityResult:
    ratio_ok = True if not ratio else VERTICAL_MIN_RATIO <= ratio <= VERTICAL_MAX_RATIO
    duration_ok = True if not duration else VERTICAL_MIN_DURATION <= duration <= VERTICAL_MAX_DURATION
    return EligibilityResult(
        platform=platform,
        ratio_ok=ratio_ok,
        duration_ok=duration_ok,
        ratio=ratio,
        duration=duration,
    )


def accept_any(platform: str, ratio: Optional[float], duration: Optional[float]) -> EligibilityResult:
    return EligibilityResult(platform=platform, ratio=ratio, duration=duration)
