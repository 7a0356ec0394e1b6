"""Distribution configuration for a single video

The manager keeps one shared content object and one sub-type per platform,
plus a list of lightweight entries (platform, account, sub-type,
external id). The flat ``distribution_config`` array stored on the video is
always rewritten whole, materialized from that state.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from clipdesk.core.exceptions import AssetNotFoundError, EligibilityError, ValidationError
from clipdesk.db.store import DocumentStore
from clipdesk.services.video.config import PLATFORM_RULES, YOUTUBE, default_post_types, get_platform_rules
from clipdesk.services.video.eligibility import aspect_ratio, detect_format

logger = logging.getLogger("distribution")


@dataclass
class ConfigEntry:
    platform: str
    account_id: str
    post_type: str
    external_id: Optional[str] = None

    def key(self):
        return (self.platform, self.account_id)


def normalize_entry(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Flat entry with every optional key present (explicit None)"""
    platform = raw.get("platform")
    rules = get_platform_rules(platform)
    account_id = raw.get("account_id")
    if not account_id:
        raise ValidationError("account_id", f"Missing target account for {platform} entry")
    post_type = raw.get("post_type") or rules.default_post_type()
    rules.validate_post_type(post_type)
    content = rules.content_model.from_entry_metadata(raw.get("metadata") or {})
    return {
        "platform": platform,
        "account_id": account_id,
        "post_type": post_type,
        "metadata": content.entry_metadata(),
        "external_id": raw.get("external_id") or None,
    }


@dataclass
class PlatformReadiness:
    platform: str
    has_required_metadata: bool
    missing_fields: List[str]
    has_account: bool
    account_count: int

    @property
    def ready(self) -> bool:
        return self.has_required_metadata and self.has_account

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "ready": self.ready,
            "has_required_metadata": self.has_required_metadata,
            "missing_fields": self.missing_fields,
            "has_account": self.has_account,
            "account_count": self.account_count,
        }


@dataclass
class ReadinessReport:
    has_platforms: bool
    platforms: Dict[str, PlatformReadiness] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.has_platforms and all(p.ready for p in self.platforms.values())

    def failures(self) -> List[Dict[str, Any]]:
        failures = []
        if not self.has_platforms:
            failures.append({"platform": None, "rule": "no_platforms", "fields": []})
        for p in self.platforms.values():
            if not p.has_required_metadata:
                failures.append({"platform": p.platform, "rule": "missing_metadata", "fields": p.missing_fields})
            if not p.has_account:
                failures.append({"platform": p.platform, "rule": "no_account", "fields": []})
        return failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "has_platforms": self.has_platforms,
            "platforms": {name: p.to_dict() for name, p in self.platforms.items()},
            "failures": self.failures(),
        }


class DistributionConfigManager:
    """Owns the (platform, account, sub-type, metadata) targets of one video

    ``sync_metadata`` only updates the in-memory state; ``save_platform`` or
    ``save_all`` flushes it. Every other mutation persists immediately.
    """

    def __init__(self, store: DocumentStore, video: Dict[str, Any]):
        self.store = store
        self.video = video
        self.video_id = video["id"]
        self.platforms: List[str] = [p for p in (video.get("platforms") or []) if p in PLATFORM_RULES]
        self.post_types: Dict[str, str] = dict(video.get("post_types") or {})
        self.contents: Dict[str, Any] = {}
        self.entries: List[ConfigEntry] = []
        self._dirty = set()

        raw_entries = video.get("distribution_config") or []
        defaults = default_post_types(
            video.get("format"), aspect_ratio(video.get("width"), video.get("height")), video.get("duration_seconds")
        )
        for platform, rules in PLATFORM_RULES.items():
            self.post_types.setdefault(platform, defaults[platform])
            self.contents[platform] = self._load_content(rules, raw_entries)

        for raw in raw_entries:
            if raw.get("platform") not in PLATFORM_RULES:
                logger.warning(f"Dropping config entry for unknown platform {raw.get('platform')} on video {self.video_id}")
                continue
            self.entries.append(ConfigEntry(
                platform=raw["platform"],
                account_id=raw.get("account_id"),
                post_type=raw.get("post_type") or self.post_types[raw["platform"]],
                external_id=raw.get("external_id") or None,
            ))

    def _load_content(self, rules, raw_entries):
        stored = self.video.get(rules.legacy_field)
        if stored:
            return rules.content_model(**stored)
        # Older documents only carry metadata inside the entries
        for raw in raw_entries:
            if raw.get("platform") == rules.platform and raw.get("metadata"):
                return rules.content_model.from_entry_metadata(raw["metadata"])
        return rules.empty_content()

    @classmethod
    def load(cls, store: DocumentStore, video_id: str) -> "DistributionConfigManager":
        video = store.get("videos", video_id)
        if video is None:
            raise AssetNotFoundError("videos", video_id)
        return cls(store, video)

    # --- read side ---

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._dirty)

    def entries_for(self, platform: str) -> List[ConfigEntry]:
        return [e for e in self.entries if e.platform == platform]

    def content_for(self, platform: str):
        get_platform_rules(platform)
        return self.contents[platform]

    def materialize(self) -> List[Dict[str, Any]]:
        return [
            {
                "platform": e.platform,
                "account_id": e.account_id,
                "post_type": e.post_type,
                "metadata": self.contents[e.platform].entry_metadata(),
                "external_id": e.external_id,
            }
            for e in self.entries
        ]

    def eligibility(self, platform: str):
        rules = get_platform_rules(platform)
        ratio = aspect_ratio(self.video.get("width"), self.video.get("height"))
        return rules.eligibility_check(ratio, self.video.get("duration_seconds"))

    def readiness(self) -> ReadinessReport:
        report = ReadinessReport(has_platforms=bool(self.platforms))
        for platform in self.platforms:
            rules = PLATFORM_RULES[platform]
            missing = rules.missing_metadata(self.contents[platform])
            count = len(self.entries_for(platform))
            report.platforms[platform] = PlatformReadiness(
                platform=platform,
                has_required_metadata=not missing,
                missing_fields=missing,
                has_account=count > 0,
                account_count=count,
            )
        return report

    # --- persistence ---

    def _write(self, fields: Dict[str, Any]) -> None:
        self.store.update("videos", self.video_id, fields)
        self.video.update(fields)

    def _persist_config(self, **extra) -> List[Dict[str, Any]]:
        config = self.materialize()
        self._write({"distribution_config": config, **extra})
        return config

    def save_platform(self, platform: str) -> List[Dict[str, Any]]:
        """Flush one platform's buffered content: legacy field plus config array"""
        rules = get_platform_rules(platform)
        config = self._persist_config(**{rules.legacy_field: self.contents[platform].model_dump()})
        self._dirty.discard(platform)
        return config

    def save_all(self) -> List[Dict[str, Any]]:
        fields = {
            rules.legacy_field: self.contents[platform].model_dump()
            for platform, rules in PLATFORM_RULES.items()
        }
        config = self._persist_config(post_types=dict(self.post_types), **fields)
        self._dirty.clear()
        return config

    # --- mutations ---

    def toggle_platform(self, platform: str, enabled: bool) -> List[str]:
        """Enable or disable a platform; disabling purges its entries"""
        get_platform_rules(platform)
        if enabled:
            if platform in self.platforms:
                return list(self.platforms)
            result = self.eligibility(platform)
            if not result.eligible:
                raise EligibilityError(result)
            self.platforms.append(platform)
            self._write({"platforms": list(self.platforms)})
        else:
            if platform not in self.platforms and not self.entries_for(platform):
                return list(self.platforms)
            purged = self.entries_for(platform)
            self.platforms = [p for p in self.platforms if p != platform]
            self.entries = [e for e in self.entries if e.platform != platform]
            if purged:
                logger.info(f"Purged {len(purged)} {platform} target(s) from video {self.video_id}")
            self._persist_config(platforms=list(self.platforms))
        return list(self.platforms)

    def _check_account(self, platform: str, account_id: str) -> None:
        """The account must be one of the owner's integrations on that platform"""
        integration = self.store.get("integrations", account_id) if account_id else None
        if integration is None or integration.get("user_id") != self.video.get("user_id"):
            raise ValidationError("account_id", f"Unknown account {account_id}")
        if integration.get("platform") != platform:
            raise ValidationError(
                "account_id", f"Account {account_id} is a {integration.get('platform')} account, not {platform}"
            )

    def toggle_account(self, platform: str, account_id: str) -> List[Dict[str, Any]]:
        get_platform_rules(platform)
        if platform not in self.platforms:
            raise ValidationError("platform", f"Enable {platform} before selecting accounts for it")
        existing = next((e for e in self.entries if e.key() == (platform, account_id)), None)
        if existing is not None:
            self.entries.remove(existing)
        else:
            self._check_account(platform, account_id)
            self.entries.append(ConfigEntry(
                platform=platform,
                account_id=account_id,
                post_type=self.post_types[platform],
            ))
        return self._persist_config(platforms=list(self.platforms))

    def set_post_type(self, platform: str, post_type: str) -> List[Dict[str, Any]]:
        rules = get_platform_rules(platform)
        rules.validate_post_type(post_type)
        self._apply_post_type(platform, post_type)
        return self._persist_config(post_types=dict(self.post_types))

    def _apply_post_type(self, platform: str, post_type: str) -> None:
        self.post_types[platform] = post_type
        for entry in self.entries_for(platform):
            entry.post_type = post_type

    def sync_metadata(self, platform: str, fields: Dict[str, Any]):
        """Buffer an edit of the platform's shared content (not persisted)"""
        get_platform_rules(platform)
        try:
            self.contents[platform] = self.contents[platform].merged(fields)
        except KeyError as e:
            raise ValidationError(str(e.args[0]), f"Unknown {platform} metadata field")
        self._dirty.add(platform)
        return self.contents[platform]

    def apply_media_properties(self, width: Optional[int], height: Optional[int],
                               duration: Optional[float]) -> Optional[str]:
        """Store geometry/duration and re-derive the YouTube sub-type

        Returns the new YouTube sub-type when it changed, else None. A derived
        sub-type overrides a manual choice.
        """
        fields = {
            "width": width,
            "height": height,
            "duration_seconds": duration,
            "format": detect_format(width, height) or self.video.get("format"),
        }
        rules = PLATFORM_RULES[YOUTUBE]
        derived = rules.derived_post_type(aspect_ratio(width, height), duration)
        changed = None
        if derived and derived != self.post_types.get(YOUTUBE):
            logger.info(f"YouTube post type for video {self.video_id} switched to {derived}")
            self._apply_post_type(YOUTUBE, derived)
            changed = derived
        self._persist_config(post_types=dict(self.post_types), **fields)
        return changed

    def apply_generated_content(self, platform: str, suggestion: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Write a generator suggestion into the shared content and save it"""
        rules = get_platform_rules(platform)
        fields = {}
        for key, value in suggestion.items():
            limit = rules.field_limits.get(key)
            if isinstance(value, str) and limit:
                value = value[:limit]
            fields[key] = value
        self.sync_metadata(platform, fields)
        return self.save_platform(platform)
