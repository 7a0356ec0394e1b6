"""Exception hierarchy for the workflow core and platform adapters"""
from typing import Any, Dict, List, Optional


class WorkflowError(ValueError):
    """Base class for errors raised by workflow operations"""


class AssetNotFoundError(WorkflowError):
    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection[:-1].capitalize()} not found: {doc_id}")


class InvalidTransitionError(WorkflowError):
    """Operation is not allowed from the asset's current status"""

    def __init__(self, current_status: str, operation: str, allowed: Optional[List[str]] = None):
        self.current_status = current_status
        self.operation = operation
        self.allowed = allowed or []
        message = f"Cannot {operation} a video with status '{current_status}'"
        if self.allowed:
            message += f" (allowed from: {', '.join(self.allowed)})"
        super().__init__(message)


class ValidationError(WorkflowError):
    """A single field or argument failed validation"""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message}


class EligibilityError(ValidationError):
    """Platform cannot be enabled for this asset's geometry or duration"""

    def __init__(self, result):
        self.result = result
        reasons = "; ".join(f["message"] for f in result.failures())
        super().__init__("platforms", f"{result.platform} is not eligible for this video: {reasons}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "eligibility": self.result.to_dict(),
        }


class ApprovalBlockedError(WorkflowError):
    """Readiness guards failed; carries the per-platform report"""

    def __init__(self, report):
        self.report = report
        super().__init__("Video is not ready for approval")

    def to_dict(self) -> Dict[str, Any]:
        return {"message": str(self), "readiness": self.report.to_dict()}


class DistributionError(WorkflowError):
    """A remote publish failed mid-sequence

    ``completed`` lists the entries that were published (and persisted with
    their external ids) before the failure.
    """

    def __init__(self, platform: str, account_id: str, reason: str, message: str,
                 completed: Optional[List[Dict[str, Any]]] = None):
        self.platform = platform
        self.account_id = account_id
        self.reason = reason
        self.completed = completed or []
        super().__init__(f"Distribution to {platform} ({account_id}) failed: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": str(self),
            "platform": self.platform,
            "account_id": self.account_id,
            "reason": self.reason,
            "completed": self.completed,
        }


class AssetBusyError(WorkflowError):
    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"Video {asset_id} is being modified by another operation")


class PlatformErrorReason:
    AUTH_EXPIRED = "auth_expired"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNSUPPORTED = "unsupported"
    OTHER = "other"


class PlatformError(Exception):
    """Raised by platform adapters with a machine-readable reason"""

    def __init__(self, platform: str, reason: str, message: str, status_code: Optional[int] = None):
        self.platform = platform
        self.reason = reason
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{platform}] {reason}: {message}")

    @property
    def auth_expired(self) -> bool:
        return self.reason == PlatformErrorReason.AUTH_EXPIRED

    @property
    def not_found(self) -> bool:
        return self.reason == PlatformErrorReason.NOT_FOUND
