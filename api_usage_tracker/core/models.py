"""
Canonical usage data models.

Every backend probe converges to the same UsageRecord shape.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


ERROR_NOT_CONFIGURED = "API Key or Endpoint not configured"
ERROR_UNDETECTED = "Unable to detect API type"


class BackendType(Enum):
    """Gateway schema that produced a usage reading."""
    NEW_API = "NewAPI"
    ONE_API = "OneAPI"
    OPENROUTER = "OpenRouter"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UsageRecord:
    """Normalized usage and quota figures, all in USD.

    A total of 0 means the limit is unlimited or unknown, in which case
    remaining is 0 as well. The error field is only set on the sentinel
    returned when no backend could be detected.
    """
    today_used: float
    month_used: float
    total_used: float
    total: float
    remaining: float
    backend_type: BackendType
    error: Optional[str] = None

    @classmethod
    def unknown(cls, error: str) -> "UsageRecord":
        """Build the all-zero sentinel for a failed detection."""
        return cls(
            today_used=0.0,
            month_used=0.0,
            total_used=0.0,
            total=0.0,
            remaining=0.0,
            backend_type=BackendType.UNKNOWN,
            error=error
        )

    @property
    def is_unlimited(self) -> bool:
        return self.total <= 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire shape consumed by display layers."""
        payload: Dict[str, Any] = {
            "todayUsed": self.today_used,
            "monthUsed": self.month_used,
            "totalUsed": self.total_used,
            "total": self.total,
            "remaining": self.remaining,
            "type": self.backend_type.value,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload
