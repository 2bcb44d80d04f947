"""Security gate: who may run which tool, and who is pretending to be whom.

Components:

- **Tool permissions** (:class:`ToolPermissionChecker`) - privilege tiers per tool and user role
- **Impersonation detection** (:class:`ImpersonationDetector`) - injection patterns,
  role claims and look-alike names
"""

from .impersonation import DetectionResult, ImpersonationDetector, quick_injection_check
from .permissions import PermissionLevel, ToolAccess, ToolPermission, ToolPermissionChecker

__all__ = [
    "DetectionResult",
    "ImpersonationDetector",
    "PermissionLevel",
    "ToolAccess",
    "ToolPermission",
    "ToolPermissionChecker",
    "quick_injection_check",
]
