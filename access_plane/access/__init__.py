from access_plane.access.entitlements import EntitlementService
from access_plane.access.guard import GuardEvaluator
from access_plane.access.otc import OtcService

__all__ = [
    "EntitlementService",
    "GuardEvaluator",
    "OtcService",
]
