from access_plane.access.entitlements.service import EntitlementService

__all__ = ["EntitlementService"]
