from access_plane.access.otc.service import OtcService

__all__ = ["OtcService"]
