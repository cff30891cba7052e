from access_plane.db.models.entitlements import Entitlement
from access_plane.db.models.one_time_codes import OneTimeCode

__all__ = [
    "Entitlement",
    "OneTimeCode",
]
