from access_plane.db.repo.entitlements_repo import EntitlementsRepo
from access_plane.db.repo.one_time_codes_repo import OneTimeCodesRepo

__all__ = [
    "EntitlementsRepo",
    "OneTimeCodesRepo",
]
