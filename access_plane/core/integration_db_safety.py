from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

LOCAL_TEST_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "postgres", "access_plane_postgres"})

INTEGRATION_TABLES = ("one_time_codes", "entitlements")


def integration_db_refusal_reason(database_url: str) -> str | None:
    """Why ``database_url`` must not be wiped by integration tests, or None if it may be."""
    try:
        url = make_url(database_url)
    except ArgumentError:
        return "database URL could not be parsed"

    if url.get_backend_name() != "postgresql":
        return f"backend '{url.get_backend_name()}' is not PostgreSQL"

    database = (url.database or "").strip()
    if "test" not in database.lower():
        return f"database '{database}' is not named as a test database"

    host = (url.host or "").strip().lower()
    if host not in LOCAL_TEST_HOSTS:
        return f"host '{host}' is not a local test host"
    return None


def assert_safe_integration_db(database_url: str) -> None:
    reason = integration_db_refusal_reason(database_url)
    if reason is not None:
        raise RuntimeError(
            f"Refusing to TRUNCATE {', '.join(INTEGRATION_TABLES)}: {reason}. "
            "Point DATABASE_URL at a local database such as 'access_plane_test'."
        )


def truncate_statement() -> str:
    return f"TRUNCATE TABLE {', '.join(INTEGRATION_TABLES)} RESTART IDENTITY CASCADE"
