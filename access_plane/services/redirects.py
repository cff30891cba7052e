from __future__ import annotations

from urllib.parse import quote, urlsplit

LOGIN_PATH = "/login"
ADMIN_LOGIN_PATH = "/admin/login"
ADMIN_SETUP_PATH = "/admin/setup"
HOME_PATH = "/"


def sanitize_redirect_path(raw_path: str | None) -> str:
    """Return ``raw_path`` if it is a same-origin relative path, otherwise ``/``.

    Protocol-relative (``//host``), backslash-smuggled (``/\\host``) and
    scheme-carrying targets are all rejected so the value can never leave
    the current origin when used as a redirect.
    """
    if not raw_path:
        return HOME_PATH
    candidate = raw_path.strip()
    if not candidate.startswith("/") or candidate.startswith("//"):
        return HOME_PATH
    if "\\" in candidate:
        return HOME_PATH
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in candidate):
        return HOME_PATH
    try:
        parsed = urlsplit(candidate)
    except ValueError:
        return HOME_PATH
    if parsed.scheme or parsed.netloc:
        return HOME_PATH
    return candidate


def with_redirect_param(target: str, original_path: str | None) -> str:
    safe_path = sanitize_redirect_path(original_path)
    separator = "&" if "?" in target else "?"
    return f"{target}{separator}redirect={quote(safe_path, safe='')}"


def login_redirect(original_path: str | None) -> str:
    return with_redirect_param(LOGIN_PATH, original_path)


def admin_login_redirect(original_path: str | None) -> str:
    return with_redirect_param(ADMIN_LOGIN_PATH, original_path)


def enrollment_redirect(app_id: str, original_path: str | None) -> str:
    return with_redirect_param(f"/enroll?app={quote(app_id, safe='')}", original_path)
