from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from access_plane.access.guard.types import Allow, Decision, DenyRedirect, DenyShow, Requirement
from access_plane.api.routes import guard_support

router = APIRouter(tags=["guard"])

# Largest integer a browser client can count to exactly.
MAX_GUARD_SEQUENCE = 2**53 - 1


def _decision_payload(decision: Decision) -> dict[str, Any]:
    if isinstance(decision, Allow):
        return {
            "decision": "allow",
            "userId": decision.user.id if decision.user is not None else None,
        }
    if isinstance(decision, DenyRedirect):
        return {"decision": "deny_redirect", "redirectTo": decision.path}
    if isinstance(decision, DenyShow):
        return {
            "decision": "deny_show",
            "message": decision.message,
            "redirectAfterMs": int(decision.then_redirect_after.total_seconds() * 1000),
            "redirectTo": decision.then_redirect_to,
        }
    raise TypeError(f"unexpected guard decision: {decision!r}")


@router.get("/guard/check")
async def check_guard(
    request: Request,
    requirement: str = Query(min_length=1, max_length=32),
    path: str = Query(default="/", max_length=2048),
    app_id: str | None = Query(default=None, alias="appId", max_length=64),
    page_key: str | None = Query(default=None, alias="pageKey", min_length=1, max_length=256),
    sequence: int | None = Query(default=None, ge=1, le=MAX_GUARD_SEQUENCE),
) -> dict[str, Any]:
    """Evaluate one guard requirement for the caller.

    ``pageKey`` and ``sequence`` are echoed back untouched. The page that
    issued the check compares them with its own latest token and discards
    superseded answers; no ordering state is shared between callers.
    """
    try:
        guard_requirement = Requirement(kind=requirement, app_id=app_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_INVALID_REQUIREMENT"}) from exc

    decision = await guard_support.build_guard_evaluator().evaluate(
        guard_requirement,
        guard_support.guard_context_from_request(request, path=path),
    )
    payload = _decision_payload(decision)
    if page_key is not None:
        payload["pageKey"] = page_key
    if sequence is not None:
        payload["sequence"] = sequence
    return payload
