from __future__ import annotations

from fastapi.testclient import TestClient

from access_plane.access.guard.types import Allow, DenyRedirect, DenyShow, GuardContext, Requirement
from access_plane.api.routes import guard as guard_routes
from access_plane.api.routes import guard_support
from access_plane.main import app
from access_plane.services.identity_client import IdentityUser


class _RecordingEvaluator:
    def __init__(self, decision) -> None:
        self.decision = decision
        self.calls: list[tuple[Requirement, GuardContext]] = []

    async def evaluate(self, requirement: Requirement, context: GuardContext):
        self.calls.append((requirement, context))
        return self.decision


def _install(monkeypatch, decision) -> _RecordingEvaluator:
    evaluator = _RecordingEvaluator(decision)
    monkeypatch.setattr(guard_support, "build_guard_evaluator", lambda: evaluator)
    return evaluator


def test_guard_check_allow_returns_user(monkeypatch) -> None:
    evaluator = _install(monkeypatch, Allow(user=IdentityUser(id="42", email=None)))

    client = TestClient(app)
    response = client.get(
        "/guard/check",
        params={"requirement": "entitlement", "appId": "learn-pr", "path": "/learn-pr/lesson/1"},
        headers={"Cookie": "session=abc"},
    )

    assert response.status_code == 200
    assert response.json() == {"decision": "allow", "userId": "42"}
    requirement, context = evaluator.calls[0]
    assert requirement == Requirement(kind="entitlement", app_id="learn-pr")
    assert context.path == "/learn-pr/lesson/1"
    assert context.credentials.cookies == {"session": "abc"}


def test_guard_check_serializes_redirect_and_notice(monkeypatch) -> None:
    _install(monkeypatch, DenyRedirect(path="/login?redirect=%2Fadmin"))
    client = TestClient(app)
    redirect = client.get("/guard/check", params={"requirement": "admin", "path": "/admin"})

    _install(monkeypatch, DenyShow(message="Access Denied"))
    notice = client.get("/guard/check", params={"requirement": "admin", "path": "/admin"})

    assert redirect.json() == {"decision": "deny_redirect", "redirectTo": "/login?redirect=%2Fadmin"}
    assert notice.json() == {
        "decision": "deny_show",
        "message": "Access Denied",
        "redirectAfterMs": 2000,
        "redirectTo": "/",
    }


def test_guard_check_rejects_unknown_requirement(monkeypatch) -> None:
    _install(monkeypatch, Allow())

    client = TestClient(app)
    unknown = client.get("/guard/check", params={"requirement": "anything"})
    missing_app = client.get("/guard/check", params={"requirement": "entitlement"})

    assert unknown.status_code == 422
    assert unknown.json() == {"detail": {"code": "E_INVALID_REQUIREMENT"}}
    assert missing_app.status_code == 422


def test_guard_check_echoes_page_sequence(monkeypatch) -> None:
    _install(monkeypatch, Allow())

    client = TestClient(app)
    response = client.get(
        "/guard/check",
        params={"requirement": "session", "pageKey": "tab-1:/course", "sequence": 4},
    )

    assert response.json() == {
        "decision": "allow",
        "userId": None,
        "pageKey": "tab-1:/course",
        "sequence": 4,
    }


def test_guard_check_sequences_do_not_leak_between_visitors(monkeypatch) -> None:
    evaluator = _install(monkeypatch, DenyRedirect(path="/login?redirect=%2Flearn-ai"))

    client = TestClient(app)
    alice = client.get(
        "/guard/check",
        params={"requirement": "session", "path": "/learn-ai", "pageKey": "/learn-ai", "sequence": 7},
        headers={"Cookie": "session=alice"},
    )
    bob = client.get(
        "/guard/check",
        params={"requirement": "session", "path": "/learn-ai", "pageKey": "/learn-ai", "sequence": 1},
        headers={"Cookie": "session=bob"},
    )

    assert alice.json()["decision"] == "deny_redirect"
    assert bob.json() == {
        "decision": "deny_redirect",
        "redirectTo": "/login?redirect=%2Flearn-ai",
        "pageKey": "/learn-ai",
        "sequence": 1,
    }
    assert [context.credentials.cookies for _, context in evaluator.calls] == [
        {"session": "alice"},
        {"session": "bob"},
    ]


def test_guard_check_rejects_out_of_range_sequence(monkeypatch) -> None:
    evaluator = _install(monkeypatch, Allow())

    client = TestClient(app)
    params = {"requirement": "session", "pageKey": "/learn-ai"}
    too_large = client.get("/guard/check", params={**params, "sequence": guard_routes.MAX_GUARD_SEQUENCE + 1})
    zero = client.get("/guard/check", params={**params, "sequence": 0})

    assert too_large.status_code == 422
    assert zero.status_code == 422
    assert evaluator.calls == []
