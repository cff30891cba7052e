from __future__ import annotations

from access_plane.services import attempt_throttle
from access_plane.services.attempt_throttle import FailedAttemptThrottle


def test_throttle_limits_after_max_failures_within_window(monkeypatch) -> None:
    clock = {"now": 1000.0}
    monkeypatch.setattr(attempt_throttle, "monotonic", lambda: clock["now"])
    throttle = FailedAttemptThrottle(window_seconds=60, max_failures=3)

    for _ in range(3):
        assert throttle.is_limited("10.0.0.1") is False
        throttle.record_failure("10.0.0.1")

    assert throttle.is_limited("10.0.0.1") is True
    assert throttle.is_limited("10.0.0.2") is False

    clock["now"] += 61
    assert throttle.is_limited("10.0.0.1") is False


def test_throttle_clear_resets_single_client() -> None:
    throttle = FailedAttemptThrottle(window_seconds=60, max_failures=1)
    throttle.record_failure("10.0.0.1")
    throttle.record_failure(None)

    throttle.clear("10.0.0.1")

    assert throttle.is_limited("10.0.0.1") is False
    assert throttle.is_limited(None) is True
