from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

import structlog

from access_plane.access.guard.evaluator import GuardEvaluator
from access_plane.access.guard.types import (
    Allow,
    Decision,
    DenyRedirect,
    DenyShow,
    GuardContext,
    Requirement,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_TRACKED_PAGES = 10_000


class EvaluationSequencer:
    """Monotonic sequence tokens per page key; only the newest token is current."""

    def __init__(self, *, max_tracked_pages: int = DEFAULT_MAX_TRACKED_PAGES) -> None:
        self._latest: OrderedDict[str, int] = OrderedDict()
        self._max_tracked_pages = max_tracked_pages

    def _remember(self, page_key: str, sequence: int) -> None:
        self._latest[page_key] = sequence
        self._latest.move_to_end(page_key)
        while len(self._latest) > self._max_tracked_pages:
            self._latest.popitem(last=False)

    def latest(self, page_key: str) -> int:
        return self._latest.get(page_key, 0)

    def begin(self, page_key: str) -> int:
        token = self.latest(page_key) + 1
        self._remember(page_key, token)
        return token

    def is_current(self, page_key: str, token: int) -> bool:
        return self.latest(page_key) == token


class Navigator(Protocol):
    async def redirect(self, path: str) -> None: ...

    async def show(self, message: str) -> None: ...


class PageGuard:
    """Runs guard evaluations for one page and acts only on the latest one."""

    def __init__(
        self,
        *,
        page_key: str,
        evaluator: GuardEvaluator,
        navigator: Navigator,
        sequencer: EvaluationSequencer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._page_key = page_key
        self._evaluator = evaluator
        self._navigator = navigator
        self._sequencer = sequencer or EvaluationSequencer()
        self._sleep = sleep

    async def check(self, requirement: Requirement, context: GuardContext) -> Decision | None:
        token = self._sequencer.begin(self._page_key)
        decision = await self._evaluator.evaluate(requirement, context)
        if not self._sequencer.is_current(self._page_key, token):
            logger.debug("guard_stale_decision_discarded", page_key=self._page_key, sequence=token)
            return None

        if isinstance(decision, DenyRedirect):
            await self._navigator.redirect(decision.path)
        elif isinstance(decision, DenyShow):
            await self._navigator.show(decision.message)
            await self._sleep(decision.then_redirect_after.total_seconds())
            if self._sequencer.is_current(self._page_key, token):
                await self._navigator.redirect(decision.then_redirect_to)
        elif not isinstance(decision, Allow):
            raise TypeError(f"unexpected guard decision: {decision!r}")
        return decision


@dataclass(frozen=True, slots=True)
class GateResult(Generic[T]):
    is_current: bool
    value: T | None = None


class LatestRequestGate(Generic[T]):
    """Last-request-wins wrapper for list and filter re-fetches."""

    def __init__(self) -> None:
        self._sequence = 0

    async def run(self, fetch: Callable[[], Awaitable[T]]) -> GateResult[T]:
        self._sequence += 1
        token = self._sequence
        value = await fetch()
        if token != self._sequence:
            return GateResult(is_current=False)
        return GateResult(is_current=True, value=value)
