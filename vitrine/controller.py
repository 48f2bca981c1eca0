"""Debounced search sessions driven by an asyncio event loop."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

from .logging import get_log_manager
from .logging.context import session_id_var
from .matching import MatchProvider, normalize_query, restrict_to_candidates
from .schema import CatalogItem

LOGGER = logging.getLogger(__name__)

# Long enough that typing at a normal cadence settles into a single remote call.
DEFAULT_DEBOUNCE_SECONDS = 0.6

Listener = Callable[["SearchState"], None]


class SearchPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    MATCHING = "matching"


@dataclass(frozen=True)
class SearchState:
    """Immutable snapshot of a search session."""

    raw_query: str = ""
    debounced_query: str = ""
    candidate_ids: Tuple[str, ...] = ()
    result_ids: Tuple[str, ...] = ()
    is_pending: bool = False
    phase: SearchPhase = SearchPhase.IDLE
    cycle: int = 0

    @property
    def candidate_id_set(self) -> FrozenSet[str]:
        return frozenset(self.candidate_ids)


@dataclass
class _Cycle:
    number: int
    query: str
    candidates: Tuple[CatalogItem, ...]
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)


class SearchController:
    """Turn a keystroke stream into settled, debounced match calls.

    Every keystroke or candidate-set change starts a new debounce cycle with a
    larger cycle number. When the timer fires, the provider is called once
    with the settled query and the candidate set of that cycle; its result is
    committed only if no newer cycle has started in the meantime.

    The controller must be driven from a running event loop.
    """

    def __init__(
        self,
        provider: MatchProvider,
        candidates: Sequence[CatalogItem] = (),
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        cancel_superseded: bool = False,
    ) -> None:
        if debounce_seconds <= 0:
            raise ValueError("debounce_seconds must be positive")
        self._provider = provider
        self._debounce = debounce_seconds
        self._cancel_superseded = cancel_superseded
        self._candidates: Tuple[CatalogItem, ...] = tuple(candidates)
        ids = tuple(item.id for item in self._candidates)
        self._state = SearchState(candidate_ids=ids, result_ids=ids)
        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: Optional[_Cycle] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._listeners: List[Listener] = []
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self.session_id = uuid.uuid4().hex

    # ------------------------------------------------------------------
    # Presentation-facing API
    # ------------------------------------------------------------------

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def result_ids(self) -> Tuple[str, ...]:
        return self._state.result_ids

    @property
    def is_pending(self) -> bool:
        return self._state.is_pending

    @property
    def candidates(self) -> Tuple[CatalogItem, ...]:
        return self._candidates

    def set_query(self, text: str) -> None:
        self._ensure_open()
        self._restart_cycle(raw_query=text or "")

    def set_candidates(self, candidates: Sequence[CatalogItem]) -> None:
        """Replace the candidate set; treated exactly like a keystroke."""

        self._ensure_open()
        self._candidates = tuple(candidates)
        self._restart_cycle(candidate_ids=tuple(item.id for item in self._candidates))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def wait_idle(self) -> SearchState:
        """Wait until no debounce timer or current match call is outstanding."""

        await self._idle.wait()
        return self._state

    def close(self) -> None:
        """Discard the session: stop the timer and cancel every outstanding match."""

        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        for task in self._tasks:
            task.cancel()
        self._inflight = None
        self._listeners.clear()
        self._idle.set()
        self._release_trace_session()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _restart_cycle(self, **changes: Any) -> None:
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        if self._cancel_superseded and self._inflight is not None and self._inflight.task is not None:
            self._inflight.task.cancel()
            self._inflight = None

        cycle = self._state.cycle + 1
        self._update(phase=SearchPhase.DEBOUNCING, is_pending=False, cycle=cycle, **changes)
        self._idle.clear()
        self._timer = loop.call_later(self._debounce, self._on_settled, cycle)

    def _on_settled(self, cycle: int) -> None:
        self._timer = None
        if self._closed or cycle != self._state.cycle:
            return
        query = normalize_query(self._state.raw_query)
        pending = _Cycle(number=cycle, query=query, candidates=self._candidates)
        self._update(debounced_query=query, phase=SearchPhase.MATCHING, is_pending=True)
        with _session_scope(self.session_id):
            pending.task = asyncio.get_running_loop().create_task(self._run_match(pending))
        self._tasks.add(pending.task)
        pending.task.add_done_callback(self._tasks.discard)
        self._inflight = pending

    async def _run_match(self, cycle: _Cycle) -> None:
        try:
            ids = await self._provider.match(cycle.query, cycle.candidates)
        except Exception:
            LOGGER.exception("match provider failed for cycle %s; using local matching", cycle.number)
            ids = self._provider.local.match(cycle.query, cycle.candidates)

        if self._closed or cycle.number != self._state.cycle:
            LOGGER.debug("discarding stale results of cycle %s (current %s)", cycle.number, self._state.cycle)
            return
        self._inflight = None
        self._update(
            result_ids=tuple(restrict_to_candidates(ids, cycle.candidates)),
            phase=SearchPhase.IDLE,
            is_pending=False,
        )
        self._idle.set()

    def _update(self, **changes: Any) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                LOGGER.exception("search state listener %r failed", listener)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release_trace_session(self) -> None:
        # Cancelled tasks still log their closing span, so wait for them first.
        manager = get_log_manager()
        remaining = {task for task in self._tasks if not task.done()}
        if not remaining:
            manager.end_session(self.session_id)
            return

        def _on_done(task: "asyncio.Task[None]") -> None:
            remaining.discard(task)
            if not remaining:
                manager.end_session(self.session_id)

        for task in remaining:
            task.add_done_callback(_on_done)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("search session is closed")


@contextlib.contextmanager
def _session_scope(session_id: str) -> Iterator[None]:
    """Bind the session id so tasks created inside inherit it."""

    token = session_id_var.set(session_id)
    try:
        yield
    finally:
        session_id_var.reset(token)
