import asyncio
import tempfile
import unittest
from pathlib import Path
from typing import List, Sequence, Tuple

from vitrine.controller import DEFAULT_DEBOUNCE_SECONDS, SearchController, SearchPhase
from vitrine.logging import JsonlSink, LogManager, MemorySink, set_log_manager
from vitrine.matching import LocalSubstringMatcher, MatchProvider
from vitrine.schema import CatalogItem


CANDIDATES = [
    CatalogItem(id="a", title="Bakery Landing", description="cakes and bread"),
    CatalogItem(id="b", title="Law Firm Site", description="legal services"),
    CatalogItem(id="c", title="Cake Studio", description="custom cakes"),
]


class RecordingProvider(MatchProvider):
    """Local matching that records every call it receives."""

    def __init__(self, delay: float = 0.0) -> None:
        super().__init__()
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.delay = delay

    async def match(self, query: str, candidates: Sequence[CatalogItem]) -> List[str]:
        self.calls.append((query, tuple(item.id for item in candidates)))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.local.match(query, candidates)


class GatedProvider(MatchProvider):
    """Each call blocks until the test releases it with a chosen result."""

    def __init__(self) -> None:
        super().__init__()
        self.gates: List[asyncio.Future] = []
        self.queries: List[str] = []

    async def match(self, query: str, candidates: Sequence[CatalogItem]) -> List[str]:
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        self.queries.append(query)
        return await gate


class HangingRemote:
    """Remote matcher whose calls never finish on their own."""

    def __init__(self) -> None:
        self.started: List[str] = []

    async def match(self, query: str, candidates: Sequence[CatalogItem]) -> List[str]:
        self.started.append(query)
        await asyncio.sleep(10)
        return []


async def _settle(controller: SearchController, timeout: float = 2.0):
    return await asyncio.wait_for(controller.wait_idle(), timeout)


async def _until(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


class SearchControllerTestCase(unittest.TestCase):
    def test_default_debounce_window(self) -> None:
        self.assertEqual(DEFAULT_DEBOUNCE_SECONDS, 0.6)

    def test_rejects_non_positive_debounce(self) -> None:
        with self.assertRaises(ValueError):
            SearchController(MatchProvider(), CANDIDATES, debounce_seconds=0)

    def test_initial_state_shows_every_candidate(self) -> None:
        async def scenario():
            controller = SearchController(RecordingProvider(), CANDIDATES)
            return controller.state

        state = asyncio.run(scenario())
        self.assertEqual(state.result_ids, ("a", "b", "c"))
        self.assertEqual(state.phase, SearchPhase.IDLE)
        self.assertFalse(state.is_pending)

    def test_keystrokes_collapse_into_one_match_call(self) -> None:
        async def scenario():
            provider = RecordingProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.5)
            for text in ("c", "ca", "cak"):
                controller.set_query(text)
                await asyncio.sleep(0.05)
            self.assertEqual(controller.state.phase, SearchPhase.DEBOUNCING)
            self.assertEqual(provider.calls, [])
            state = await _settle(controller)
            return provider, state

        provider, state = asyncio.run(scenario())
        self.assertEqual(provider.calls, [("cak", ("a", "b", "c"))])
        self.assertEqual(state.result_ids, ("a", "c"))
        self.assertEqual(state.debounced_query, "cak")

    def test_pauses_longer_than_window_fire_separately(self) -> None:
        async def scenario():
            provider = RecordingProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.05)
            controller.set_query("law")
            await _settle(controller)
            await asyncio.sleep(0.1)
            controller.set_query("lawyer")
            await _settle(controller)
            return provider

        provider = asyncio.run(scenario())
        self.assertEqual([query for query, _ in provider.calls], ["law", "lawyer"])

    def test_keystroke_just_inside_window_restarts_timer(self) -> None:
        async def scenario():
            provider = RecordingProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.2)
            controller.set_query("l")
            await asyncio.sleep(0.15)
            controller.set_query("la")
            await asyncio.sleep(0.15)
            calls_before_settle = list(provider.calls)
            await _settle(controller)
            return calls_before_settle, provider.calls

        before, after = asyncio.run(scenario())
        self.assertEqual(before, [])
        self.assertEqual([query for query, _ in after], ["la"])

    def test_whitespace_query_settles_to_all_candidates(self) -> None:
        async def scenario():
            controller = SearchController(RecordingProvider(), CANDIDATES, debounce_seconds=0.01)
            controller.set_query("cak")
            await _settle(controller)
            controller.set_query("   ")
            return await _settle(controller)

        state = asyncio.run(scenario())
        self.assertEqual(state.debounced_query, "")
        self.assertEqual(state.result_ids, ("a", "b", "c"))

    def test_pending_flag_tracks_the_match_call(self) -> None:
        async def scenario():
            provider = RecordingProvider(delay=0.05)
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            seen: List[Tuple[SearchPhase, bool]] = []
            controller.subscribe(lambda state: seen.append((state.phase, state.is_pending)))
            controller.set_query("law")
            await _settle(controller)
            return seen, controller.is_pending

        seen, pending = asyncio.run(scenario())
        self.assertEqual(
            seen,
            [
                (SearchPhase.DEBOUNCING, False),
                (SearchPhase.MATCHING, True),
                (SearchPhase.IDLE, False),
            ],
        )
        self.assertFalse(pending)

    def test_stale_completion_does_not_overwrite_newer_results(self) -> None:
        async def scenario():
            provider = GatedProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            controller.set_query("cake")
            await _until(lambda: len(provider.gates) == 1)

            controller.set_query("law")
            await _until(lambda: len(provider.gates) == 2)
            provider.gates[1].set_result(["b"])
            await _settle(controller)
            committed = controller.result_ids

            provider.gates[0].set_result(["a", "c"])
            await asyncio.sleep(0.02)
            return committed, controller.state

        committed, state = asyncio.run(scenario())
        self.assertEqual(committed, ("b",))
        self.assertEqual(state.result_ids, ("b",))
        self.assertEqual(state.debounced_query, "law")
        self.assertEqual(state.phase, SearchPhase.IDLE)

    def test_late_result_discarded_while_next_cycle_debounces(self) -> None:
        async def scenario():
            provider = GatedProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.2)
            controller.set_query("cake")
            await _until(lambda: len(provider.gates) == 1)
            controller.set_query("cakes")
            provider.gates[0].set_result(["a"])
            await asyncio.sleep(0.02)
            return controller.state

        state = asyncio.run(scenario())
        self.assertEqual(state.result_ids, ("a", "b", "c"))
        self.assertEqual(state.phase, SearchPhase.DEBOUNCING)

    def test_candidate_change_restarts_debounce_and_invalidates_inflight(self) -> None:
        async def scenario():
            provider = GatedProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            controller.set_query("cake")
            await _until(lambda: len(provider.gates) == 1)

            controller.set_candidates(CANDIDATES[2:])
            await _until(lambda: len(provider.gates) == 2)
            provider.gates[0].set_result(["a", "c"])
            await asyncio.sleep(0.02)
            mid = controller.result_ids
            provider.gates[1].set_result(["c"])
            return mid, await _settle(controller)

        mid, state = asyncio.run(scenario())
        self.assertEqual(mid, ("a", "b", "c"))
        self.assertEqual(state.result_ids, ("c",))
        self.assertEqual(state.candidate_ids, ("c",))

    def test_results_outside_candidate_set_are_discarded(self) -> None:
        async def scenario():
            provider = GatedProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            controller.set_query("anything")
            await _until(lambda: len(provider.gates) == 1)
            provider.gates[0].set_result(["z", "b", "b"])
            return await _settle(controller)

        self.assertEqual(asyncio.run(scenario()).result_ids, ("b",))

    def test_provider_defect_falls_back_to_local_and_clears_pending(self) -> None:
        class BrokenProvider(MatchProvider):
            async def match(self, query, candidates):
                raise AttributeError("bug")

        async def scenario():
            controller = SearchController(BrokenProvider(), CANDIDATES, debounce_seconds=0.01)
            controller.set_query("law")
            return await _settle(controller)

        with self.assertLogs("vitrine.controller", level="ERROR"):
            state = asyncio.run(scenario())
        self.assertEqual(state.result_ids, tuple(LocalSubstringMatcher().match("law", CANDIDATES)))
        self.assertFalse(state.is_pending)

    def test_provider_defect_uses_the_providers_local_matcher(self) -> None:
        class TitleOnlyMatcher(LocalSubstringMatcher):
            def match(self, query, candidates):
                needle = query.strip().lower()
                return [item.id for item in candidates if needle in item.title.lower()]

        class BrokenProvider(MatchProvider):
            async def match(self, query, candidates):
                raise AttributeError("bug")

        async def scenario():
            provider = BrokenProvider(local=TitleOnlyMatcher())
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            controller.set_query("cake")
            return await _settle(controller)

        with self.assertLogs("vitrine.controller", level="ERROR"):
            state = asyncio.run(scenario())
        self.assertEqual(state.result_ids, ("c",))

    def test_cancelled_matches_close_their_trace_spans(self) -> None:
        sink = MemorySink()
        manager = LogManager(sinks=[sink])
        remote = HangingRemote()

        async def scenario():
            controller = SearchController(
                MatchProvider(remote=remote), CANDIDATES, debounce_seconds=0.01, cancel_superseded=True
            )
            for count, text in enumerate(("c", "ca", "cak", "cake"), start=1):
                controller.set_query(text)
                await _until(lambda: len(remote.started) == count)
            controller.close()
            await asyncio.sleep(0.02)

        set_log_manager(manager)
        try:
            asyncio.run(scenario())
        finally:
            set_log_manager(None)

        self.assertEqual(len(sink.named("match_start")), 4)
        self.assertEqual([event["status"] for event in sink.named("match_end")], ["cancelled"] * 4)
        self.assertEqual(manager._span_meta, {})
        self.assertEqual(manager._span_tokens, {})

    def test_closed_sessions_release_their_trace_files(self) -> None:
        remote = HangingRemote()

        async def scenario():
            for _ in range(5):
                controller = SearchController(MatchProvider(), CANDIDATES, debounce_seconds=0.01)
                controller.set_query("law")
                await _settle(controller)
                controller.close()

            hanging = SearchController(MatchProvider(remote=remote), CANDIDATES, debounce_seconds=0.01)
            hanging.set_query("law")
            await _until(lambda: len(remote.started) == 1)
            hanging.close()
            await asyncio.sleep(0.02)

        with tempfile.TemporaryDirectory() as tmpdir:
            sink = JsonlSink(tmpdir)
            set_log_manager(LogManager(sinks=[sink]))
            try:
                asyncio.run(scenario())
                open_sessions = dict(sink._files)
                written = list(Path(tmpdir).glob("**/*.jsonl"))
            finally:
                set_log_manager(None)
                sink.close()

        self.assertEqual(open_sessions, {})
        self.assertEqual(len(written), 6)

    def test_cancel_superseded_aborts_inflight_call(self) -> None:
        async def scenario():
            provider = GatedProvider()
            controller = SearchController(
                provider, CANDIDATES, debounce_seconds=0.01, cancel_superseded=True
            )
            controller.set_query("cake")
            await _until(lambda: len(provider.gates) == 1)
            controller.set_query("law")
            await asyncio.sleep(0)
            cancelled = provider.gates[0].cancelled()
            await _until(lambda: len(provider.gates) == 2)
            provider.gates[1].set_result(["b"])
            return cancelled, await _settle(controller)

        cancelled, state = asyncio.run(scenario())
        self.assertTrue(cancelled)
        self.assertEqual(state.result_ids, ("b",))

    def test_close_stops_pending_work(self) -> None:
        async def scenario():
            provider = RecordingProvider()
            controller = SearchController(provider, CANDIDATES, debounce_seconds=0.05)
            controller.set_query("law")
            controller.close()
            await asyncio.sleep(0.1)
            with self.assertRaises(RuntimeError):
                controller.set_query("more")
            return provider.calls

        self.assertEqual(asyncio.run(scenario()), [])

    def test_sessions_are_independent(self) -> None:
        async def scenario():
            provider = RecordingProvider()
            first = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            second = SearchController(provider, CANDIDATES, debounce_seconds=0.01)
            first.set_query("law")
            second.set_query("studio")
            return await _settle(first), await _settle(second)

        first, second = asyncio.run(scenario())
        self.assertEqual(first.result_ids, ("b",))
        self.assertEqual(second.result_ids, ("c",))

    def test_unsubscribe_stops_notifications(self) -> None:
        async def scenario():
            controller = SearchController(RecordingProvider(), CANDIDATES, debounce_seconds=0.01)
            seen = []
            unsubscribe = controller.subscribe(seen.append)
            controller.set_query("a")
            unsubscribe()
            await _settle(controller)
            return seen

        self.assertEqual(len(asyncio.run(scenario())), 1)


if __name__ == "__main__":
    unittest.main()
