"""Logging sinks for tracing events."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, IO, List


class Sink:
    """Interface for log sinks."""

    def emit(self, event: Dict[str, Any]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def flush(self) -> None:  # pragma: no cover - optional override
        pass

    def end_session(self, session_id: str) -> None:
        """Release whatever the sink holds for a finished search session."""

    def close(self) -> None:  # pragma: no cover - optional override
        pass


class StdoutSink(Sink):
    """Write events to stdout as JSON Lines."""

    def __init__(self) -> None:
        self._encoder = json.JSONEncoder(ensure_ascii=False, default=str)

    def emit(self, event: Dict[str, Any]) -> None:
        print(self._encoder.encode(event))


class JsonlSink(Sink):
    """Persist events to disk, one JSONL file per search session and day."""

    def __init__(self, root_dir: str) -> None:
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        self._files: Dict[str, IO[str]] = {}

    def emit(self, event: Dict[str, Any]) -> None:
        session_id = event.get("session_id") or "unscoped"
        handle = self._ensure_file(session_id)
        json.dump(event, handle, ensure_ascii=False, default=str)
        handle.write("\n")
        handle.flush()

    def _ensure_file(self, session_id: str) -> IO[str]:
        if session_id in self._files:
            return self._files[session_id]
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        target_dir = self._root / today
        target_dir.mkdir(parents=True, exist_ok=True)
        handle = (target_dir / f"{session_id}.jsonl").open("a", encoding="utf-8")
        self._files[session_id] = handle
        return handle

    def end_session(self, session_id: str) -> None:
        handle = self._files.pop(session_id, None)
        if handle is not None:
            handle.close()

    def close(self) -> None:
        for handle in self._files.values():
            handle.flush()
            handle.close()
        self._files.clear()


class MemorySink(Sink):
    """Keep events in a list; used by tests and interactive debugging."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def emit(self, event: Dict[str, Any]) -> None:
        self.events.append(event)

    def named(self, name: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event.get("event") == name]


class NullSink(Sink):
    """Sink that discards all events (Null Object pattern)."""

    def emit(self, event: Dict[str, Any]) -> None:  # noqa: D401
        return
