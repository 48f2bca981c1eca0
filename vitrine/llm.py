"""Async LLM client wrapper with retry and timeout handling."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Optional, Protocol


class LLMCallable(Protocol):
    """Protocol describing a coroutine function that produces LLM responses."""

    def __call__(
        self,
        *,
        prompt: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Awaitable[Dict[str, Any]]:
        ...


@dataclass
class RetryPolicy:
    """Retry parameters applied to LLM invocations."""

    max_attempts: int = 1
    backoff: float = 0.0


class LLMClient:
    """Retry-aware wrapper around a low-level LLM callable.

    Every attempt is bounded by ``timeout``; an attempt that does not finish
    in time fails with :class:`asyncio.TimeoutError` like any other error.
    """

    def __init__(self, *, call: LLMCallable) -> None:
        self._call = call

    async def generate(
        self,
        prompt: Dict[str, Any],
        *,
        retry: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        attempts = max(retry.max_attempts, 1) if retry else 1
        backoff = retry.backoff if retry else 0.0
        last_exception: Optional[BaseException] = None
        last_response: Optional[Dict[str, Any]] = None

        for attempt in range(1, attempts + 1):
            try:
                response = await asyncio.wait_for(
                    self._call(prompt=prompt, timeout=timeout),
                    timeout=timeout,
                )
            except Exception as exc:
                last_exception = exc
                if attempt == attempts:
                    raise
            else:
                last_response = response
                if not response.get("error") or attempt == attempts:
                    return response
            if backoff:
                await asyncio.sleep(backoff)

        if last_exception is not None:  # pragma: no cover - defensive guard
            raise last_exception
        return last_response or {}
