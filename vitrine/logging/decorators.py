"""Decorators that instrument matching calls for structured logging."""

from __future__ import annotations

import asyncio
import functools
import inspect
import uuid
from typing import Any, Callable, Dict, Tuple

from . import get_log_manager
from .context import search_id_var, trace_enabled_var


def log_match(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Open a ``match`` span per call and tag it with a fresh search id."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        manager = get_log_manager()
        if not manager.enabled:
            return await fn(*args, **kwargs)

        sampled = manager.should_sample()
        trace_token = trace_enabled_var.set(sampled)
        if not sampled:
            try:
                return await fn(*args, **kwargs)
            finally:
                trace_enabled_var.reset(trace_token)

        search_token = search_id_var.set(uuid.uuid4().hex)
        bound = _bind_arguments(fn, args, kwargs)
        candidates = bound.arguments.get("candidates") or ()
        span_id = manager.start_span(
            "match",
            event="match_start",
            query=bound.arguments.get("query"),
            candidate_count=len(candidates),
        )
        try:
            result = await fn(*args, **kwargs)
        except asyncio.CancelledError:
            # Superseded or closed sessions cancel the task; the span still closes.
            manager.end_span(span_id, event="match_end", status="cancelled")
            raise
        except BaseException as exc:
            manager.emit({"event": "match_exception", "level": "error", "error": repr(exc)})
            manager.end_span(span_id, event="match_end", level="error", status="error")
            raise
        else:
            manager.end_span(
                span_id,
                event="match_end",
                status="ok",
                source=getattr(result, "source", None),
                output_summary=manager.summarize(getattr(result, "ids", result)),
            )
            return result
        finally:
            search_id_var.reset(search_token)
            trace_enabled_var.reset(trace_token)

    return wrapper


def log_llm(provider: str | None, model: str | None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        def before(args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Dict[str, Any]:
            manager = get_log_manager()
            if not manager.enabled:
                return {}
            bound = _bind_arguments(fn, args, kwargs)
            span_id = manager.start_span(
                "llm",
                event="llm_start",
                provider=provider,
                model=model,
                input_summary=manager.summarize(bound.arguments.get("prompt")),
            )
            return {"span_id": span_id, "manager": manager}

        def after(result: Any, ctx: Dict[str, Any]) -> None:
            if not ctx:
                return
            manager = ctx["manager"]
            text = result.get("text") if isinstance(result, dict) else result
            manager.end_span(
                ctx["span_id"],
                event="llm_end",
                status="ok",
                provider=provider,
                model=model,
                output_summary=manager.summarize(text),
            )

        def on_error(exc: BaseException, ctx: Dict[str, Any]) -> None:
            if not ctx:
                return
            manager = ctx["manager"]
            manager.emit(
                {
                    "event": "llm_exception",
                    "level": "error",
                    "provider": provider,
                    "model": model,
                    "error": repr(exc),
                }
            )
            manager.end_span(ctx["span_id"], event="llm_end", level="error", status="error")

        return _wrap_callable(fn, before, after, on_error)

    return decorator


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------


def _wrap_callable(
    fn: Callable[..., Any],
    before: Callable[[Tuple[Any, ...], Dict[str, Any]], Dict[str, Any]],
    after: Callable[[Any, Dict[str, Any]], None],
    on_error: Callable[[BaseException, Dict[str, Any]], None],
) -> Callable[..., Any]:
    if not inspect.iscoroutinefunction(fn):
        raise TypeError(f"{fn!r} is not a coroutine function")

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        ctx = before(args, kwargs)
        try:
            result = await fn(*args, **kwargs)
        except BaseException as exc:
            # Cancellation of a superseded search still closes the span.
            on_error(exc, ctx)
            raise
        after(result, ctx)
        return result

    return wrapper


def _bind_arguments(fn: Callable[..., Any], args: Tuple[Any, ...], kwargs: Dict[str, Any]):
    signature = inspect.signature(fn)
    bound = signature.bind_partial(*args, **kwargs)
    bound.apply_defaults()
    return bound
