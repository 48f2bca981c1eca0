"""Context variables for tracing identifiers."""

from __future__ import annotations

import contextvars

search_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("search_id", default=None)
session_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("session_id", default=None)
span_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("span_id", default=None)

trace_enabled_var: contextvars.ContextVar[bool] = contextvars.ContextVar("trace_enabled", default=False)
