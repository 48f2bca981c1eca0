"""Catalog matching: remote semantic matching with a local substring fallback.

``MatchProvider.match`` always terminates with a result. The remote path is
attempted only when a remote matcher was configured; any failure on that
path (network error, timeout, error payload, malformed response) is absorbed
and the deterministic local path answers instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence

from .llm import LLMClient, RetryPolicy
from .logging import get_log_manager
from .logging.decorators import log_match
from .prompts import PromptRenderer
from .schema import SMART_SEARCH_TEMPLATE, CatalogItem

LOGGER = logging.getLogger(__name__)

MatchSource = Literal["empty", "remote", "local"]


class MatchError(RuntimeError):
    """Base class for matching failures."""


class RemoteMatchError(MatchError):
    """The remote service failed, timed out, or returned an error payload."""


class MalformedResponseError(RemoteMatchError):
    """The remote response is not a JSON array of strings."""


@dataclass(frozen=True)
class MatchOutcome:
    """Matched identifiers and the path that produced them."""

    ids: List[str]
    source: MatchSource


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip()


def project_candidates(candidates: Sequence[CatalogItem]) -> List[Dict[str, str]]:
    """Minimized view of the candidates sent to the remote service."""

    return [
        {"id": item.id, "title": item.title, "description": item.description}
        for item in candidates
    ]


def restrict_to_candidates(ids: Sequence[str], candidates: Sequence[CatalogItem]) -> List[str]:
    """Drop unknown and repeated identifiers, keeping first-seen order."""

    allowed = {item.id for item in candidates}
    seen: set[str] = set()
    restricted: List[str] = []
    for item_id in ids:
        if item_id in allowed and item_id not in seen:
            seen.add(item_id)
            restricted.append(item_id)
    return restricted


def parse_identifier_array(text: Optional[str]) -> List[str]:
    """Parse ``text`` strictly as a JSON array of strings."""

    if text is None or not text.strip():
        raise MalformedResponseError("empty response from remote matcher")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"response is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise MalformedResponseError(f"expected a JSON array, got {type(payload).__name__}")
    if not all(isinstance(item, str) for item in payload):
        raise MalformedResponseError("expected an array of strings")
    return payload


class LocalSubstringMatcher:
    """Case-insensitive substring match over title and description."""

    def match(self, query: str, candidates: Sequence[CatalogItem]) -> List[str]:
        needle = normalize_query(query).lower()
        if not needle:
            return [item.id for item in candidates]
        return [
            item.id
            for item in candidates
            if needle in item.title.lower() or needle in item.description.lower()
        ]


class RemoteSemanticMatcher:
    """Ask a generative-text service which candidates match the query."""

    def __init__(
        self,
        client: LLMClient,
        prompts: PromptRenderer,
        *,
        retry: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        template: str = SMART_SEARCH_TEMPLATE,
    ) -> None:
        self._client = client
        self._prompts = prompts
        self._retry = retry
        self._timeout = timeout
        self._template = template

    async def match(self, query: str, candidates: Sequence[CatalogItem]) -> List[str]:
        prompt = self._prompts.render_prompt(
            self._template,
            {"query": normalize_query(query), "candidates": project_candidates(candidates)},
        )
        try:
            response = await self._client.generate(prompt, retry=self._retry, timeout=self._timeout)
        except Exception as exc:
            raise RemoteMatchError(f"remote matcher call failed: {exc!r}") from exc
        error = response.get("error")
        if error:
            raise RemoteMatchError(f"remote matcher returned an error: {error}")
        ids = parse_identifier_array(_response_text(response))
        return restrict_to_candidates(ids, candidates)


class MatchProvider:
    """Map (query, candidates) to matching identifiers, never raising on remote failure.

    ``remote=None`` is the credential-absent state: search runs locally and
    nothing is reported beyond a debug record.
    """

    def __init__(
        self,
        *,
        remote: Optional[RemoteSemanticMatcher] = None,
        local: Optional[LocalSubstringMatcher] = None,
    ) -> None:
        self.remote = remote
        self.local = local or LocalSubstringMatcher()

    @property
    def remote_enabled(self) -> bool:
        return self.remote is not None

    async def match(self, query: str, candidates: Sequence[CatalogItem]) -> List[str]:
        outcome = await self.match_with_source(query, candidates)
        return outcome.ids

    @log_match
    async def match_with_source(self, query: str, candidates: Sequence[CatalogItem]) -> MatchOutcome:
        if not normalize_query(query):
            return MatchOutcome(ids=[item.id for item in candidates], source="empty")

        if self.remote is None:
            self._record_fallback("credential_missing", level=logging.DEBUG)
        else:
            try:
                ids = await self.remote.match(query, candidates)
            except MalformedResponseError as exc:
                self._record_fallback("malformed_response", error=exc)
            except RemoteMatchError as exc:
                self._record_fallback("remote_error", error=exc)
            except Exception as exc:
                self._record_fallback("unexpected_error", error=exc, level=logging.ERROR)
            else:
                return MatchOutcome(ids=ids, source="remote")

        return MatchOutcome(ids=self.local.match(query, candidates), source="local")

    def _record_fallback(
        self,
        reason: str,
        *,
        error: Optional[BaseException] = None,
        level: int = logging.WARNING,
    ) -> None:
        LOGGER.log(
            level,
            "smart search fell back to local matching (%s)%s",
            reason,
            f": {error}" if error is not None else "",
            exc_info=error if level >= logging.ERROR else None,
        )
        get_log_manager().emit(
            {
                "event": "match_fallback",
                "level": logging.getLevelName(level).lower(),
                "reason": reason,
                "error": repr(error) if error is not None else None,
            }
        )


def _response_text(response: Dict[str, Any]) -> Optional[str]:
    text = response.get("text")
    if text is None and isinstance(response.get("result"), str):
        text = response["result"]
    return text
