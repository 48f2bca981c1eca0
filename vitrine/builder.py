"""Resolve configuration once and assemble the search runtime."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

from .catalog import CatalogBrowser
from .controller import SearchController
from .llm import LLMClient, RetryPolicy
from .matching import MatchProvider, RemoteSemanticMatcher
from .prompts import PromptRenderer, build_prompt_renderer
from .providers import create_gemini_client
from .schema import CatalogItem, Category, SearchConfig, load_config

LOGGER = logging.getLogger(__name__)

ENV_PATTERN = re.compile(r"^{{\s*env\.([A-Z0-9_]+)\s*}}$")
CREDENTIAL_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")


class SearchConfigError(RuntimeError):
    """Raised when the search configuration cannot be loaded."""


@dataclass
class SearchRuntime:
    """Configured matching stack shared by independent search sessions."""

    config: SearchConfig
    prompts: PromptRenderer
    provider: MatchProvider

    @property
    def remote_enabled(self) -> bool:
        return self.provider.remote_enabled

    def new_controller(self, candidates: Sequence[CatalogItem] = ()) -> SearchController:
        settings = self.config.search
        return SearchController(
            self.provider,
            candidates,
            debounce_seconds=settings.debounce_seconds,
            cancel_superseded=settings.cancel_superseded,
        )

    def new_browser(
        self,
        items: Sequence[CatalogItem],
        categories: Sequence[Category] = (),
    ) -> CatalogBrowser:
        settings = self.config.search
        return CatalogBrowser(
            items,
            self.provider,
            categories=categories,
            debounce_seconds=settings.debounce_seconds,
            cancel_superseded=settings.cancel_superseded,
        )


def build_search_from_path(
    path: str | Path,
    *,
    environ: Optional[Mapping[str, str]] = None,
    client: Any | None = None,
) -> SearchRuntime:
    """Load YAML configuration from a file path and build a runtime."""

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise SearchConfigError(f"cannot read search configuration '{path}': {exc}") from exc
    return build_search_from_yaml(data, environ=environ, client=client)


def build_search_from_env(
    *,
    environ: Optional[Mapping[str, str]] = None,
    client: Any | None = None,
) -> SearchRuntime:
    """Build a runtime from defaults, taking only the credential from the environment."""

    return build_search_from_yaml({}, environ=environ, client=client)


def build_search_from_yaml(
    data: Optional[Dict[str, Any]],
    *,
    environ: Optional[Mapping[str, str]] = None,
    client: Any | None = None,
) -> SearchRuntime:
    """Compile a Python dictionary (typically from YAML) into a runtime.

    ``client`` replaces the Gemini SDK model object; tests inject fakes here.
    """

    env = os.environ if environ is None else environ
    if data is not None and not isinstance(data, dict):
        raise SearchConfigError("search configuration must be a mapping")
    try:
        config = load_config(data)
    except ValueError as exc:
        raise SearchConfigError(str(exc)) from exc

    prompts = build_prompt_renderer(config.prompts)
    api_key = resolve_credential(config.provider.api_key, env)
    remote: Optional[RemoteSemanticMatcher] = None
    if api_key:
        provider_config = config.provider
        remote = RemoteSemanticMatcher(
            _build_llm_client(config, api_key, client),
            prompts,
            retry=RetryPolicy(
                max_attempts=provider_config.retry.max_attempts,
                backoff=provider_config.retry.backoff,
            ),
            timeout=provider_config.timeout.seconds,
        )
    else:
        LOGGER.info("no matching credential configured; smart search uses local matching")

    return SearchRuntime(config=config, prompts=prompts, provider=MatchProvider(remote=remote))


def resolve_credential(configured: Optional[str], environ: Mapping[str, str]) -> Optional[str]:
    """Pick the provider credential; absence is a normal, silent outcome."""

    if configured:
        value = _resolve_env_placeholder(configured, environ)
        if value and value.strip():
            return value.strip()
    for name in CREDENTIAL_ENV_VARS:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


def _resolve_env_placeholder(value: str, environ: Mapping[str, str]) -> Optional[str]:
    match = ENV_PATTERN.match(value.strip())
    if not match:
        return value
    return environ.get(match.group(1))


def _build_llm_client(config: SearchConfig, api_key: str, client: Any | None) -> LLMClient:
    provider = config.provider
    if provider.kind == "gemini":
        return create_gemini_client(
            model=provider.model,
            api_key=api_key,
            temperature=provider.temperature,
            client=client,
        )
    raise SearchConfigError(f"unsupported provider kind '{provider.kind}'")  # pragma: no cover
