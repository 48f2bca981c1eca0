"""Vitrine: smart catalog search for consultant demo-site pages."""

from .builder import (
    SearchConfigError,
    SearchRuntime,
    build_search_from_env,
    build_search_from_path,
    build_search_from_yaml,
)
from .catalog import CatalogBrowser, filter_by_category, visible_items
from .controller import DEFAULT_DEBOUNCE_SECONDS, SearchController, SearchPhase, SearchState
from .leads import AcquisitionRequest, filter_acquisitions, validate_cpf
from .llm import LLMClient, RetryPolicy
from .matching import (
    LocalSubstringMatcher,
    MalformedResponseError,
    MatchError,
    MatchOutcome,
    MatchProvider,
    RemoteMatchError,
    RemoteSemanticMatcher,
)
from .schema import Acquisition, AcquisitionStatus, CatalogItem, Category, SearchConfig

__all__ = [
    "Acquisition",
    "AcquisitionRequest",
    "AcquisitionStatus",
    "CatalogBrowser",
    "CatalogItem",
    "Category",
    "DEFAULT_DEBOUNCE_SECONDS",
    "LLMClient",
    "LocalSubstringMatcher",
    "MalformedResponseError",
    "MatchError",
    "MatchOutcome",
    "MatchProvider",
    "RemoteMatchError",
    "RemoteSemanticMatcher",
    "RetryPolicy",
    "SearchConfig",
    "SearchConfigError",
    "SearchController",
    "SearchPhase",
    "SearchRuntime",
    "SearchState",
    "build_search_from_env",
    "build_search_from_path",
    "build_search_from_yaml",
    "filter_acquisitions",
    "filter_by_category",
    "validate_cpf",
    "visible_items",
]
