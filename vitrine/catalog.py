"""Category filtering and the consultant catalog page session."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .controller import DEFAULT_DEBOUNCE_SECONDS, SearchController
from .matching import MatchProvider
from .schema import CatalogItem, Category


def filter_by_category(items: Sequence[CatalogItem], category_id: Optional[str]) -> List[CatalogItem]:
    """Items of ``category_id`` in catalog order; ``None`` selects everything."""

    if category_id is None:
        return list(items)
    return [item for item in items if item.category_id == category_id]


def visible_items(candidates: Sequence[CatalogItem], result_ids: Iterable[str]) -> List[CatalogItem]:
    """Candidates present in ``result_ids``, in candidate order."""

    wanted = set(result_ids)
    return [item for item in candidates if item.id in wanted]


class CatalogBrowser:
    """One visitor's view of a consultant catalog.

    The category selection produces the candidate set and the embedded
    :class:`SearchController` narrows it by the typed query.
    """

    def __init__(
        self,
        items: Sequence[CatalogItem],
        provider: MatchProvider,
        *,
        categories: Sequence[Category] = (),
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        cancel_superseded: bool = False,
    ) -> None:
        self._items: Tuple[CatalogItem, ...] = tuple(items)
        self.categories: Tuple[Category, ...] = tuple(categories)
        self.selected_category_id: Optional[str] = None
        self.search = SearchController(
            provider,
            self._items,
            debounce_seconds=debounce_seconds,
            cancel_superseded=cancel_superseded,
        )

    @property
    def candidates(self) -> List[CatalogItem]:
        return filter_by_category(self._items, self.selected_category_id)

    @property
    def visible(self) -> List[CatalogItem]:
        return visible_items(self.candidates, self.search.result_ids)

    @property
    def is_searching(self) -> bool:
        return self.search.is_pending

    @property
    def shows_empty_notice(self) -> bool:
        return not self.visible and not self.is_searching

    def set_query(self, text: str) -> None:
        self.search.set_query(text)

    def select_category(self, category_id: Optional[str]) -> None:
        if category_id is not None and category_id not in {cat.id for cat in self.categories}:
            raise KeyError(f"unknown category '{category_id}'")
        if category_id == self.selected_category_id:
            return
        self.selected_category_id = category_id
        self.search.set_candidates(self.candidates)

    def close(self) -> None:
        self.search.close()
