"""
Hierarchical filter cascade for the dashboard.

The selection is a strict chain: state -> district -> block -> village.
Changing any level clears every level below it in the same update, and
any change to the location or the search text sends the page cursor back
to 1. Dropdown option lists are keyed only by the ancestors of their level,
so picking a village never invalidates the district list.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_PAGE_SIZE
from .models import LOCATION_LEVELS, HierarchicalFilter, PaginationInfo, QueryFilter

# Configure logging
logger = logging.getLogger(__name__)


def _check_level(level: str) -> int:
    if level not in LOCATION_LEVELS:
        raise ValueError(f"Unknown location level: {level}")
    return LOCATION_LEVELS.index(level)


def descendants_of(level: str) -> Tuple[str, ...]:
    """Levels strictly below ``level``."""
    return LOCATION_LEVELS[_check_level(level) + 1:]


def ancestors_of(level: str) -> Tuple[str, ...]:
    """Levels strictly above ``level``."""
    return LOCATION_LEVELS[:_check_level(level)]


def apply_field_change(query: QueryFilter, level: str, value: Optional[str]) -> QueryFilter:
    """
    Return ``query`` with ``level`` set to ``value`` and its descendants cleared.

    The page cursor always resets to 1. Raises FilterValidationError when an
    ancestor of ``level`` is not selected and ``value`` is non-empty.
    """
    changes = {level: value}
    for child in descendants_of(level):
        changes[child] = None
    changes['page'] = 1
    return replace(query, **changes)


def option_key(level: str, location: HierarchicalFilter) -> Optional[Tuple[str, ...]]:
    """
    Cache key for the option list of ``level``: the values of its ancestors.

    Returns None when an ancestor is not selected yet (the dropdown is
    disabled and has no options to fetch).
    """
    values = []
    for ancestor in ancestors_of(level):
        value = getattr(location, ancestor)
        if value is None:
            return None
        values.append(value)
    return tuple(values)


class FilterState:
    """
    Owns the current records query and applies user intents to it.

    Every mutation replaces ``self.query`` with a new validated QueryFilter,
    so an invalid combination can never be observed from outside.
    """

    def __init__(self, query: Optional[QueryFilter] = None, limit: int = DEFAULT_PAGE_SIZE):
        self.query = query if query is not None else QueryFilter(limit=limit)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def set_field(self, level: str, value: Optional[str]) -> QueryFilter:
        self.query = apply_field_change(self.query, level, value)
        logger.debug(f"Filter {level} -> {value!r}; now {self.query.location_params()}")
        return self.query

    def set_search(self, text: Optional[str]) -> QueryFilter:
        self.query = replace(self.query, search=text, page=1)
        return self.query

    def set_page(self, page: int) -> QueryFilter:
        self.query = replace(self.query, page=page)
        return self.query

    def clamp_page(self, pagination: PaginationInfo) -> bool:
        """
        Move back to the last page when the cursor is past the end.

        Happens after deleting the only record on the last page. Returns
        True when the page changed.
        """
        last_page = max(pagination.total_pages, 1)
        if self.query.page <= last_page:
            return False
        logger.info(f"Page {self.query.page} is past the end; moving to {last_page}")
        self.set_page(last_page)
        return True

    def set_limit(self, limit: int) -> QueryFilter:
        self.query = replace(self.query, limit=limit, page=1)
        return self.query

    def clear(self) -> QueryFilter:
        """Back to the unfiltered first page; the page size is kept."""
        self.query = QueryFilter(limit=self.query.limit)
        return self.query

    def reconcile(self, options_by_level: Mapping[str, Sequence[str]]) -> bool:
        """
        Drop selections that are no longer offered by their option list.

        Levels missing from ``options_by_level`` (options not loaded) are
        left alone. Returns True when the selection changed.
        """
        for level in LOCATION_LEVELS:
            value = getattr(self.query, level)
            if value is None or level not in options_by_level:
                continue
            if value not in options_by_level[level]:
                logger.info(f"Clearing stale {level} selection {value!r}")
                self.set_field(level, None)
                return True
        return False

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def location(self) -> HierarchicalFilter:
        return self.query.location()

    @property
    def has_active_filters(self) -> bool:
        return self.query.depth > 0 or bool(self.query.search)

    @property
    def active_filter_count(self) -> int:
        return self.query.depth + (1 if self.query.search else 0)

    @property
    def active_filter_labels(self) -> List[str]:
        labels = [
            f"{level.title()}: {value}"
            for level, value in self.query.location_params().items()
        ]
        if self.query.search:
            labels.append(f"Search: {self.query.search}")
        return labels

    def is_enabled(self, level: str) -> bool:
        """A dropdown is usable only once its parent level is selected."""
        parents = ancestors_of(level)
        return not parents or getattr(self.query, parents[-1]) is not None

    def option_keys(self) -> Dict[str, Optional[Tuple[str, ...]]]:
        location = self.location
        return {level: option_key(level, location) for level in LOCATION_LEVELS}
