"""
Cached query layer.

Three logical queries, each an ``st.cache_data`` function keyed only by the
filter fields it depends on:

- records:        full QueryFilter          (RECORDS_TTL)
- distribution:   location filter only      (DISTRIBUTION_TTL)
- filter options: level + its ancestors     (FILTER_OPTIONS_TTL)

Identical keys inside the staleness window never reach the network.
Failures are not cached, so the next rerun fetches again; transport retries
happen inside the client. The API client is passed as ``_client`` so
Streamlit leaves it out of the cache key.

The caches are process-wide: every browser session served by this process
shares them. A session whose token has expired keeps seeing cached results,
without a 401, until the entry passes its TTL. This is acceptable because every
signed-in user sees the same data set; a session without a token never
reaches these queries because the app sends it to the login page first.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import streamlit as st

from .api_client import ApiClient, ApiError, AuthenticationError
from .config import DISTRIBUTION_TTL, FILTER_OPTIONS_TTL, RECORDS_TTL
from .filters import option_key
from .models import (
    LOCATION_LEVELS,
    DistributionData,
    HierarchicalFilter,
    QueryFilter,
    SchoolPage,
)

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Outcome of a query as seen by the presentation layer."""
    data: Any = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ============================================================================
# Cached fetchers
# ============================================================================

@st.cache_data(ttl=RECORDS_TTL, show_spinner=False)
def _fetch_records(
    _client: ApiClient,
    state: Optional[str],
    district: Optional[str],
    block: Optional[str],
    village: Optional[str],
    search: Optional[str],
    page: int,
    limit: int
) -> SchoolPage:
    query = QueryFilter(
        state=state, district=district, block=block, village=village,
        search=search, page=page, limit=limit
    )
    logger.info(f"Fetching records: {query.to_params()}")
    return _client.list_schools(query)


@st.cache_data(ttl=DISTRIBUTION_TTL, show_spinner=False)
def _fetch_distribution(
    _client: ApiClient,
    state: Optional[str],
    district: Optional[str],
    block: Optional[str],
    village: Optional[str]
) -> DistributionData:
    location = HierarchicalFilter(state=state, district=district, block=block, village=village)
    logger.info(f"Fetching distribution: {location.location_params()}")
    return _client.get_distribution(location)


@st.cache_data(ttl=FILTER_OPTIONS_TTL, show_spinner=False)
def _fetch_options(
    _client: ApiClient,
    level: str,
    state: Optional[str] = None,
    district: Optional[str] = None,
    block: Optional[str] = None
) -> list:
    location = HierarchicalFilter(state=state, district=district, block=block)
    logger.info(f"Fetching {level} options for {location.location_params()}")
    return _client.get_filter_options(location).for_level(level)


def _run(fetch, *args) -> QueryResult:
    try:
        return QueryResult(data=fetch(*args))
    except AuthenticationError:
        raise
    except ApiError as e:
        name = getattr(fetch, "__name__", "query")
        logger.error(f"Query {name} failed: {e.message}")
        return QueryResult(error=e)


# ============================================================================
# Public queries
# ============================================================================

def records_query(client: ApiClient, query: QueryFilter) -> QueryResult:
    """Current page of schools; ``data`` is a SchoolPage."""
    return _run(_fetch_records, client, *query.cache_key())


def distribution_query(client: ApiClient, location: HierarchicalFilter) -> QueryResult:
    """Category counts for the location; search and page do not affect the key."""
    return _run(_fetch_distribution, client, *location.location_key())


def options_query(client: ApiClient, level: str, location: HierarchicalFilter) -> QueryResult:
    """
    Dropdown values for ``level``, narrowed by its selected ancestors.

    Returns an empty list without a request when an ancestor is missing.
    """
    key = option_key(level, location)
    if key is None:
        return QueryResult(data=[])
    return _run(_fetch_options, client, level, *key)


def all_options(client: ApiClient, location: HierarchicalFilter) -> Dict[str, QueryResult]:
    return {level: options_query(client, level, location) for level in LOCATION_LEVELS}


# ============================================================================
# Invalidation
# ============================================================================

def invalidate_records() -> None:
    _fetch_records.clear()
    logger.info("Records cache invalidated")


def invalidate_distribution() -> None:
    _fetch_distribution.clear()


def invalidate_options() -> None:
    _fetch_options.clear()


def invalidate_all() -> None:
    """A create/update/delete changes the page, the counts and possibly the option lists."""
    invalidate_records()
    invalidate_distribution()
    invalidate_options()
