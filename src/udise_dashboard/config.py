"""
Configuration for the UDISE dashboard.

All settings can be overridden through environment variables so the same
package runs against a local API during development and a hosted one in
production.
"""

import logging
import os
from pathlib import Path

# Configure logging
logger = logging.getLogger(__name__)


# ============================================================================
# API
# ============================================================================

API_BASE_URL = os.environ.get("UDISE_API_URL", "http://localhost:5000").rstrip("/")

# Seconds before a request is abandoned
API_TIMEOUT = float(os.environ.get("UDISE_API_TIMEOUT", "10"))

# Transport-level retries for idempotent requests
API_RETRIES = int(os.environ.get("UDISE_API_RETRIES", "2"))
API_RETRY_BACKOFF = 0.5
API_RETRY_STATUSES = (502, 503, 504)

ENDPOINTS = {
    'login': '/auth/login',
    'signup': '/auth/signup',
    'me': '/auth/me',
    'logout': '/auth/logout',
    'schools': '/data',
    'distribution': '/data/distribution',
    'filters': '/data/filters',
}


# ============================================================================
# Staleness windows (seconds)
# ============================================================================

RECORDS_TTL = 5 * 60          # records change rarely while browsing
DISTRIBUTION_TTL = 2 * 60     # charts should look fresh
FILTER_OPTIONS_TTL = 10 * 60  # option sets almost never change


# ============================================================================
# Pagination
# ============================================================================

MAX_PAGE_SIZE = 100


def _page_size(raw: str, fallback: int = 20) -> int:
    """Rows per page from the environment, clamped to 1..MAX_PAGE_SIZE."""
    try:
        size = int(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid UDISE_PAGE_SIZE {raw!r}; using {fallback}")
        return fallback
    clamped = min(max(size, 1), MAX_PAGE_SIZE)
    if clamped != size:
        logger.warning(f"UDISE_PAGE_SIZE {size} out of range; using {clamped}")
    return clamped


DEFAULT_PAGE_SIZE = _page_size(os.environ.get("UDISE_PAGE_SIZE", "20"))


# ============================================================================
# Session persistence
# ============================================================================

SESSION_FILE = Path(
    os.environ.get(
        "UDISE_SESSION_FILE",
        str(Path.home() / ".udise_dashboard" / "session.json")
    )
)


# ============================================================================
# Virtualized table
# ============================================================================

VIRTUAL_VIEWPORT_HEIGHT = 600
VIRTUAL_ROW_HEIGHT = 60
VIRTUAL_OVERSCAN = 1
