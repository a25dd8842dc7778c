"""
UDISE school dashboard.

Browse, filter and edit UDISE school records (state -> district -> block ->
village) through the remote data API.
"""

from .api_client import ApiClient, ApiError, AuthenticationError
from .filters import FilterState
from .models import HierarchicalFilter, QueryFilter, School
from .session import FileTokenStore, Session

__version__ = '1.0.0'

__all__ = [
    'ApiClient',
    'ApiError',
    'AuthenticationError',
    'FilterState',
    'HierarchicalFilter',
    'QueryFilter',
    'School',
    'FileTokenStore',
    'Session',
]
