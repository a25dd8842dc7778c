"""
REST client for the UDISE data API.

Wraps a ``requests`` session with:
- bearer-token injection from the explicit Session object
- bounded retries for idempotent reads (urllib3 Retry on the adapter)
- translation of HTTP failures into a small error hierarchy

Error taxonomy:
- NetworkError: connection failures, timeouts, retries exhausted
- AuthenticationError: 401, the session is cleared before raising
- ValidationError: 400/422, carries per-field messages when the server sends them
- NotFoundError: 404
- ServerError: any other 5xx
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import (
    API_BASE_URL,
    API_RETRIES,
    API_RETRY_BACKOFF,
    API_RETRY_STATUSES,
    API_TIMEOUT,
    ENDPOINTS,
)
from .models import (
    AuthResult,
    DistributionData,
    FilterOptions,
    HierarchicalFilter,
    QueryFilter,
    School,
    SchoolPage,
    User,
)
from .session import Session

# Configure logging
logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class ApiError(Exception):
    """Base class for every failure talking to the API."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class NetworkError(ApiError):
    pass


class AuthenticationError(ApiError):
    pass


class ValidationError(ApiError):

    @property
    def field_errors(self) -> Dict[str, str]:
        """
        Per-field messages from the error payload.

        Accepts ``{"field": "msg"}`` dicts and lists of
        ``{"field"|"path"|"param": ..., "message"|"msg": ...}`` entries.
        Plain string details are not attributable to a field and are skipped.
        """
        details = self.details
        if isinstance(details, dict):
            return {str(k): str(v) for k, v in details.items()}

        errors: Dict[str, str] = {}
        if isinstance(details, list):
            for item in details:
                if not isinstance(item, dict):
                    continue
                name = item.get('field') or item.get('path') or item.get('param')
                if isinstance(name, list):
                    name = '.'.join(str(part) for part in name)
                text = item.get('message') or item.get('msg')
                if name and text:
                    errors[str(name)] = str(text)
        return errors

    @property
    def messages(self) -> List[str]:
        if isinstance(self.details, list):
            return [str(item) for item in self.details if isinstance(item, str)]
        return []


class NotFoundError(ApiError):
    pass


class ServerError(ApiError):
    pass


# ============================================================================
# Client
# ============================================================================

def build_http_session(retries: int = API_RETRIES) -> requests.Session:
    """requests.Session that retries idempotent reads a bounded number of times."""
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=API_RETRY_BACKOFF,
        status_forcelist=API_RETRY_STATUSES,
        allowed_methods=frozenset(['GET', 'HEAD', 'OPTIONS']),
    )
    adapter = HTTPAdapter(max_retries=retry)
    http = requests.Session()
    http.mount('http://', adapter)
    http.mount('https://', adapter)
    http.headers.update({'Content-Type': 'application/json'})
    return http


def _unwrap(payload: Any, marker: str) -> Any:
    """Strip a ``{"data": ...}``-style envelope unless ``marker`` is already at the top."""
    if isinstance(payload, dict) and marker not in payload:
        for key in ('data', 'school', 'result'):
            if isinstance(payload.get(key), dict):
                return payload[key]
    return payload


class ApiClient:
    """Thin, typed wrapper around the dashboard REST endpoints."""

    def __init__(
        self,
        session: Session,
        base_url: str = API_BASE_URL,
        timeout: float = API_TIMEOUT,
        retries: int = API_RETRIES,
        http: Optional[requests.Session] = None
    ):
        self.session = session
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = http if http is not None else build_http_session(retries)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {}
        if self.session.token:
            headers['Authorization'] = f"Bearer {self.session.token}"

        try:
            response = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"{method} {path} timed out after {self.timeout}s")
            raise NetworkError(f"Request timed out: {method} {path}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise NetworkError(f"Could not reach the server: {e}") from e

        return self._handle_response(method, path, response)

    def _handle_response(self, method: str, path: str, response: requests.Response) -> Any:
        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}

        status = response.status_code
        if status < 400:
            return payload

        body = payload if isinstance(payload, dict) else {}
        message = (
            body.get('error')
            or body.get('message')
            or response.reason
            or f"HTTP {status}"
        )
        details = body.get('details')
        logger.warning(f"{method} {path} -> {status}: {message}")

        if status == 401:
            # Token expired or invalid
            self.session.clear()
            raise AuthenticationError(message, status, details)
        if status in (400, 422):
            raise ValidationError(message, status, details)
        if status == 404:
            raise NotFoundError(message, status, details)
        if status >= 500:
            raise ServerError(message, status, details)
        raise ApiError(message, status, details)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def list_schools(self, query: QueryFilter) -> SchoolPage:
        """One page of schools; a 404 is treated as an empty result."""
        try:
            payload = self._request('GET', ENDPOINTS['schools'], params=query.to_params())
        except NotFoundError:
            return SchoolPage.empty(query)
        return SchoolPage.from_dict(payload if isinstance(payload, dict) else {}, query)

    def get_school(self, school_id: str) -> School:
        payload = self._request('GET', f"{ENDPOINTS['schools']}/{school_id}")
        return School.from_dict(_unwrap(payload, 'udise_code'))

    def create_school(self, data: Dict[str, Any]) -> School:
        payload = self._request('POST', ENDPOINTS['schools'], json=data)
        return School.from_dict(_unwrap(payload, 'udise_code'))

    def update_school(self, school_id: str, data: Dict[str, Any]) -> School:
        payload = self._request('PUT', f"{ENDPOINTS['schools']}/{school_id}", json=data)
        return School.from_dict(_unwrap(payload, 'udise_code'))

    def delete_school(self, school_id: str) -> Optional[School]:
        payload = self._request('DELETE', f"{ENDPOINTS['schools']}/{school_id}")
        record = _unwrap(payload, 'udise_code')
        if isinstance(record, dict) and record.get('udise_code'):
            return School.from_dict(record)
        return None

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def get_distribution(self, location: HierarchicalFilter) -> DistributionData:
        payload = self._request(
            'GET', ENDPOINTS['distribution'], params=location.location_params()
        )
        return DistributionData.from_dict(_unwrap(payload, 'managementTypeDistribution'))

    def get_filter_options(self, location: HierarchicalFilter) -> FilterOptions:
        """Option lists narrowed by state/district/block; village never narrows."""
        params = location.location_params()
        params.pop('village', None)
        payload = self._request('GET', ENDPOINTS['filters'], params=params)
        return FilterOptions.from_dict(_unwrap(payload, 'states'))

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _authenticate(self, endpoint: str, email: str, password: str) -> AuthResult:
        payload = self._request('POST', ENDPOINTS[endpoint], json={
            'email': email,
            'password': password,
        })
        payload = _unwrap(payload, 'token')
        token = payload.get('token') if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError(f"{endpoint.title()} failed: no token returned")

        auth = AuthResult(
            user=User.from_dict(payload.get('user') or {'email': email}),
            token=token,
            message=payload.get('message', ''),
        )
        self.session.bind(auth)
        logger.info(f"{endpoint.title()} succeeded for {auth.user.email}")
        return auth

    def login(self, email: str, password: str) -> AuthResult:
        return self._authenticate('login', email, password)

    def signup(self, email: str, password: str) -> AuthResult:
        return self._authenticate('signup', email, password)

    def me(self) -> User:
        payload = self._request('GET', ENDPOINTS['me'])
        data = payload.get('user') if isinstance(payload, dict) else None
        if data is None and isinstance(payload, dict):
            data = _unwrap(payload, 'email')
            if 'email' not in data:
                data = None
        if not data:
            self.session.clear()
            raise AuthenticationError("Session is no longer valid")
        user = User.from_dict(data)
        self.session.set_user(user)
        return user

    def restore(self) -> Optional[User]:
        """
        Hydrate the session from storage and confirm the token with /auth/me.

        Any failure drops the stored token so the user is sent to login.
        """
        if not self.session.hydrate():
            return None
        try:
            return self.me()
        except ApiError as e:
            logger.warning(f"Stored session rejected: {e.message}")
            self.session.clear()
            return None

    def logout(self) -> None:
        if self.session.token:
            try:
                self._request('POST', ENDPOINTS['logout'])
            except ApiError as e:
                logger.info(f"Server-side logout skipped: {e.message}")
        self.session.clear()
