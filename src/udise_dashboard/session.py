"""
Authenticated session for the dashboard.

A Session is created once per browser session and handed to the API client
explicitly. It owns the bearer token and the signed-in user, hydrates the
token from a TokenStore on start-up, and wipes both on logout or whenever
the API answers 401.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .config import SESSION_FILE
from .models import AuthResult, User

# Configure logging
logger = logging.getLogger(__name__)


class TokenStore:
    """Persistence for the bearer token between app restarts."""

    def load(self) -> Optional[str]:
        raise NotImplementedError

    def save(self, token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore(TokenStore):
    """Keeps the token in a small JSON file (default: ~/.udise_dashboard/session.json)."""

    def __init__(self, path: Path = SESSION_FILE):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None
        token = data.get('token') if isinstance(data, dict) else None
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump({'token': token}, f)
        logger.info(f"Session saved to {self.path}")

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Session file removed: {self.path}")


class Session:
    """Bearer token plus the user it belongs to."""

    def __init__(self, store: Optional[TokenStore] = None):
        self.store = store if store is not None else MemoryTokenStore()
        self.token: Optional[str] = None
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def hydrate(self) -> bool:
        """Load a previously stored token. Returns True when one was found."""
        self.token = self.store.load()
        self.user = None
        if self.token:
            logger.info("Restored stored session token")
        return self.token is not None

    def bind(self, auth: AuthResult) -> None:
        self.token = auth.token
        self.user = auth.user
        self.store.save(auth.token)

    def set_user(self, user: User) -> None:
        self.user = user

    def clear(self) -> None:
        self.token = None
        self.user = None
        self.store.clear()
