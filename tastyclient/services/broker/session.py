"""
Session Management
==================
Owns the session token lifecycle for one BrokerClient.

States:
    Unauthenticated --login()--> Authenticated --logout()--> Unauthenticated
    Authenticated decays to Expired by clock; ensure_valid_token() notices
    lazily on the next authenticated call. There is no silent refresh.

A Session is not internally synchronized. Share one client across threads
only behind an external lock, or use one client per logical session.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from tastyclient.config import Config
from tastyclient.services.broker.exceptions import (
    BrokerAPIException,
    BrokerAuthException,
    BrokerSessionExpiredException,
)
from tastyclient.utils.timestamps import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


class AuthUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    email: Optional[str] = None
    username: Optional[str] = None
    external_id: Optional[str] = Field(default=None, alias='external-id')


class AuthResponse(BaseModel):
    """Body of POST /sessions (kebab-case, with snake_case accepted too)."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    session_token: str = Field(validation_alias=AliasChoices('session-token', 'session_token'))
    remember_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('remember-token', 'remember_token', 'remember-me-token', 'remember_me_token'),
    )
    # Any shape; _parse_expiry falls back when parse_timestamp cannot read it
    session_expiration: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices('session-expiration', 'session_expiration', 'expires-at', 'expires_at'),
    )
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices('id', 'session-id', 'session_id'))
    user: Optional[AuthUser] = None

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v):
        if isinstance(v, int):
            return str(v)
        return v


@dataclass
class Session:
    """In-memory session state. An empty session_token means unauthenticated."""
    base_url: str
    session_token: str = ''
    remember_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    session_id: str = ''
    user: dict = field(default_factory=dict)
    expiry_margin: float = Config.SESSION_EXPIRY_MARGIN

    @property
    def is_authenticated(self) -> bool:
        return bool(self.session_token)

    def time_until_expiry(self) -> Optional[float]:
        """Seconds until expiry (negative once expired), None if unknown."""
        if self.expires_at is None:
            return None
        return (self.expires_at - utcnow()).total_seconds()

    def is_expired(self) -> bool:
        remaining = self.time_until_expiry()
        return remaining is not None and remaining <= 0

    def ensure_valid_token(self):
        """Fail closed unless a token is set and outside the expiry margin."""
        if not self.session_token:
            raise BrokerAuthException("No active session, authentication required")
        remaining = self.time_until_expiry()
        if remaining is None or remaining <= self.expiry_margin:
            raise BrokerSessionExpiredException(
                "Session expired, re-authentication required",
                status_code=401,
            )

    def clear(self):
        self.session_token = ''
        self.session_id = ''
        self.expires_at = None
        self.user = {}


class SessionManager:
    """Login / logout / remember-me handling on top of the request pipeline."""

    def __init__(self, client):
        self.client = client

    @property
    def session(self) -> Session:
        return self.client.session

    # ─── Login ──────────────────────────────────────────────────────

    def login(self, username: str, password: str, remember_me: bool = False, cancel=None):
        """Authenticate with username + password.

        Returns:
            (session_token, remember_token, expires_at)
        """
        body = {"login": username, "password": password}
        if remember_me:
            body["remember-me"] = True
        return self._authenticate(body, username, cancel)

    def login_with_remember_token(self, username: str, remember_token: str, cancel=None):
        """Authenticate with a saved remember-me token instead of a password."""
        if not remember_token:
            raise BrokerAuthException("Remember-me token is required")
        body = {
            "login": username,
            "remember-me-token": remember_token,
            "remember-me": True,
        }
        return self._authenticate(body, username, cancel)

    def _authenticate(self, body: dict, username: str, cancel):
        auth = self.client._request(
            'POST', '/sessions', body=body, auth=False, model=AuthResponse, cancel=cancel,
        )

        expires_at = self._parse_expiry(auth.session_expiration)

        # Commit only after a fully decoded response
        session = self.session
        session.session_token = auth.session_token
        if auth.remember_token:
            session.remember_token = auth.remember_token
        session.expires_at = expires_at
        session.user = auth.user.model_dump(by_alias=True, exclude_none=True) if auth.user else {}
        session.session_id = auth.id or (auth.user.external_id if auth.user else None) or ''

        logger.info(
            f"Session established for {username} "
            f"(expires={expires_at.isoformat()}, remember={bool(auth.remember_token)})"
        )
        return session.session_token, session.remember_token, session.expires_at

    @staticmethod
    def _parse_expiry(raw) -> datetime:
        expires_at = parse_timestamp(raw)
        if expires_at is None:
            expires_at = utcnow() + timedelta(seconds=Config.SESSION_FALLBACK_LIFETIME)
            logger.warning(
                f"Could not parse session expiration {raw!r}; "
                f"assuming {expires_at.isoformat()}"
            )
        return expires_at

    # ─── Token checks ───────────────────────────────────────────────

    def ensure_valid_token(self):
        self.session.ensure_valid_token()

    def validate(self, cancel=None) -> bool:
        """Ask the server whether the current token is still accepted."""
        try:
            self.client._request('POST', '/sessions/validate', auth=True, cancel=cancel)
        except BrokerAPIException as e:
            if e.is_unauthorized:
                return False
            raise
        return True

    # ─── Logout ─────────────────────────────────────────────────────

    def logout(self, cancel=None):
        session = self.session
        if not session.session_token or not session.session_id:
            raise BrokerAuthException("No active session")

        self.client._request(
            'DELETE', f'/sessions/{session.session_id}', auth=True, cancel=cancel,
            check_expiry=False,
        )
        session.session_token = ''
        session.session_id = ''
        logger.info("Session destroyed")

    def destroy_remember_me_token(self, remember_token: str, cancel=None):
        """Invalidate a remember-me token server-side."""
        self.client._request(
            'DELETE', '/sessions/remember-me',
            body={"remember-me-token": remember_token},
            auth=False, cancel=cancel,
        )
        if self.session.remember_token == remember_token:
            self.session.remember_token = None
        logger.info("Remember-me token destroyed")
