"""
Security Collaborators

The account entry engine never hashes passwords, mints tokens or reads the
clock itself. It receives these collaborators, so tests can swap in fixed
clocks and the deployment can swap hashing schemes without touching the core.

Default implementations:
- PasslibPasswordHasher: passlib CryptContext with pbkdf2_sha256
- JWTSessionIssuer: HS256-signed tokens via PyJWT
- SystemClock: the local calendar date
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import jwt
from jwt import InvalidTokenError
from passlib.context import CryptContext

from src.config import get_settings
from src.config.settings import SecuritySettings
from src.models.account import Session


class PasswordHasher(ABC):
    """One-way password hashing."""

    @abstractmethod
    def hash(self, plaintext: str) -> str:
        pass

    @abstractmethod
    def verify(self, plaintext: str, hashed: str) -> bool:
        pass


class SessionIssuer(ABC):
    """Creates and revokes sessions."""

    @abstractmethod
    def issue(self, email: str) -> Session:
        pass

    @abstractmethod
    def revoke(self, token: str) -> None:
        """Invalidate a session (logout)."""
        pass

    @abstractmethod
    def verify(self, token: str) -> Optional[str]:
        """Return the account email for a live session token, else None."""
        pass


class Clock(ABC):
    """Source of "today" for date defaults."""

    @abstractmethod
    def today(self) -> date:
        pass


class PasslibPasswordHasher(PasswordHasher):
    """pbkdf2_sha256 hashes through a passlib CryptContext."""

    def __init__(self, settings: Optional[SecuritySettings] = None):
        settings = settings or get_settings().security
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__default_rounds=settings.password_hash_rounds,
        )

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        return self._context.verify(plaintext, hashed)


class JWTSessionIssuer(SessionIssuer):
    """
    Issues signed session tokens.

    Revoked token ids are remembered in memory until the process exits;
    a revoked token fails `verify` even if it has not expired yet.
    """

    def __init__(self, settings: Optional[SecuritySettings] = None):
        self._settings = settings or get_settings().security
        self._revoked: set[str] = set()

    def issue(self, email: str) -> Session:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self._settings.session_ttl_minutes)
        token = jwt.encode(
            {
                "sub": email,
                "iat": issued_at,
                "exp": expires_at,
                "jti": uuid4().hex,
            },
            self._settings.session_secret_key,
            algorithm=self._settings.session_algorithm,
        )
        return Session(
            account_email=email,
            issued_at=issued_at,
            expires_at=expires_at,
            token=token,
        )

    def _decode(self, token: str) -> Optional[dict]:
        try:
            return jwt.decode(
                token,
                self._settings.session_secret_key,
                algorithms=[self._settings.session_algorithm],
            )
        except InvalidTokenError:
            return None

    def revoke(self, token: str) -> None:
        payload = self._decode(token)
        if payload is not None:
            self._revoked.add(payload["jti"])

    def verify(self, token: str) -> Optional[str]:
        payload = self._decode(token)
        if payload is None or payload.get("jti") in self._revoked:
            return None
        return payload.get("sub")


class SystemClock(Clock):
    def today(self) -> date:
        return date.today()
