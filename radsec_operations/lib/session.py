"""Opaque identity service session credentials."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class Session(ABC):
    """Session credential attached to every call after key login."""

    token: str

    @abstractmethod
    def auth_headers(self) -> dict[str, str]:
        """Headers that authenticate a request with this session."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(token='***')"


@dataclass(frozen=True, repr=False)
class CookieSession(Session):
    """Session carried as a Cookie header built from key-login cookies."""

    @classmethod
    def from_cookies(cls, cookies: Iterable[tuple[str, str]]) -> "CookieSession":
        """Build a session from (name, value) pairs in response order."""
        return cls(token=cookie_token(cookies))

    def auth_headers(self) -> dict[str, str]:
        return {"Cookie": self.token}


@dataclass(frozen=True, repr=False)
class BearerSession(Session):
    """Session carried as an OAuth-style bearer token."""

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def cookie_token(cookies: Iterable[tuple[str, str]]) -> str:
    """Join cookies as ``name=value`` pairs separated by commas.

    An empty cookie set yields an empty string.
    """
    return ",".join(f"{name}={value}" for name, value in cookies)
