"""Identity verification and display-name lookup.

Both are external collaborators; the static implementations back local
development, seeding and tests.
"""

from dataclasses import dataclass, field
from typing import Protocol

from loan_tracker.exceptions import AuthenticationError

DEFAULT_DISPLAY_NAME = "User"


class IdentityVerifier(Protocol):
    def verify(self, credential: str | None) -> str:
        """Return the stable user id for a credential or raise ``AuthenticationError``."""


class UserDirectory(Protocol):
    def display_name(self, user_id: str) -> str:
        """Human-readable name for a user id."""


@dataclass
class StaticIdentityVerifier:
    """Maps bearer tokens to user ids."""

    tokens: dict[str, str] = field(default_factory=dict)

    def register(self, token: str, user_id: str) -> None:
        self.tokens[token] = user_id

    def verify(self, credential: str | None) -> str:
        if not credential:
            raise AuthenticationError("No token provided")
        token = credential.removeprefix("Bearer ").strip()
        user_id = self.tokens.get(token)
        if user_id is None:
            raise AuthenticationError("Invalid token")
        return user_id


@dataclass
class StaticUserDirectory:
    """In-memory display names."""

    names: dict[str, str] = field(default_factory=dict)

    def register(self, user_id: str, name: str) -> None:
        self.names[user_id] = name

    def display_name(self, user_id: str) -> str:
        return self.names.get(user_id) or DEFAULT_DISPLAY_NAME
