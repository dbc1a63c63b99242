"""Connection handshake credentials.

A bearer credential is validated exactly once, when a session connects.
Token minting and signature verification belong to the
:class:`CredentialValidator` implementation, not to this package.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

BEARER_PREFIX = "bearer "


class CredentialValidator(Protocol):
    """Resolve a bearer token to a user id, or None if invalid."""

    def validate(self, token: str) -> int | None: ...


def parse_bearer(header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` value.

    Returns None for a missing header, another scheme, or an empty token.
    """
    if not header:
        return None
    if header[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


class StaticTokenValidator:
    """Validator over a fixed token -> user id table."""

    def __init__(self, tokens: Mapping[str, int]) -> None:
        self._tokens = dict(tokens)

    def validate(self, token: str) -> int | None:
        return self._tokens.get(token)
