"""API key resolution with constant-time comparison.

The index is built once from the loaded caller identities and never mutated,
so concurrent requests can read it without synchronization.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Iterable, Union

from dispatch.domain.models import CallerIdentity


@dataclass(frozen=True)
class AdminPrincipal:
    """Holder of the admin API key. Limited to observability endpoints."""

    kind = "admin"


@dataclass(frozen=True)
class CallerPrincipal:
    identity: CallerIdentity

    kind = "caller"


Principal = Union[AdminPrincipal, CallerPrincipal]

ADMIN = AdminPrincipal()


def safe_compare(presented: str, expected: str) -> bool:
    """Compare two secrets without leaking content through timing.

    Both operands are zero-padded to the same length before the byte-wise
    comparison, and the length check is combined with ``&`` so neither
    result short-circuits the other.
    """
    a = presented.encode("utf-8")
    b = expected.encode("utf-8")
    size = max(len(a), len(b))
    padded_equal = hmac.compare_digest(a.ljust(size, b"\0"), b.ljust(size, b"\0"))
    return padded_equal & (len(a) == len(b))


class CredentialIndex:
    """Resolves a presented API key to the admin or a caller identity."""

    def __init__(self, identities: Iterable[CallerIdentity], admin_secret: str) -> None:
        if not admin_secret:
            raise ValueError("admin secret must not be empty")
        self._admin_secret = admin_secret
        # Uniqueness of caller secrets is checked by the config loader
        self._entries: tuple[tuple[str, CallerIdentity], ...] = tuple(
            (identity.secret, identity) for identity in identities
        )
        self._by_id = {identity.id: identity for _, identity in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, presented: str | None) -> Principal | None:
        """Return the principal owning ``presented``, or None if unknown."""
        if not presented:
            return None

        if safe_compare(presented, self._admin_secret):
            return ADMIN

        for secret, identity in self._entries:
            if safe_compare(presented, secret):
                return CallerPrincipal(identity)

        return None

    def get_caller(self, caller_id: str) -> CallerIdentity | None:
        """Look up an identity by its config key (admin test endpoint)."""
        return self._by_id.get(caller_id)
