"""relaypolicy exception hierarchy.

Provides typed exceptions for every failure a policy decision or an
administrative command can run into. Callers distinguish malformed input
from failed authentication, missing authority, missing records, and store
failures by catching the specific subclass, and ``CancelledError`` is never
swallowed along the way.

Exception hierarchy:

```text
PolicyError (base, never raised directly)
├── ConfigurationError       config validation, bad YAML, missing env vars
├── InvalidInputError        malformed pubkey, event id, kind, or text
│   ├── MissingParamsError   too few command parameters
│   └── UnknownMethodError   command name not supported
├── AuthenticationError      NIP-98 credential rejected (carries a reason)
├── AuthorizationError       valid identity without authority
├── NotFoundError            referenced record does not exist
│   └── RelayNotFoundError
└── DatabaseError            pool/store/query failures
    ├── ConnectionPoolError  transient: pool exhausted, network blip
    └── QueryError           permanent: bad SQL, constraint violation
```

Input errors are always raised before the store is touched.

See Also:
    [Pool][relaypolicy.core.pool.Pool]: Raises
        [ConnectionPoolError][relaypolicy.core.exceptions.ConnectionPoolError]
        on transient connection failures.
    [PolicyStore][relaypolicy.core.store.PolicyStore]: Raises
        [QueryError][relaypolicy.core.exceptions.QueryError] on permanent
        database errors.
    [Dispatcher][relaypolicy.services.dispatcher.Dispatcher]: Maps every
        subclass to a stable error code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from enum import StrEnum


class PolicyError(Exception):
    """Base exception for all relaypolicy errors.

    Never raised directly; always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(PolicyError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    See Also:
        [load_yaml()][relaypolicy.core.yaml.load_yaml]: YAML loading function
            that may trigger configuration errors.
    """


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class InvalidInputError(PolicyError):
    """Malformed caller input: pubkey, event id, kind, hostname, or text.

    See Also:
        [MissingParamsError][relaypolicy.core.exceptions.MissingParamsError]:
            Too few parameters for a command.
        [UnknownMethodError][relaypolicy.core.exceptions.UnknownMethodError]:
            Command name outside the supported set.
    """


class MissingParamsError(InvalidInputError):
    """A command was invoked with fewer parameters than it requires."""


class UnknownMethodError(InvalidInputError):
    """A command name is not one of the supported NIP-86 methods."""


# ---------------------------------------------------------------------------
# Authentication / authorization
# ---------------------------------------------------------------------------


class AuthenticationError(PolicyError):
    """A signed credential was rejected.

    Attributes:
        reason: Stable machine-readable failure reason, a
            [Nip98Failure][relaypolicy.nips.nip98.Nip98Failure] member.
    """

    def __init__(self, reason: StrEnum, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or str(reason))


class AuthorizationError(PolicyError):
    """The caller's identity is valid but carries no authority over the target."""


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class NotFoundError(PolicyError):
    """A referenced record does not exist."""


class RelayNotFoundError(NotFoundError):
    """No relay exists with the given id."""

    def __init__(self, relay_id: str) -> None:
        self.relay_id = relay_id
        super().__init__(f"relay not found: {relay_id}")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class DatabaseError(PolicyError):
    """Base for all database-related errors.

    See Also:
        [ConnectionPoolError][relaypolicy.core.exceptions.ConnectionPoolError]:
            Transient connection-level failures (retryable).
        [QueryError][relaypolicy.core.exceptions.QueryError]: Permanent
            query-level failures (not retryable).
    """


class ConnectionPoolError(DatabaseError):
    """Transient database error: pool exhausted, connection refused, network blip.

    Callers may retry after a backoff.
    """


class QueryError(DatabaseError):
    """Permanent database error: bad SQL, constraint violation, data integrity.

    Callers should NOT retry; the query itself is wrong.
    """
