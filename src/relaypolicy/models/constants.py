"""Shared constants for the models layer.

Defines the enumerations used across the policy subsystem. Placing them
here avoids circular dependencies between the models, nips, and services
layers.

See Also:
    [relaypolicy.models.relay][]: Uses [RelayStatus][relaypolicy.models.constants.RelayStatus].
    [relaypolicy.models.acl][]: Uses [ListType][relaypolicy.models.constants.ListType].
    [relaypolicy.services.authorization][]: Returns
        [AuthorizationStatus][relaypolicy.models.constants.AuthorizationStatus].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class RelayStatus(StrEnum):
    """Lifecycle status of a hosted relay.

    A relay row may also carry no status at all (``None``), which is how
    freshly created relays look before provisioning starts.

    Attributes:
        PROVISION: Waiting for the provisioning daemon to pick it up.
        PROVISIONING: Provisioning in progress.
        RUNNING: Live and accepting connections.
        PAUSED: Suspended (e.g. unpaid), connections are refused upstream.
        DELETING: Marked for deletion, lists are kept until the cascade runs.
        DELETED: Torn down by the infrastructure daemons.
    """

    PROVISION = "provision"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    PAUSED = "paused"
    DELETING = "deleting"
    DELETED = "deleted"


# Statuses under which a relay is reachable by the connection interceptor.
ACTIVE_STATUSES: frozenset[RelayStatus] = frozenset({RelayStatus.RUNNING, RelayStatus.PROVISION})


class ListType(StrEnum):
    """Which of a relay's two policy lists an entry belongs to."""

    ALLOW = "allow"
    BLOCK = "block"

    @property
    def opposite(self) -> ListType:
        """The list a pubkey must be evicted from when added to this one."""
        return ListType.BLOCK if self is ListType.ALLOW else ListType.ALLOW


class JobKind(StrEnum):
    """Downstream job kinds enqueued by the ACL mutation service.

    Attributes:
        DELETE_PUBKEY: Retroactively delete every stored event by a pubkey.
        DELETE_EVENT: Delete a single stored event by id.
    """

    DELETE_PUBKEY = "deletePubkey"
    DELETE_EVENT = "deleteEvent"


class JobStatus(StrEnum):
    """Processing status of a job row. This subsystem only ever writes ``queue``."""

    QUEUE = "queue"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class AuthorizationStatus(StrEnum):
    """Outcome of an inbound-write authorization query.

    ``FULL`` and ``PARTIAL`` are deliberately distinct: relay daemons
    apply extra event-kind filtering to partial grants, which only permit
    events that reference allow-listed identities through tags.

    Attributes:
        NOT_FOUND: No relay is served under the requested hostname.
        UNAUTHORIZED: The relay exists but the pubkey may not write.
        FULL: Unrestricted write access.
        PARTIAL: Write access limited to tag-referenced allowances.
    """

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FULL = "full"
    PARTIAL = "partial"

    @property
    def authorized(self) -> bool:
        """Whether the status grants any write access at all."""
        return self in (AuthorizationStatus.FULL, AuthorizationStatus.PARTIAL)


class ConnectionMode(StrEnum):
    """How the connection interceptor must treat a relay's clients.

    Attributes:
        AUTH_REQUIRED: Clients must complete NIP-42 AUTH before writing.
        AUTH_NONE: No transport-level identity proof is required.
        AUTH_NONE_REQUEST_PAYMENT: No AUTH, but unpaid clients are offered
            an invoice.
    """

    AUTH_REQUIRED = "authrequired"
    AUTH_NONE = "authnone"
    AUTH_NONE_REQUEST_PAYMENT = "authnone:requestpayment"


class EventKind(IntEnum):
    """Nostr event kinds this subsystem inspects.

    Attributes:
        HTTP_AUTH: Kind 27235, NIP-98 HTTP authorization event.
    """

    HTTP_AUTH = 27_235


EVENT_KIND_MAX = 65_535
