"""
Hosted relay record as read from the policy store.

A [Relay][relaypolicy.models.relay.Relay] carries the identity of a hosted
relay together with the policy flags the decision engine composes. It is a
pure value object: every decision re-reads it from the store, so no
instance outlives a single request.

See Also:
    [relaypolicy.core.store][]: Produces relays via
        ``PolicyStore.get_relay()`` and friends.
    [relaypolicy.services.authorization][]: Consumes the policy flags.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._validation import validate_bool, validate_str_no_null, validate_str_not_empty
from .constants import RelayStatus


if TYPE_CHECKING:
    from collections.abc import Mapping


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable relay record with its write-access policy flags.

    Attributes:
        id: Primary key of the relay row.
        name: Subdomain label for internal relays (``<name>.<domain>``).
        domain: Parent domain for internal relays, or the full hostname for
            external relays.
        owner_id: Id of the owning user. Ownership is exclusive.
        status: Lifecycle status, or ``None`` when never provisioned.
        default_message_policy: ``True`` allows every writer by default,
            ``False`` denies by default.
        auth_required: Clients must prove their identity (NIP-42) first.
        allow_tagged: Events merely tagging an allow-listed pubkey are
            accepted (partial authorization).
        allow_giftwrap: Gift-wrapped events are accepted.
        is_external: Hosted on a domain outside the platform's subdomain
            scheme.
        request_payment: Unpaid clients are offered an invoice.
        details: Free-text relay description.
        banner_image: Relay icon URL.

    Raises:
        TypeError: If a flag is not a ``bool`` or a text field is not a ``str``.
        ValueError: If ``id`` is empty or ``status`` is not a known status.

    Examples:
        ```python
        relay = Relay(id="r1", name="nostr", domain="example.com", owner_id="u1")
        relay.status  # None
        ```
    """

    id: str
    name: str
    domain: str
    owner_id: str
    status: RelayStatus | None = None
    default_message_policy: bool = False
    auth_required: bool = False
    allow_tagged: bool = False
    allow_giftwrap: bool = False
    is_external: bool = False
    request_payment: bool = False
    details: str | None = None
    banner_image: str | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_no_null(self.name, "name")
        validate_str_no_null(self.domain, "domain")
        validate_str_not_empty(self.owner_id, "owner_id")
        for flag in (
            "default_message_policy",
            "auth_required",
            "allow_tagged",
            "allow_giftwrap",
            "is_external",
            "request_payment",
        ):
            validate_bool(getattr(self, flag), flag)
        if self.status is not None:
            object.__setattr__(self, "status", RelayStatus(self.status))

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> Relay:
        """Build a relay from a ``relay`` table row.

        Nullable boolean columns are read as ``False``. A status this
        subsystem does not know is read as ``None``: lifecycle states are owned
        by the provisioning daemons, and write authorization ignores them.
        """
        status = row["status"]
        if status is not None:
            try:
                status = RelayStatus(status)
            except ValueError:
                logger.debug("unknown relay status %r on relay %s", status, row["id"])
                status = None
        return cls(
            id=row["id"],
            name=row["name"] or "",
            domain=row["domain"] or "",
            owner_id=row["owner_id"],
            status=status,
            default_message_policy=bool(row["default_message_policy"]),
            auth_required=bool(row["auth_required"]),
            allow_tagged=bool(row["allow_tagged"]),
            allow_giftwrap=bool(row["allow_giftwrap"]),
            is_external=bool(row["is_external"]),
            request_payment=bool(row["request_payment"]),
            details=row["details"],
            banner_image=row["banner_image"],
        )
