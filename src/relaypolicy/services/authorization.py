"""Authorization decision engine.

Answers three questions about a hosted relay, re-reading every input from
the [PolicyStore][relaypolicy.core.store.PolicyStore] on each call:

* **Administration authority**
  ([has_admin_authority()][relaypolicy.services.authorization.AuthorizationEngine.has_admin_authority]):
  may this pubkey manage the relay's lists and settings? Only the owner and
  the relay's moderators may. Platform super-admins are *not* granted
  administration authority by their flag.
* **Write authorization**
  ([authorize_write()][relaypolicy.services.authorization.AuthorizationEngine.authorize_write]):
  may this pubkey publish to the relay served under this hostname, and
  with full or partial access?
* **Connection mode**
  ([connection_mode()][relaypolicy.services.authorization.AuthorizationEngine.connection_mode]):
  must clients authenticate before writing?

Write authorization precedence, first match wins:

1. external relay with ``default_message_policy`` -> ``FULL``;
2. external relay with an allow-list entry for the pubkey -> ``FULL``,
   otherwise ``UNAUTHORIZED`` (external relays stop here);
3. platform super-admin -> ``FULL``;
4. ``default_message_policy`` -> ``FULL``;
5. relay owner -> ``FULL``;
6. relay moderator -> ``FULL``;
7. allow-list entry for the pubkey -> ``FULL``;
8. ``allow_tagged`` -> ``PARTIAL``;
9. ``UNAUTHORIZED``.

Allow-list entries are matched against both the hex and npub encodings of
the pubkey.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from relaypolicy.core.exceptions import AuthorizationError, InvalidInputError
from relaypolicy.core.logger import Logger
from relaypolicy.core.metrics import POLICY_DECISION_SECONDS, POLICY_DECISIONS_TOTAL
from relaypolicy.models.constants import (
    ACTIVE_STATUSES,
    AuthorizationStatus,
    ConnectionMode,
    ListType,
)
from relaypolicy.utils.keys import PubkeyForms, pubkey_forms


if TYPE_CHECKING:
    from relaypolicy.core.store import PolicyStore
    from relaypolicy.models import Relay


def normalize_hostname(hostname: str) -> str:
    """Lowercase *hostname* and drop surrounding space, a trailing dot, and a port."""
    host = hostname.strip().lower().rstrip(".")
    if host.count(":") == 1:
        host = host.rsplit(":", 1)[0]
    return host


def split_hostname(hostname: str) -> tuple[str, str]:
    """Split ``name.domain.tld`` into ``("name", "domain.tld")``.

    Raises:
        InvalidInputError: If the first label is empty.
    """
    name, _, domain = normalize_hostname(hostname).partition(".")
    if not name:
        raise InvalidInputError(f"hostname has no subdomain label: {hostname!r}")
    return name, domain


class AuthorizationEngine:
    """Stateless policy decisions over a [PolicyStore][relaypolicy.core.store.PolicyStore].

    Examples:
        ```python
        engine = AuthorizationEngine(store)

        status = await engine.authorize_write("nostr.example.com", pubkey)
        if status is AuthorizationStatus.PARTIAL:
            ...  # only accept events tagging allow-listed pubkeys
        ```
    """

    def __init__(self, store: PolicyStore) -> None:
        self._store = store
        self._logger = Logger("authorization")

    # -------------------------------------------------------------------------
    # Administration authority
    # -------------------------------------------------------------------------

    async def has_admin_authority(self, relay: Relay, pubkey: str) -> bool:
        """Whether *pubkey* owns or moderates *relay*.

        *pubkey* is the hex key recovered from a verified signature.
        """
        owner_pubkey = await self._store.get_owner_pubkey(relay.id)
        if owner_pubkey is not None and owner_pubkey == pubkey:
            granted = True
        else:
            moderators = await self._store.list_moderators(relay.id)
            granted = any(moderator.pubkey == pubkey for moderator in moderators)

        POLICY_DECISIONS_TOTAL.labels(mode="admin", outcome=str(granted).lower()).inc()
        self._logger.debug(
            "admin_authority_checked", relay_id=relay.id, pubkey=pubkey, granted=granted
        )
        return granted

    async def require_admin_authority(self, relay: Relay, pubkey: str) -> None:
        """Raise unless *pubkey* owns or moderates *relay*.

        Raises:
            AuthorizationError: If *pubkey* neither owns nor moderates *relay*.
        """
        if not await self.has_admin_authority(relay, pubkey):
            raise AuthorizationError("pubkey is not the owner or a moderator of this relay")

    # -------------------------------------------------------------------------
    # Write authorization
    # -------------------------------------------------------------------------

    async def _resolve(self, hostname: str) -> Relay | None:
        external = await self._store.find_external_relay(normalize_hostname(hostname))
        if external is not None:
            return external
        name, domain = split_hostname(hostname)
        return await self._store.find_relay(name, domain)

    async def _decide(self, relay: Relay, forms: PubkeyForms) -> AuthorizationStatus:
        if relay.is_external:
            if relay.default_message_policy:
                return AuthorizationStatus.FULL
            if await self._store.has_pubkey_entry(relay.id, ListType.ALLOW, forms):
                return AuthorizationStatus.FULL
            return AuthorizationStatus.UNAUTHORIZED

        admin = await self._store.find_admin_user(forms)
        if admin is not None:
            self._logger.debug("super_admin_write", relay_id=relay.id, user_id=admin.id)
            return AuthorizationStatus.FULL
        if relay.default_message_policy:
            return AuthorizationStatus.FULL
        if await self._store.get_owner_pubkey(relay.id) in forms:
            return AuthorizationStatus.FULL
        moderators = await self._store.list_moderators(relay.id)
        if any(moderator.pubkey in forms for moderator in moderators):
            return AuthorizationStatus.FULL
        if await self._store.has_pubkey_entry(relay.id, ListType.ALLOW, forms):
            return AuthorizationStatus.FULL
        if relay.allow_tagged:
            return AuthorizationStatus.PARTIAL
        return AuthorizationStatus.UNAUTHORIZED

    async def authorize_write(self, hostname: str, pubkey: str) -> AuthorizationStatus:
        """Decide whether *pubkey* may write to the relay served at *hostname*.

        Args:
            hostname: The relay's hostname, e.g. ``nostr.example.com``.
            pubkey: The writer's pubkey, hex or npub.

        Returns:
            ``NOT_FOUND`` when no relay is served at *hostname*, otherwise
            the first matching rule of the precedence list.

        Raises:
            InvalidInputError: If *pubkey* is not a valid key or *hostname*
                has no subdomain label. Raised before any store access.
        """
        try:
            forms = pubkey_forms(pubkey)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        split_hostname(hostname)

        start = time.perf_counter()
        relay = await self._resolve(hostname)
        if relay is None:
            status = AuthorizationStatus.NOT_FOUND
        else:
            status = await self._decide(relay, forms)
        POLICY_DECISION_SECONDS.observe(time.perf_counter() - start)

        POLICY_DECISIONS_TOTAL.labels(mode="write", outcome=status.value).inc()
        self._logger.debug(
            "write_authorized" if status.authorized else "write_denied",
            hostname=hostname,
            pubkey=forms.hex,
            status=status.value,
        )
        return status

    # -------------------------------------------------------------------------
    # Connection mode
    # -------------------------------------------------------------------------

    async def connection_mode(self, hostname: str) -> ConnectionMode | None:
        """Report how the connection interceptor must treat *hostname*'s clients.

        Only relays that are running or awaiting provisioning are considered.

        Returns:
            ``None`` when no such relay is served at *hostname*.

        Raises:
            InvalidInputError: If *hostname* has no subdomain label.
        """
        name, domain = split_hostname(hostname)

        relay = await self._store.find_external_relay(
            normalize_hostname(hostname), statuses=ACTIVE_STATUSES
        )
        if relay is None:
            relay = await self._store.find_relay(name, domain, statuses=ACTIVE_STATUSES)
        if relay is None:
            POLICY_DECISIONS_TOTAL.labels(mode="connection", outcome="not_found").inc()
            return None

        if relay.auth_required:
            mode = ConnectionMode.AUTH_REQUIRED
        elif relay.request_payment:
            mode = ConnectionMode.AUTH_NONE_REQUEST_PAYMENT
        else:
            mode = ConnectionMode.AUTH_NONE

        POLICY_DECISIONS_TOTAL.labels(mode="connection", outcome=mode.value).inc()
        self._logger.debug("connection_mode_resolved", hostname=hostname, mode=mode.value)
        return mode
