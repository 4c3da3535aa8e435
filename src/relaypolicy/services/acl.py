"""ACL mutation service.

Applies administrative commands to a relay's allow-list and block-list
through the [PolicyStore][relaypolicy.core.store.PolicyStore]. Callers are
expected to have established administration authority already; this
service does not check who is asking.

Guarantees:

* **Lazy provisioning**: every mutation that writes or removes list
  entries first calls ``ensure_list``, so commands never fail because a
  relay's list has not been created yet.
* **Mutual exclusion**: a pubkey is never in both lists of a relay. A ban
  evicts a prior allow and an allow evicts a prior ban.
* **Idempotence**: banning or allowing the same pubkey twice leaves a
  single entry; removing an absent entry succeeds.
* **Early validation**: pubkeys, event ids, kinds, and keywords are
  validated before the store is touched.

A ban also queues a ``deletePubkey`` job so relay daemons purge the
pubkey's stored events. That enqueue is fire-and-forget: if it fails the
ban still stands and the failure is logged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, assert_never

from relaypolicy.core.exceptions import DatabaseError, InvalidInputError, RelayNotFoundError
from relaypolicy.core.logger import Logger
from relaypolicy.models import Job, ListType
from relaypolicy.models._validation import is_hex64
from relaypolicy.models.constants import EVENT_KIND_MAX
from relaypolicy.nips.nip86 import (
    SUPPORTED_METHODS,
    AllowKind,
    AllowPubkey,
    BanEvent,
    BanPubkey,
    ChangeRelayDescription,
    ChangeRelayIcon,
    DeleteAllowedPubkey,
    DisallowKind,
    ListAllowedKinds,
    ListAllowedPubkeys,
    ListBannedPubkeys,
    SupportedMethods,
)


if TYPE_CHECKING:
    from relaypolicy.core.store import PolicyStore
    from relaypolicy.nips.nip86 import Nip86Command


def _check_pubkey(pubkey: Any) -> str:
    if not is_hex64(pubkey):
        raise InvalidInputError("pubkey must be 64 lowercase hex characters")
    return str(pubkey)


def _check_kind(kind: Any) -> int:
    if isinstance(kind, bool) or not isinstance(kind, int) or not 0 <= kind <= EVENT_KIND_MAX:
        raise InvalidInputError(f"kind must be an integer between 0 and {EVENT_KIND_MAX}")
    return kind


def _check_keyword(keyword: Any) -> str:
    if not isinstance(keyword, str) or not keyword.strip() or "\x00" in keyword:
        raise InvalidInputError("keyword must be a non-empty string")
    return keyword


def _check_reason(reason: Any) -> str:
    if reason is None:
        return ""
    if not isinstance(reason, str) or "\x00" in reason:
        raise InvalidInputError("reason must be a string")
    return reason


class AclService:
    """Mutations and listings over a relay's policy lists.

    Examples:
        ```python
        acl = AclService(store)

        await acl.ban_pubkey("r1", "ab" * 32, "spam")
        await acl.list_banned_pubkeys("r1")
        # [{'pubkey': 'abab...', 'reason': 'spam'}]
        ```
    """

    def __init__(self, store: PolicyStore) -> None:
        self._store = store
        self._logger = Logger("acl")

    # -------------------------------------------------------------------------
    # Pubkeys
    # -------------------------------------------------------------------------

    async def _evict(self, relay_id: str, added_to: ListType, pubkey: str) -> int:
        return await self._store.delete_pubkey_entry(relay_id, added_to.opposite, pubkey)

    async def ban_pubkey(self, relay_id: str, pubkey: str, reason: str = "") -> None:
        """Block *pubkey*, evict it from the allow-list, and queue event deletion."""
        pubkey = _check_pubkey(pubkey)
        reason = _check_reason(reason)

        block_list = await self._store.ensure_list(relay_id, ListType.BLOCK)
        await self._store.upsert_pubkey_entry(block_list, pubkey, reason)
        evicted = await self._evict(relay_id, block_list.list_type, pubkey)
        self._logger.info("pubkey_banned", relay_id=relay_id, pubkey=pubkey, evicted=evicted)

        try:
            await self._store.enqueue_job(Job.delete_pubkey(relay_id, pubkey))
        except DatabaseError as e:
            self._logger.warning(
                "job_enqueue_failed", relay_id=relay_id, pubkey=pubkey, error=str(e)
            )

    async def allow_pubkey(self, relay_id: str, pubkey: str, reason: str = "") -> None:
        """Allow *pubkey*, evicting it from the block-list first."""
        pubkey = _check_pubkey(pubkey)
        reason = _check_reason(reason)

        allow_list = await self._store.ensure_list(relay_id, ListType.ALLOW)
        evicted = await self._evict(relay_id, allow_list.list_type, pubkey)
        await self._store.upsert_pubkey_entry(allow_list, pubkey, reason)
        self._logger.info("pubkey_allowed", relay_id=relay_id, pubkey=pubkey, evicted=evicted)

    async def unallow_pubkey(self, relay_id: str, pubkey: str) -> None:
        """Remove *pubkey* from the allow-list. Succeeds when it is absent."""
        pubkey = _check_pubkey(pubkey)

        await self._store.ensure_list(relay_id, ListType.ALLOW)
        removed = await self._store.delete_pubkey_entry(relay_id, ListType.ALLOW, pubkey)
        self._logger.info("pubkey_unallowed", relay_id=relay_id, pubkey=pubkey, removed=removed)

    async def _list_pubkeys(self, relay_id: str, list_type: ListType) -> list[dict[str, str]]:
        entries = await self._store.list_pubkey_entries(relay_id, list_type)
        return [entry.to_dict() for entry in entries]

    async def list_banned_pubkeys(self, relay_id: str) -> list[dict[str, str]]:
        """Block-list pubkeys as ``[{"pubkey", "reason"}]``; ``[]`` when no list exists."""
        return await self._list_pubkeys(relay_id, ListType.BLOCK)

    async def list_allowed_pubkeys(self, relay_id: str) -> list[dict[str, str]]:
        """Allow-list pubkeys as ``[{"pubkey", "reason"}]``; ``[]`` when no list exists."""
        return await self._list_pubkeys(relay_id, ListType.ALLOW)

    # -------------------------------------------------------------------------
    # Kinds
    # -------------------------------------------------------------------------

    async def add_kind(
        self, relay_id: str, list_type: ListType, kind: int, reason: str = ""
    ) -> None:
        kind = _check_kind(kind)
        reason = _check_reason(reason)

        policy_list = await self._store.ensure_list(relay_id, list_type)
        await self._store.add_kind_entry(policy_list, kind, reason)
        self._logger.info("kind_added", relay_id=relay_id, list=list_type.value, kind=kind)

    async def remove_kind(self, relay_id: str, list_type: ListType, kind: int) -> None:
        """Remove one matching kind row; duplicates beyond the first remain."""
        kind = _check_kind(kind)

        await self._store.ensure_list(relay_id, list_type)
        removed = await self._store.delete_kind_entry(relay_id, list_type, kind)
        self._logger.info(
            "kind_removed", relay_id=relay_id, list=list_type.value, kind=kind, removed=removed
        )

    async def list_kinds(self, relay_id: str, list_type: ListType) -> list[int]:
        entries = await self._store.list_kind_entries(relay_id, list_type)
        return [entry.kind for entry in entries]

    async def allow_kind(self, relay_id: str, kind: int, reason: str = "") -> None:
        await self.add_kind(relay_id, ListType.ALLOW, kind, reason)

    async def disallow_kind(self, relay_id: str, kind: int) -> None:
        await self.remove_kind(relay_id, ListType.ALLOW, kind)

    async def list_allowed_kinds(self, relay_id: str) -> list[int]:
        return await self.list_kinds(relay_id, ListType.ALLOW)

    # -------------------------------------------------------------------------
    # Keywords
    # -------------------------------------------------------------------------

    async def add_keyword(
        self, relay_id: str, list_type: ListType, keyword: str, reason: str = ""
    ) -> None:
        keyword = _check_keyword(keyword)
        reason = _check_reason(reason)

        policy_list = await self._store.ensure_list(relay_id, list_type)
        await self._store.add_keyword_entry(policy_list, keyword, reason)
        self._logger.info(
            "keyword_added", relay_id=relay_id, list=list_type.value, keyword=keyword
        )

    async def remove_keyword(self, relay_id: str, list_type: ListType, keyword: str) -> None:
        """Remove every entry equal to *keyword*."""
        keyword = _check_keyword(keyword)

        await self._store.ensure_list(relay_id, list_type)
        removed = await self._store.delete_keyword_entry(relay_id, list_type, keyword)
        self._logger.info(
            "keyword_removed",
            relay_id=relay_id,
            list=list_type.value,
            keyword=keyword,
            removed=removed,
        )

    async def list_keywords(self, relay_id: str, list_type: ListType) -> list[dict[str, str]]:
        entries = await self._store.list_keyword_entries(relay_id, list_type)
        return [entry.to_dict() for entry in entries]

    # -------------------------------------------------------------------------
    # Relay settings / events
    # -------------------------------------------------------------------------

    async def change_relay_description(self, relay_id: str, description: str) -> None:
        """Replace the relay description.

        Raises:
            RelayNotFoundError: If the relay does not exist.
        """
        if not isinstance(description, str):
            raise InvalidInputError("description must be a string")
        if not await self._store.update_relay_description(relay_id, description):
            raise RelayNotFoundError(relay_id)
        self._logger.info("relay_description_changed", relay_id=relay_id)

    async def change_relay_icon(self, relay_id: str, icon_url: str) -> None:
        """Replace the relay icon URL.

        Raises:
            RelayNotFoundError: If the relay does not exist.
        """
        if not isinstance(icon_url, str):
            raise InvalidInputError("icon url must be a string")
        if not await self._store.update_relay_icon(relay_id, icon_url):
            raise RelayNotFoundError(relay_id)
        self._logger.info("relay_icon_changed", relay_id=relay_id, icon_url=icon_url)

    async def ban_event(self, relay_id: str, event_id: str) -> None:
        """Queue deletion of one stored event. Enqueue failures propagate."""
        if not is_hex64(event_id):
            raise InvalidInputError("event id must be 64 lowercase hex characters")
        await self._store.enqueue_job(Job.delete_event(relay_id, event_id))
        self._logger.info("event_banned", relay_id=relay_id, event_id=event_id)

    @staticmethod
    def supported_methods() -> list[str]:
        return list(SUPPORTED_METHODS)

    # -------------------------------------------------------------------------
    # Deletion cascade
    # -------------------------------------------------------------------------

    async def delete_relay(self, relay_id: str) -> None:
        """Delete the relay together with its lists, entries, and dependent rows.

        Raises:
            RelayNotFoundError: If the relay does not exist.
        """
        if not await self._store.delete_relay(relay_id):
            raise RelayNotFoundError(relay_id)

    # -------------------------------------------------------------------------
    # NIP-86 commands
    # -------------------------------------------------------------------------

    async def execute(self, relay_id: str, command: Nip86Command) -> Any:
        """Apply a parsed NIP-86 command and return its JSON-ready result."""
        match command:
            case SupportedMethods():
                return self.supported_methods()
            case BanPubkey(pubkey=pubkey, reason=reason):
                await self.ban_pubkey(relay_id, pubkey, reason)
                return True
            case ListBannedPubkeys():
                return await self.list_banned_pubkeys(relay_id)
            case AllowPubkey(pubkey=pubkey, reason=reason):
                await self.allow_pubkey(relay_id, pubkey, reason)
                return True
            case DeleteAllowedPubkey(pubkey=pubkey):
                await self.unallow_pubkey(relay_id, pubkey)
                return True
            case ListAllowedPubkeys():
                return await self.list_allowed_pubkeys(relay_id)
            case BanEvent(event_id=event_id):
                await self.ban_event(relay_id, event_id)
                return True
            case ChangeRelayDescription(description=description):
                await self.change_relay_description(relay_id, description)
                return True
            case ChangeRelayIcon(icon_url=icon_url):
                await self.change_relay_icon(relay_id, icon_url)
                return True
            case AllowKind(kind=kind):
                await self.allow_kind(relay_id, kind)
                return True
            case DisallowKind(kind=kind):
                await self.disallow_kind(relay_id, kind)
                return True
            case ListAllowedKinds():
                return await self.list_allowed_kinds(relay_id)
            case _:
                assert_never(command)
