"""Access-control list records: per-relay allow and block lists and their entries.

Every relay owns at most one allow-list and one block-list. Each list
holds three entry collections (pubkeys, keywords, event kinds). Entries
reference their list through one of two nullable foreign keys,
``allow_list_id`` or ``block_list_id``, so the entry models carry only the
owning list id together with its [ListType][relaypolicy.models.constants.ListType].

Reasons are free text and normalized to ``""`` when the stored value is
``NULL``: downstream consumers never see ``None``.

See Also:
    [relaypolicy.core.store][]: Reads and writes these records.
    [relaypolicy.services.acl][]: Mutates entries on behalf of admins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._validation import (
    validate_kind,
    validate_str_no_null,
    validate_str_not_empty,
)
from .constants import ListType


if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class PolicyList:
    """An allow-list or block-list container row.

    Attributes:
        id: Primary key of the list row.
        relay_id: Owning relay; unique per list type.
        list_type: Whether this is the allow-list or the block-list.
    """

    id: str
    relay_id: str
    list_type: ListType

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_not_empty(self.relay_id, "relay_id")
        object.__setattr__(self, "list_type", ListType(self.list_type))

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any], list_type: ListType) -> PolicyList:
        return cls(id=row["id"], relay_id=row["relay_id"], list_type=list_type)


@dataclass(frozen=True, slots=True)
class PubkeyEntry:
    """A pubkey entry. Unique per list.

    The pubkey is stored exactly as written. Entries created through the
    admin API are always lowercase hex, but legacy rows may hold an npub,
    which is why write authorization matches both forms.
    """

    pubkey: str
    reason: str = ""

    def __post_init__(self) -> None:
        validate_str_not_empty(self.pubkey, "pubkey")
        validate_str_no_null(self.reason, "reason")

    def to_dict(self) -> dict[str, str]:
        """Wire shape used by the ``listbannedpubkeys`` family of methods."""
        return {"pubkey": self.pubkey, "reason": self.reason}

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> PubkeyEntry:
        return cls(pubkey=row["pubkey"], reason=row["reason"] or "")


@dataclass(frozen=True, slots=True)
class KeywordEntry:
    """A keyword entry used by relay daemons for content filtering."""

    keyword: str
    reason: str = ""

    def __post_init__(self) -> None:
        validate_str_not_empty(self.keyword, "keyword")
        validate_str_no_null(self.reason, "reason")

    def to_dict(self) -> dict[str, str]:
        return {"keyword": self.keyword, "reason": self.reason}

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> KeywordEntry:
        return cls(keyword=row["keyword"], reason=row["reason"] or "")


@dataclass(frozen=True, slots=True)
class KindEntry:
    """An event-kind entry. Duplicate kinds within one list are tolerated."""

    kind: int
    reason: str = ""

    def __post_init__(self) -> None:
        validate_kind(self.kind, "kind")
        validate_str_no_null(self.reason, "reason")

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> KindEntry:
        return cls(kind=row["kind"], reason=row["reason"] or "")

