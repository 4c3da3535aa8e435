"""Platform users and relay moderators.

A user's only credential is its public key. Moderators are a join between
a relay and a user, and the store resolves the user's pubkey alongside the
join row so the decision engine never has to issue a second lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._validation import validate_bool, validate_str_not_empty


if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class User:
    """A platform account identified by its hex public key.

    Attributes:
        id: Primary key of the user row.
        pubkey: Public key, 64-character lowercase hex. Legacy rows may
            hold the npub form instead.
        name: Optional display name.
        admin: Platform-wide super-admin flag. Super-admins bypass relay
            write policy but are not relay administrators by virtue of it.
    """

    id: str
    pubkey: str
    name: str | None = None
    admin: bool = False

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_not_empty(self.pubkey, "pubkey")
        validate_bool(self.admin, "admin")

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> User:
        return cls(
            id=row["id"],
            pubkey=row["pubkey"],
            name=row["name"],
            admin=bool(row["admin"]),
        )


@dataclass(frozen=True, slots=True)
class Moderator:
    """A user granted administration authority over one relay.

    Attributes:
        id: Primary key of the moderator row.
        relay_id: The moderated relay.
        user_id: The moderating user.
        pubkey: The moderating user's public key (joined from ``user``),
            hex or, on legacy rows, npub.
    """

    id: str
    relay_id: str
    user_id: str
    pubkey: str

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_not_empty(self.relay_id, "relay_id")
        validate_str_not_empty(self.user_id, "user_id")
        validate_str_not_empty(self.pubkey, "pubkey")

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> Moderator:
        return cls(
            id=row["id"],
            relay_id=row["relay_id"],
            user_id=row["user_id"],
            pubkey=row["pubkey"],
        )
