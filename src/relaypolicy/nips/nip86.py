"""
NIP-86 relay management commands.

Each supported NIP-86 method is a frozen dataclass carrying its typed,
already-validated parameters. [parse_command()][relaypolicy.nips.nip86.parse_command]
turns a raw ``(method, params)`` pair into one of them, so that nothing
downstream ever sees an untyped parameter list.

Validation happens entirely here, before any store access:

* unknown method names raise
  [UnknownMethodError][relaypolicy.core.exceptions.UnknownMethodError];
* too few parameters raise
  [MissingParamsError][relaypolicy.core.exceptions.MissingParamsError];
* malformed pubkeys, event ids, kinds, or text raise
  [InvalidInputError][relaypolicy.core.exceptions.InvalidInputError].

Pubkeys and event ids must be exactly 64 lowercase hex characters. Kinds are
accepted as integers or digit strings in ``0..65535``. Optional reasons
default to ``""``. Extra trailing parameters are ignored.

Examples:
    ```python
    command = parse_command("banpubkey", ["ab" * 32, "spam"])
    # BanPubkey(pubkey='abab...', reason='spam')

    parse_command("allowkind", ["7"])
    # AllowKind(kind=7)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from relaypolicy.core.exceptions import InvalidInputError, MissingParamsError, UnknownMethodError
from relaypolicy.models._validation import is_hex64
from relaypolicy.models.constants import EVENT_KIND_MAX


# ---------------------------------------------------------------------------
# Parameter helpers
# ---------------------------------------------------------------------------


def _require(params: list[Any], count: int, method: str) -> None:
    if len(params) < count:
        raise MissingParamsError(f"{method} requires {count} parameter(s), got {len(params)}")


def _hex64(value: Any, name: str) -> str:
    if not is_hex64(value):
        raise InvalidInputError(f"{name} must be 64 lowercase hex characters")
    return str(value)


def _text(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a string")
    if "\x00" in value:
        raise InvalidInputError(f"{name} contains null bytes")
    return value


def _optional_text(params: list[Any], index: int, name: str) -> str:
    if len(params) <= index or params[index] is None:
        return ""
    return _text(params[index], name)


def _kind(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidInputError("kind must be an integer")
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidInputError("kind must be an integer")
    if not 0 <= value <= EVENT_KIND_MAX:
        raise InvalidInputError(f"kind must be between 0 and {EVENT_KIND_MAX}")
    return value


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SupportedMethods:
    METHOD: ClassVar[str] = "supportedmethods"

    @classmethod
    def from_params(cls, params: list[Any]) -> SupportedMethods:
        return cls()


@dataclass(frozen=True, slots=True)
class BanPubkey:
    """Block a pubkey, evict it from the allow-list, and purge its events."""

    METHOD: ClassVar[str] = "banpubkey"

    pubkey: str
    reason: str = ""

    @classmethod
    def from_params(cls, params: list[Any]) -> BanPubkey:
        _require(params, 1, cls.METHOD)
        return cls(_hex64(params[0], "pubkey"), _optional_text(params, 1, "reason"))


@dataclass(frozen=True, slots=True)
class ListBannedPubkeys:
    METHOD: ClassVar[str] = "listbannedpubkeys"

    @classmethod
    def from_params(cls, params: list[Any]) -> ListBannedPubkeys:
        return cls()


@dataclass(frozen=True, slots=True)
class AllowPubkey:
    """Allow a pubkey, evicting it from the block-list first."""

    METHOD: ClassVar[str] = "allowpubkey"

    pubkey: str
    reason: str = ""

    @classmethod
    def from_params(cls, params: list[Any]) -> AllowPubkey:
        _require(params, 1, cls.METHOD)
        return cls(_hex64(params[0], "pubkey"), _optional_text(params, 1, "reason"))


@dataclass(frozen=True, slots=True)
class DeleteAllowedPubkey:
    METHOD: ClassVar[str] = "deleteallowedpubkey"

    pubkey: str

    @classmethod
    def from_params(cls, params: list[Any]) -> DeleteAllowedPubkey:
        _require(params, 1, cls.METHOD)
        return cls(_hex64(params[0], "pubkey"))


@dataclass(frozen=True, slots=True)
class ListAllowedPubkeys:
    METHOD: ClassVar[str] = "listallowedpubkeys"

    @classmethod
    def from_params(cls, params: list[Any]) -> ListAllowedPubkeys:
        return cls()


@dataclass(frozen=True, slots=True)
class BanEvent:
    """Queue deletion of one stored event. No list is touched."""

    METHOD: ClassVar[str] = "banevent"

    event_id: str
    reason: str = ""

    @classmethod
    def from_params(cls, params: list[Any]) -> BanEvent:
        _require(params, 1, cls.METHOD)
        return cls(_hex64(params[0], "event id"), _optional_text(params, 1, "reason"))


@dataclass(frozen=True, slots=True)
class ChangeRelayDescription:
    METHOD: ClassVar[str] = "changerelaydescription"

    description: str

    @classmethod
    def from_params(cls, params: list[Any]) -> ChangeRelayDescription:
        _require(params, 1, cls.METHOD)
        return cls(_text(params[0], "description"))


@dataclass(frozen=True, slots=True)
class ChangeRelayIcon:
    METHOD: ClassVar[str] = "changerelayicon"

    icon_url: str

    @classmethod
    def from_params(cls, params: list[Any]) -> ChangeRelayIcon:
        _require(params, 1, cls.METHOD)
        return cls(_text(params[0], "icon url"))


@dataclass(frozen=True, slots=True)
class AllowKind:
    METHOD: ClassVar[str] = "allowkind"

    kind: int

    @classmethod
    def from_params(cls, params: list[Any]) -> AllowKind:
        _require(params, 1, cls.METHOD)
        return cls(_kind(params[0]))


@dataclass(frozen=True, slots=True)
class DisallowKind:
    METHOD: ClassVar[str] = "disallowkind"

    kind: int

    @classmethod
    def from_params(cls, params: list[Any]) -> DisallowKind:
        _require(params, 1, cls.METHOD)
        return cls(_kind(params[0]))


@dataclass(frozen=True, slots=True)
class ListAllowedKinds:
    METHOD: ClassVar[str] = "listallowedkinds"

    @classmethod
    def from_params(cls, params: list[Any]) -> ListAllowedKinds:
        return cls()


Nip86Command = (
    SupportedMethods
    | BanPubkey
    | ListBannedPubkeys
    | AllowPubkey
    | DeleteAllowedPubkey
    | ListAllowedPubkeys
    | BanEvent
    | ChangeRelayDescription
    | ChangeRelayIcon
    | AllowKind
    | DisallowKind
    | ListAllowedKinds
)

_COMMANDS: tuple[type[Nip86Command], ...] = (
    SupportedMethods,
    BanPubkey,
    ListBannedPubkeys,
    AllowPubkey,
    DeleteAllowedPubkey,
    ListAllowedPubkeys,
    BanEvent,
    ChangeRelayDescription,
    ChangeRelayIcon,
    AllowKind,
    DisallowKind,
    ListAllowedKinds,
)

COMMAND_REGISTRY: dict[str, type[Nip86Command]] = {cmd.METHOD: cmd for cmd in _COMMANDS}

# Advertised by ``supportedmethods``, in registry order.
SUPPORTED_METHODS: tuple[str, ...] = tuple(COMMAND_REGISTRY)


def parse_command(method: Any, params: Any) -> Nip86Command:
    """Build the typed command for a NIP-86 method and its raw parameters.

    Args:
        method: The method name, matched exactly (lowercase).
        params: The positional parameter list; ``None`` means no parameters.

    Raises:
        UnknownMethodError: If *method* is not a supported method name.
        MissingParamsError: If fewer parameters than required are given.
        InvalidInputError: If *params* is not a list or a parameter is
            malformed.
    """
    if not isinstance(method, str) or method not in COMMAND_REGISTRY:
        raise UnknownMethodError(f"unsupported method: {method!r}")
    if params is None:
        params = []
    if not isinstance(params, list):
        raise InvalidInputError("params must be a list")
    return COMMAND_REGISTRY[method].from_params(params)
