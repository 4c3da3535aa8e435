"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__``
methods in sibling model modules and by the NIP-86 parameter parser to
enforce runtime type constraints before anything reaches the store.
"""

from __future__ import annotations

import re
from typing import Any

from .constants import EVENT_KIND_MAX


_HEX64 = re.compile(r"^[0-9a-f]{64}$")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_bool(value: Any, name: str) -> None:
    """Raise ``TypeError`` if *value* is not a ``bool``."""
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a bool, got {type(value).__name__}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def is_hex64(value: Any) -> bool:
    """Return True if *value* is exactly 64 lowercase hex characters.

    This is the shape of both a hex public key and an event id.
    """
    return isinstance(value, str) and _HEX64.match(value) is not None


def validate_hex64(value: Any, name: str) -> None:
    """Raise ``ValueError`` unless *value* is 64 lowercase hex characters."""
    if not is_hex64(value):
        raise ValueError(f"{name} must be a 64-character lowercase hex string")


def validate_kind(value: Any, name: str) -> None:
    """Raise if *value* is not an ``int`` event kind in ``0..65535`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value <= EVENT_KIND_MAX:
        raise ValueError(f"{name} must be between 0 and {EVENT_KIND_MAX}")
