"""Nostr public key normalization.

A pubkey reaches the policy subsystem in one of two encodings: 64-character
lowercase hex (what signed events carry and what the admin API writes) or
bech32 ``npub1...`` (what older allow-list rows and some relay daemons use).
Every comparison between the two goes through
[pubkey_forms()][relaypolicy.utils.keys.pubkey_forms] so the conversion
happens in exactly one place.

Encoding and decoding are delegated to ``nostr_sdk.PublicKey``, which also
rejects points that are not on the curve.

Examples:
    ```python
    forms = pubkey_forms("npub1...")
    forms.hex    # '3bf0c63f...'
    forms.npub   # 'npub1...'
    "3bf0c63f..." in forms  # True
    ```
"""

from __future__ import annotations

from typing import NamedTuple

from nostr_sdk import NostrSdkError, PublicKey


NPUB_PREFIX = "npub1"


class PubkeyForms(NamedTuple):
    """Both encodings of one public key."""

    hex: str
    npub: str


def pubkey_forms(value: str) -> PubkeyForms:
    """Return the hex and npub encodings of a pubkey given in either form.

    Args:
        value: A 64-character hex pubkey or an ``npub1`` bech32 string.
            Surrounding whitespace is ignored; uppercase hex is accepted.

    Raises:
        ValueError: If *value* is not a valid public key in either encoding.
    """
    if not isinstance(value, str):
        raise ValueError(f"pubkey must be a str, got {type(value).__name__}")

    candidate = value.strip()
    if not candidate.startswith(NPUB_PREFIX):
        candidate = candidate.lower()
        if len(candidate) != 64:
            raise ValueError("pubkey must be 64 hex characters or an npub")

    try:
        public_key = PublicKey.parse(candidate)
    except NostrSdkError as e:
        raise ValueError(f"invalid pubkey: {e}") from e

    return PubkeyForms(hex=public_key.to_hex(), npub=public_key.to_bech32())
