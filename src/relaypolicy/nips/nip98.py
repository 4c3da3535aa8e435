"""
NIP-98 HTTP Auth verification.

A NIP-98 credential is an ``Authorization`` header of the form
``Nostr <base64(event-json)>`` where the event is a signed kind-27235 event
whose tags bind it to one HTTP request:

* ``["u", "<absolute url>"]``: the guarded URL;
* ``["method", "<HTTP method>"]``: the guarded method;
* ``["payload", "<sha256 of the body>"]``: the request body hash.

[verify_http_auth()][relaypolicy.nips.nip98.verify_http_auth] checks the
envelope, the Schnorr signature, the kind, the freshness window, and the
tags, and returns the signer's pubkey. It is stateless and has no side
effects: the same credential verifies again until it leaves the freshness
window. The recovered pubkey carries no authority by itself; the caller
still has to check it against the target relay.

Checks run in a fixed order and the first failure wins, so every rejection
maps to exactly one [Nip98Failure][relaypolicy.nips.nip98.Nip98Failure].

See Also:
    [Dispatcher][relaypolicy.services.dispatcher.Dispatcher]: Verifies every
        administrative command with this module.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from enum import StrEnum
from typing import Any
from urllib.parse import urlsplit

from nostr_sdk import Event, NostrSdkError
from pydantic import BaseModel, Field

from relaypolicy.core.exceptions import AuthenticationError
from relaypolicy.models.constants import EventKind


logger = logging.getLogger("relaypolicy.nips.nip98")


class Nip98Failure(StrEnum):
    """Stable reasons a NIP-98 credential is rejected.

    Attributes:
        MALFORMED_CREDENTIAL: The header does not start with the scheme marker.
        MALFORMED_PAYLOAD: The token is not base64 of a JSON object.
        INVALID_SIGNATURE: The event id or Schnorr signature does not verify.
        WRONG_KIND: The event is not kind 27235.
        STALE_EVENT: ``created_at`` is outside the freshness window.
        MISSING_TAG: A required ``u``, ``method``, or ``payload`` tag is absent.
        METHOD_MISMATCH: The ``method`` tag differs from the request method.
        URL_MISMATCH: The ``u`` tag path differs from the request path.
    """

    MALFORMED_CREDENTIAL = "malformed_credential"
    MALFORMED_PAYLOAD = "malformed_payload"
    INVALID_SIGNATURE = "invalid_signature"
    WRONG_KIND = "wrong_kind"
    STALE_EVENT = "stale_event"
    MISSING_TAG = "missing_tag"
    METHOD_MISMATCH = "method_mismatch"
    URL_MISMATCH = "url_mismatch"


class HttpAuthConfig(BaseModel):
    """Verification settings.

    Attributes:
        max_skew_seconds: Largest accepted distance, in either direction,
            between the event's ``created_at`` and the verifier's clock.
        scheme: Prefix of the ``Authorization`` header, separator included.
    """

    max_skew_seconds: int = Field(default=60, ge=0, le=3600, description="Freshness window")
    scheme: str = Field(default="Nostr ", min_length=1, description="Authorization scheme marker")


_DEFAULT_CONFIG = HttpAuthConfig()


def _reject(reason: Nip98Failure, detail: str) -> AuthenticationError:
    logger.debug("nip98_rejected reason=%s detail=%s", reason, detail)
    return AuthenticationError(reason, f"{reason}: {detail}")


def _decode_payload(token: str) -> dict[str, Any]:
    try:
        raw = base64.b64decode(token, validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise _reject(Nip98Failure.MALFORMED_PAYLOAD, str(e)) from e
    if not isinstance(payload, dict):
        raise _reject(Nip98Failure.MALFORMED_PAYLOAD, "event is not a JSON object")
    return payload


def _tag_value(tags: Any, name: str) -> str | None:
    """Value of the first tag named *name*, or ``None`` when absent."""
    if not isinstance(tags, list):
        return None
    for tag in tags:
        if isinstance(tag, list) and len(tag) >= 2 and tag[0] == name and isinstance(tag[1], str):
            return tag[1]
    return None


def _normalized_path(url: str) -> str:
    return urlsplit(url).path.rstrip("/") or "/"


def verify_http_auth(
    authorization: str | None,
    url: str,
    method: str,
    *,
    now: int | None = None,
    config: HttpAuthConfig | None = None,
) -> str:
    """Verify a NIP-98 ``Authorization`` header for one HTTP request.

    Args:
        authorization: The raw header value.
        url: The absolute URL of the guarded request.
        method: The HTTP method of the guarded request, compared exactly.
        now: Current Unix time; defaults to the system clock.
        config: Freshness window and scheme marker; defaults to 60 s and
            ``"Nostr "``.

    Returns:
        The signer's pubkey as 64-character lowercase hex.

    Raises:
        AuthenticationError: With the first failing
            [Nip98Failure][relaypolicy.nips.nip98.Nip98Failure] as ``reason``.
            The ``STALE_EVENT`` message includes the event age in seconds,
            negative for future-dated events.

    Examples:
        ```python
        pubkey = verify_http_auth(
            request.headers["Authorization"],
            "https://api.example.com/api/88/nip86",
            "POST",
        )
        ```
    """
    cfg = config or _DEFAULT_CONFIG

    if not isinstance(authorization, str) or not authorization.startswith(cfg.scheme):
        raise _reject(
            Nip98Failure.MALFORMED_CREDENTIAL, f"expected {cfg.scheme.strip()!r} scheme"
        )

    payload = _decode_payload(authorization[len(cfg.scheme) :].strip())

    try:
        event = Event.from_json(json.dumps(payload))
    except NostrSdkError as e:
        raise _reject(Nip98Failure.INVALID_SIGNATURE, f"unparseable event: {e}") from e
    if not event.verify():
        raise _reject(Nip98Failure.INVALID_SIGNATURE, "id or signature does not verify")

    if payload.get("kind") != EventKind.HTTP_AUTH:
        raise _reject(
            Nip98Failure.WRONG_KIND,
            f"kind {payload.get('kind')} is not {int(EventKind.HTTP_AUTH)}",
        )

    current = int(time.time()) if now is None else now
    age = current - int(payload["created_at"])
    if abs(age) > cfg.max_skew_seconds:
        raise _reject(
            Nip98Failure.STALE_EVENT,
            f"event is {age}s old, window is {cfg.max_skew_seconds}s",
        )

    tags = payload.get("tags")

    tagged_method = _tag_value(tags, "method")
    if tagged_method is None:
        raise _reject(Nip98Failure.MISSING_TAG, "method tag is absent")
    if tagged_method != method:
        raise _reject(Nip98Failure.METHOD_MISMATCH, f"{tagged_method} != {method}")

    tagged_url = _tag_value(tags, "u")
    if tagged_url is None:
        raise _reject(Nip98Failure.MISSING_TAG, "u tag is absent")
    if _normalized_path(tagged_url) != _normalized_path(url):
        raise _reject(Nip98Failure.URL_MISMATCH, f"{tagged_url} does not match {url}")

    if _tag_value(tags, "payload") is None:
        raise _reject(Nip98Failure.MISSING_TAG, "payload tag is absent")

    return str(event.author().to_hex())
