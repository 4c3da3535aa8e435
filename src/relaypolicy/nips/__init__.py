"""NIP implementations used by the policy subsystem.

Attributes:
    nip98: HTTP Auth verification. Turns a signed ``Authorization`` header
        into the signer's pubkey or a typed rejection reason.
    nip86: Relay management API commands. A closed set of frozen
        dataclasses built from raw ``(method, params)`` pairs.

See Also:
    [relaypolicy.services.dispatcher][relaypolicy.services.dispatcher]:
        Combines both to serve administrative requests.
"""

from relaypolicy.nips.nip86 import (
    COMMAND_REGISTRY,
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
    Nip86Command,
    SupportedMethods,
    parse_command,
)
from relaypolicy.nips.nip98 import HttpAuthConfig, Nip98Failure, verify_http_auth


__all__ = [
    "COMMAND_REGISTRY",
    "SUPPORTED_METHODS",
    "AllowKind",
    "AllowPubkey",
    "BanEvent",
    "BanPubkey",
    "ChangeRelayDescription",
    "ChangeRelayIcon",
    "DeleteAllowedPubkey",
    "DisallowKind",
    "HttpAuthConfig",
    "ListAllowedKinds",
    "ListAllowedPubkeys",
    "ListBannedPubkeys",
    "Nip86Command",
    "Nip98Failure",
    "SupportedMethods",
    "parse_command",
    "verify_http_auth",
]
