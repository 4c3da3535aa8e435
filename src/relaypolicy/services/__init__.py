"""Policy services: decisions, list mutations, and command dispatch.

The services layer sits at the top of the diamond DAG and composes
``core`` (store, logging, metrics), ``nips`` (NIP-86 commands, NIP-98
verification), and ``utils`` (pubkey forms).

Attributes:
    AuthorizationEngine: Administration authority, write authorization,
        and connection mode. Called directly by relay daemons.
    AclService: Allow-list / block-list mutations and the relay deletion
        cascade.
    Dispatcher: NIP-86 request handling: verify, authorize, execute.
"""

from .acl import AclService
from .authorization import AuthorizationEngine, normalize_hostname, split_hostname
from .dispatcher import Dispatcher, DispatcherConfig, ErrorCode, Nip86Response


__all__ = [
    "AclService",
    "AuthorizationEngine",
    "Dispatcher",
    "DispatcherConfig",
    "ErrorCode",
    "Nip86Response",
    "normalize_hostname",
    "split_hostname",
]
