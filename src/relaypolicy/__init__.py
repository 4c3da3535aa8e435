r"""relaypolicy: write-access policy for multi-tenant hosted Nostr relays.

Decides who may publish to a hosted relay, authenticates remote
administrative commands signed with NIP-98, and applies those commands to
the relay's allow-list and block-list. All state lives in a shared
PostgreSQL database; nothing is cached in process.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Decision engine, ACL service, dispatcher
             /   |   \
          core  nips  utils    Store/pool/logging/errors, NIP-86/98, key forms
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

The nips layer reaches into core only for ``core.exceptions``, which has
no dependencies of its own.

Note:
    For lightweight usage, import directly from subpackages::

        from relaypolicy.models import Relay
        from relaypolicy.core import PolicyStore

    Top-level imports (``from relaypolicy import Dispatcher``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("relaypolicy")

__all__ = [
    "AclService",
    "AuthorizationEngine",
    "AuthorizationStatus",
    "ConnectionMode",
    "Dispatcher",
    "DispatcherConfig",
    "ErrorCode",
    "HttpAuthConfig",
    "ListType",
    "Logger",
    "Nip86Response",
    "PolicyError",
    "PolicyStore",
    "PolicyStoreConfig",
    "Pool",
    "PoolConfig",
    "Relay",
    "verify_http_auth",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("relaypolicy.core", "Logger"),
    "PolicyError": ("relaypolicy.core", "PolicyError"),
    "PolicyStore": ("relaypolicy.core", "PolicyStore"),
    "PolicyStoreConfig": ("relaypolicy.core", "PolicyStoreConfig"),
    "Pool": ("relaypolicy.core", "Pool"),
    "PoolConfig": ("relaypolicy.core", "PoolConfig"),
    "AuthorizationStatus": ("relaypolicy.models", "AuthorizationStatus"),
    "ConnectionMode": ("relaypolicy.models", "ConnectionMode"),
    "ListType": ("relaypolicy.models", "ListType"),
    "Relay": ("relaypolicy.models", "Relay"),
    "HttpAuthConfig": ("relaypolicy.nips", "HttpAuthConfig"),
    "verify_http_auth": ("relaypolicy.nips", "verify_http_auth"),
    "AclService": ("relaypolicy.services", "AclService"),
    "AuthorizationEngine": ("relaypolicy.services", "AuthorizationEngine"),
    "Dispatcher": ("relaypolicy.services", "Dispatcher"),
    "DispatcherConfig": ("relaypolicy.services", "DispatcherConfig"),
    "ErrorCode": ("relaypolicy.services", "ErrorCode"),
    "Nip86Response": ("relaypolicy.services", "Nip86Response"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'relaypolicy' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
