"""Core layer: database access, errors, logging, configuration, and metrics.

Sits in the middle of the diamond DAG, depending only on
``relaypolicy.models`` and depended upon by ``relaypolicy.services``.

Attributes:
    Pool: Async PostgreSQL connection pool with retry/backoff and error
        translation. See [Pool][relaypolicy.core.pool.Pool].
    PolicyStore: Typed facade owning every SQL statement. Services use
        [PolicyStore][relaypolicy.core.store.PolicyStore], never
        [Pool][relaypolicy.core.pool.Pool] directly.
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][relaypolicy.core.logger.Logger].
    exceptions: The [PolicyError][relaypolicy.core.exceptions.PolicyError]
        hierarchy.
    metrics: Prometheus counters for decisions and commands.
    YAML: Safe YAML loading. See [load_yaml()][relaypolicy.core.yaml.load_yaml].

Examples:
    ```python
    from relaypolicy.core import Pool, PolicyStore

    store = PolicyStore(pool=Pool.from_yaml("config/relaypolicy.yaml"))
    async with store:
        relay = await store.get_relay("r1")
    ```
"""

from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConnectionPoolError,
    DatabaseError,
    InvalidInputError,
    MissingParamsError,
    NotFoundError,
    PolicyError,
    QueryError,
    RelayNotFoundError,
    UnknownMethodError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs, setup_logging
from .metrics import ADMIN_COMMANDS_TOTAL, POLICY_DECISION_SECONDS, POLICY_DECISIONS_TOTAL
from .pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    PoolTimeoutsConfig,
    ServerSettingsConfig,
)
from .store import PolicyStore, PolicyStoreConfig, PolicyStoreTimeoutsConfig
from .yaml import load_yaml


__all__ = [
    "ADMIN_COMMANDS_TOTAL",
    "POLICY_DECISIONS_TOTAL",
    "POLICY_DECISION_SECONDS",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "ConnectionPoolError",
    "DatabaseConfig",
    "DatabaseError",
    "InvalidInputError",
    "Logger",
    "MissingParamsError",
    "NotFoundError",
    "PolicyError",
    "PolicyStore",
    "PolicyStoreConfig",
    "PolicyStoreTimeoutsConfig",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "PoolTimeoutsConfig",
    "QueryError",
    "RelayNotFoundError",
    "ServerSettingsConfig",
    "StructuredFormatter",
    "UnknownMethodError",
    "format_kv_pairs",
    "load_yaml",
    "setup_logging",
]
