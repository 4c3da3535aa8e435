"""
Async PostgreSQL connection pool built on asyncpg.

Manages a pool of database connections with configurable size limits, retry
with exponential backoff on connection failures, and a transactional context
manager for multi-statement writes such as the relay deletion cascade.

The pool translates driver errors into the relaypolicy hierarchy:

* transient connection errors (``InterfaceError``,
  ``ConnectionDoesNotExistError``, ``OSError``) are retried and, once the
  retry budget is spent, raised as
  [ConnectionPoolError][relaypolicy.core.exceptions.ConnectionPoolError];
* every other ``asyncpg.PostgresError`` (syntax errors, constraint
  violations) is raised immediately as
  [QueryError][relaypolicy.core.exceptions.QueryError].

Examples:
    ```python
    pool = Pool.from_yaml("config/relaypolicy.yaml")

    async with pool:
        row = await pool.fetchrow("SELECT * FROM relay WHERE id = $1", relay_id)

        async with pool.transaction() as conn:
            await conn.execute("DELETE FROM moderator WHERE relay_id = $1", relay_id)
    ```

See Also:
    [PolicyStore][relaypolicy.core.store.PolicyStore]: Typed facade over
        this pool.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator  # noqa: TC003
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Literal, cast

import asyncpg
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator, model_validator

from .exceptions import ConnectionPoolError, QueryError
from .logger import Logger
from .yaml import load_yaml


DEFAULT_PASSWORD_ENV = "DB_PASSWORD"  # pragma: allowlist secret

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.InterfaceError,
    asyncpg.ConnectionDoesNotExistError,
    OSError,
)


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """PostgreSQL connection parameters.

    The password is read from the environment variable named by
    ``password_env`` and never from configuration files.
    """

    host: str = Field(default="localhost", min_length=1, description="Database hostname")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    database: str = Field(default="relaypolicy", min_length=1, description="Database name")
    user: str = Field(default="relaypolicy", min_length=1, description="Database user")
    password_env: str = Field(
        default=DEFAULT_PASSWORD_ENV,
        min_length=1,
        description="Environment variable name for database password",
    )
    password: SecretStr = Field(description="Database password (loaded from password_env)")

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        """Resolve the database password from the environment variable."""
        if isinstance(data, dict) and "password" not in data:
            env_var = data.get("password_env", DEFAULT_PASSWORD_ENV)
            value = os.getenv(env_var)
            if not value:
                raise ValueError(f"{env_var} environment variable not set")
            data["password"] = SecretStr(value)
        return data


class PoolLimitsConfig(BaseModel):
    """Connection pool size limits.

    Policy lookups are short and frequent, so the defaults keep a small
    warm pool rather than many idle connections.
    """

    min_size: int = Field(default=1, ge=1, le=100, description="Minimum connections")
    max_size: int = Field(default=10, ge=1, le=200, description="Maximum connections")
    max_inactive_connection_lifetime: float = Field(
        default=300.0, ge=0.0, description="Idle timeout (seconds)"
    )

    @field_validator("max_size")
    @classmethod
    def validate_max_size(cls, v: int, info: ValidationInfo) -> int:
        min_size = info.data.get("min_size", 1)
        if v < min_size:
            raise ValueError(f"max_size ({v}) must be >= min_size ({min_size})")
        return v


class PoolTimeoutsConfig(BaseModel):
    """Timeout settings for pool operations (in seconds)."""

    acquisition: float = Field(default=10.0, ge=0.1, description="Connection acquisition timeout")


class PoolRetryConfig(BaseModel):
    """Backoff strategy for transient connection failures.

    Exponential backoff waits ``initial_delay * 2^attempt``, linear backoff
    ``initial_delay * (attempt + 1)``; both are capped at ``max_delay``.
    """

    max_attempts: int = Field(default=3, ge=1, le=10, description="Max retry attempts")
    initial_delay: float = Field(default=0.5, ge=0.01, description="Initial retry delay")
    max_delay: float = Field(default=5.0, ge=0.01, description="Maximum retry delay")
    exponential_backoff: bool = Field(default=True, description="Use exponential backoff")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        initial_delay = info.data.get("initial_delay", 0.5)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v


class ServerSettingsConfig(BaseModel):
    """PostgreSQL session settings sent with every pooled connection.

    ``statement_timeout`` is in milliseconds (PostgreSQL convention); ``0``
    disables it.
    """

    application_name: str = Field(default="relaypolicy", description="Application name")
    timezone: str = Field(default="UTC", description="Timezone")
    statement_timeout: int = Field(
        default=30_000, ge=0, description="Max query execution time in milliseconds (0=unlimited)"
    )


class PoolConfig(BaseModel):
    """Aggregate configuration for the connection pool."""

    database: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig.model_validate({}))
    limits: PoolLimitsConfig = Field(default_factory=PoolLimitsConfig)
    timeouts: PoolTimeoutsConfig = Field(default_factory=PoolTimeoutsConfig)
    retry: PoolRetryConfig = Field(default_factory=PoolRetryConfig)
    server_settings: ServerSettingsConfig = Field(default_factory=ServerSettingsConfig)


# ---------------------------------------------------------------------------
# Pool Class
# ---------------------------------------------------------------------------


class Pool:
    """Async PostgreSQL connection pool manager.

    Wraps ``asyncpg.Pool`` with retry logic, error translation, and a
    transactional context manager. Created disconnected; call
    [connect()][relaypolicy.core.pool.Pool.connect] or use ``async with``.

    Note:
        Application code should go through
        [PolicyStore][relaypolicy.core.store.PolicyStore], which owns the
        SQL. ``Pool`` is exposed for health checks and ad-hoc access.
    """

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig()
        self._pool: asyncpg.Pool[asyncpg.Record] | None = None
        self._is_connected: bool = False
        self._connection_lock = asyncio.Lock()
        self._logger = Logger("pool")

    @classmethod
    def from_yaml(cls, config_path: str) -> Pool:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Pool:
        return cls(config=PoolConfig(**config_dict))

    def _retry_delay(self, attempt: int) -> float:
        retry = self._config.retry
        if retry.exponential_backoff:
            delay = retry.initial_delay * (2**attempt)
        else:
            delay = retry.initial_delay * (attempt + 1)
        return float(min(delay, retry.max_delay))

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Create the asyncpg pool, retrying with backoff on failure.

        Guarded by an internal lock; calling it on a connected pool is a no-op.

        Raises:
            ConnectionPoolError: If all retry attempts are exhausted.
        """
        async with self._connection_lock:
            if self._is_connected:
                return

            db = self._config.database
            settings = self._config.server_settings
            self._logger.info(
                "connection_starting", host=db.host, port=db.port, database=db.database
            )

            attempts = self._config.retry.max_attempts
            for attempt in range(attempts):
                try:
                    self._pool = await asyncpg.create_pool(
                        host=db.host,
                        port=db.port,
                        database=db.database,
                        user=db.user,
                        password=db.password.get_secret_value(),
                        min_size=self._config.limits.min_size,
                        max_size=self._config.limits.max_size,
                        max_inactive_connection_lifetime=self._config.limits.max_inactive_connection_lifetime,
                        timeout=self._config.timeouts.acquisition,
                        server_settings={
                            "application_name": settings.application_name,
                            "timezone": settings.timezone,
                            "statement_timeout": str(settings.statement_timeout),
                        },
                    )
                except (asyncpg.PostgresError, OSError, ConnectionError) as e:
                    if attempt + 1 >= attempts:
                        self._logger.error("connection_failed", attempts=attempt + 1, error=str(e))
                        raise ConnectionPoolError(
                            f"Failed to connect after {attempt + 1} attempts: {e}"
                        ) from e
                    delay = self._retry_delay(attempt)
                    self._logger.warning(
                        "connection_retry", attempt=attempt + 1, delay=delay, error=str(e)
                    )
                    await asyncio.sleep(delay)
                else:
                    self._is_connected = True
                    self._logger.info("connection_established")
                    return

    async def close(self) -> None:
        """Close the pool. Idempotent."""
        async with self._connection_lock:
            if self._pool is not None:
                try:
                    await self._pool.close()
                    self._logger.info("connection_closed")
                finally:
                    self._pool = None
                    self._is_connected = False

    # -------------------------------------------------------------------------
    # Connection Acquisition
    # -------------------------------------------------------------------------

    def acquire(self) -> AbstractAsyncContextManager[asyncpg.Connection[asyncpg.Record]]:
        """Acquire a connection; it returns to the pool when the context exits.

        Raises:
            RuntimeError: If the pool has not been connected yet.
        """
        if not self._is_connected or self._pool is None:
            raise RuntimeError("Pool not connected. Call connect() first.")
        return cast(
            "AbstractAsyncContextManager[asyncpg.Connection[asyncpg.Record]]",
            self._pool.acquire(),
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection[asyncpg.Record]]:
        """Acquire a connection with an active transaction.

        Commits on normal exit and rolls back if an exception propagates.
        Driver errors raised inside the block surface as
        [QueryError][relaypolicy.core.exceptions.QueryError] or
        [ConnectionPoolError][relaypolicy.core.exceptions.ConnectionPoolError]
        after the rollback.

        Examples:
            ```python
            async with pool.transaction() as conn:
                await conn.execute("DELETE FROM list_entry_pubkey WHERE ...")
                await conn.execute("DELETE FROM allow_list WHERE ...")
            ```
        """
        try:
            async with self.acquire() as conn, conn.transaction():
                yield conn
        except _TRANSIENT_ERRORS as e:
            raise ConnectionPoolError(f"transaction aborted: {e}") from e
        except asyncpg.PostgresError as e:
            raise QueryError(f"transaction rolled back: {e}") from e

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    async def _execute_with_retry(
        self,
        operation: Literal["fetch", "fetchrow", "fetchval", "execute"],
        query: str,
        args: tuple[Any, ...],
        timeout: float | None,  # noqa: ASYNC109
        **kwargs: Any,
    ) -> Any:
        """Run one asyncpg connection method, retrying transient failures.

        A fresh connection is acquired for every attempt so a broken socket
        is not reused.

        Raises:
            ConnectionPoolError: When every attempt failed on a transient error.
            QueryError: On the first query-level error, without retrying.
        """
        max_attempts = self._config.retry.max_attempts

        for attempt in range(max_attempts):
            try:
                async with self.acquire() as conn:
                    method = getattr(conn, operation)
                    return await method(query, *args, timeout=timeout, **kwargs)
            except _TRANSIENT_ERRORS as e:
                if attempt < max_attempts - 1:
                    delay = self._retry_delay(attempt)
                    self._logger.warning(
                        "query_retry",
                        operation=operation,
                        attempt=attempt + 1,
                        delay_s=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                    continue
                self._logger.error(
                    "query_failed", operation=operation, attempts=max_attempts, error=str(e)
                )
                raise ConnectionPoolError(
                    f"{operation} failed after {max_attempts} attempts: {e}"
                ) from e
            except asyncpg.PostgresError as e:
                self._logger.error("query_error", operation=operation, error=str(e))
                raise QueryError(f"{operation} failed: {e}") from e

        raise RuntimeError("Unexpected state in _execute_with_retry")

    async def fetch(
        self,
        query: str,
        *args: Any,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[asyncpg.Record]:
        """Execute a query and return all matching rows."""
        result = await self._execute_with_retry("fetch", query, args, timeout)
        return cast("list[asyncpg.Record]", result)

    async def fetchrow(
        self,
        query: str,
        *args: Any,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> asyncpg.Record | None:
        """Execute a query and return the first row, or ``None``."""
        result = await self._execute_with_retry("fetchrow", query, args, timeout)
        return cast("asyncpg.Record | None", result)

    async def fetchval(
        self,
        query: str,
        *args: Any,
        column: int = 0,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> Any:
        """Execute a query and return one column of the first row, or ``None``."""
        return await self._execute_with_retry("fetchval", query, args, timeout, column=column)

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:  # noqa: ASYNC109
        """Execute a statement and return its command status tag (e.g. ``"DELETE 1"``)."""
        result = await self._execute_with_retry("execute", query, args, timeout)
        return cast("str", result)

    # -------------------------------------------------------------------------
    # Properties / Context Manager
    # -------------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def config(self) -> PoolConfig:
        return self._config

    async def __aenter__(self) -> Pool:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._config.database
        return f"Pool(host={db.host}, database={db.database}, connected={self._is_connected})"
