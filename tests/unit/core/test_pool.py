"""
Unit tests for core.pool module.

Tests:
- Configuration models (DatabaseConfig, limits, timeouts, retry, server settings)
- Pool initialization and factory methods (from_yaml, from_dict)
- Connection lifecycle (connect with retry, close)
- Query methods, transient-error retry, and error translation
- Transaction context manager
"""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest
import yaml
from pydantic import ValidationError

from relaypolicy.core.exceptions import ConnectionPoolError, QueryError
from relaypolicy.core.pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    PoolTimeoutsConfig,
    ServerSettingsConfig,
)


@pytest.fixture
def no_sleep():
    with patch("relaypolicy.core.pool.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


# ============================================================================
# Configuration
# ============================================================================


class TestDatabaseConfig:
    """DatabaseConfig Pydantic model."""

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        config = DatabaseConfig()
        assert config.host == "localhost"
        assert config.port == 5432
        assert config.database == "relaypolicy"
        assert config.user == "relaypolicy"
        assert config.password.get_secret_value() == "test_pass"

    def test_explicit_password(self):
        config = DatabaseConfig(host="db", password="secret")
        assert config.password.get_secret_value() == "secret"

    def test_custom_password_env(self, monkeypatch):
        monkeypatch.setenv("POLICY_DB_PASS", "from_custom_env")
        config = DatabaseConfig(password_env="POLICY_DB_PASS")
        assert config.password.get_secret_value() == "from_custom_env"

    def test_password_missing_raises(self, monkeypatch):
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        with pytest.raises(ValidationError, match="DB_PASSWORD"):
            DatabaseConfig()

    def test_password_not_in_repr(self):
        config = DatabaseConfig(password="secret")
        assert "secret" not in repr(config)

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_port(self, port):
        with pytest.raises(ValidationError):
            DatabaseConfig(port=port, password="test")


class TestPoolSubConfigs:
    def test_limits_defaults(self):
        config = PoolLimitsConfig()
        assert config.min_size == 1
        assert config.max_size == 10

    def test_limits_max_gte_min(self):
        with pytest.raises(ValidationError, match="max_size"):
            PoolLimitsConfig(min_size=10, max_size=5)

    def test_timeouts_defaults(self):
        assert PoolTimeoutsConfig().acquisition == 10.0

    def test_retry_max_delay_gte_initial(self):
        with pytest.raises(ValidationError, match="max_delay"):
            PoolRetryConfig(initial_delay=2.0, max_delay=1.0)

    def test_server_settings_defaults(self):
        config = ServerSettingsConfig()
        assert config.application_name == "relaypolicy"
        assert config.timezone == "UTC"
        assert config.statement_timeout == 30_000


# ============================================================================
# Initialization
# ============================================================================


class TestPoolInit:
    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool()
        assert pool.is_connected is False
        assert pool.config.limits.max_size == 10

    def test_from_dict(self, pool_config_dict: dict[str, Any], monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool.from_dict(pool_config_dict)
        assert pool.config.database.database == "test_db"
        assert pool.config.limits.max_size == 5

    def test_from_yaml(self, pool_config_dict: dict[str, Any], tmp_path: Path, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        path = tmp_path / "pool.yaml"
        path.write_text(yaml.safe_dump(pool_config_dict))
        pool = Pool.from_yaml(str(path))
        assert pool.config.retry.max_attempts == 2

    def test_repr(self, mock_pool: Pool):
        assert "test_db" in repr(mock_pool)
        assert "test_password" not in repr(mock_pool)

    @pytest.mark.parametrize(
        ("exponential", "delays"),
        [(True, [0.5, 1.0, 2.0, 4.0, 5.0]), (False, [0.5, 1.0, 1.5, 2.0, 2.5])],
    )
    def test_retry_delay(self, exponential: bool, delays: list[float], monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool(PoolConfig(retry=PoolRetryConfig(exponential_backoff=exponential)))
        assert [pool._retry_delay(attempt) for attempt in range(5)] == delays


# ============================================================================
# Lifecycle
# ============================================================================


class TestPoolConnect:
    async def test_success(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool()
        with patch("asyncpg.create_pool", new_callable=AsyncMock) as create_pool:
            await pool.connect()
        assert pool.is_connected is True
        kwargs = create_pool.call_args.kwargs
        assert kwargs["password"] == "test_pass"
        assert kwargs["server_settings"]["statement_timeout"] == "30000"

    async def test_already_connected(self, mock_pool: Pool):
        with patch("asyncpg.create_pool", new_callable=AsyncMock) as create_pool:
            await mock_pool.connect()
        create_pool.assert_not_called()

    async def test_retry(self, monkeypatch, no_sleep: AsyncMock):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool()
        with patch(
            "asyncpg.create_pool",
            new_callable=AsyncMock,
            side_effect=[OSError("refused"), MagicMock()],
        ) as create_pool:
            await pool.connect()
        assert create_pool.await_count == 2
        no_sleep.assert_awaited_once_with(0.5)
        assert pool.is_connected is True

    async def test_max_retries_exceeded(self, monkeypatch, no_sleep: AsyncMock):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool()
        with (
            patch(
                "asyncpg.create_pool",
                new_callable=AsyncMock,
                side_effect=OSError("refused"),
            ),
            pytest.raises(ConnectionPoolError, match="after 3 attempts"),
        ):
            await pool.connect()
        assert pool.is_connected is False


class TestPoolClose:
    async def test_close(self, mock_pool: Pool, mock_asyncpg_pool: MagicMock):
        await mock_pool.close()
        assert mock_pool.is_connected is False
        mock_asyncpg_pool.close.assert_awaited_once()

    async def test_close_not_connected(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        await Pool().close()


class TestPoolContextManager:
    async def test_connects_and_closes(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        pool = Pool()
        mock_asyncpg_pool = MagicMock()
        mock_asyncpg_pool.close = AsyncMock()
        with patch("asyncpg.create_pool", new_callable=AsyncMock, return_value=mock_asyncpg_pool):
            async with pool:
                assert pool.is_connected is True
            assert pool.is_connected is False


# ============================================================================
# Queries
# ============================================================================


class TestPoolAcquire:
    def test_not_connected_raises(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "test_pass")
        with pytest.raises(RuntimeError, match="not connected"):
            Pool().acquire()


class TestPoolQueryMethods:
    async def test_fetch(self, mock_pool: Pool):
        assert await mock_pool.fetch("SELECT 1") == []

    async def test_fetchrow(self, mock_pool: Pool):
        assert await mock_pool.fetchrow("SELECT 1") is None

    async def test_fetchval_passes_column(self, mock_pool: Pool, mock_connection: MagicMock):
        assert await mock_pool.fetchval("SELECT 1, 2", column=1) == 1
        mock_connection.fetchval.assert_awaited_once_with("SELECT 1, 2", timeout=None, column=1)

    async def test_execute_passes_args_and_timeout(
        self, mock_pool: Pool, mock_connection: MagicMock
    ):
        mock_connection.execute.return_value = "DELETE 2"
        result = await mock_pool.execute("DELETE FROM job WHERE relay_id = $1", "r1", timeout=3.0)
        assert result == "DELETE 2"
        mock_connection.execute.assert_awaited_once_with(
            "DELETE FROM job WHERE relay_id = $1", "r1", timeout=3.0
        )


class TestPoolRetry:
    @pytest.mark.parametrize(
        "error",
        [asyncpg.InterfaceError("gone"), asyncpg.ConnectionDoesNotExistError("closed"), OSError()],
    )
    async def test_transient_then_success(
        self, mock_pool: Pool, mock_connection: MagicMock, no_sleep: AsyncMock, error
    ):
        mock_connection.fetch.side_effect = [error, ["row"]]
        assert await mock_pool.fetch("SELECT 1") == ["row"]
        assert mock_connection.fetch.await_count == 2
        no_sleep.assert_awaited_once()

    async def test_transient_exhausted(
        self, mock_pool: Pool, mock_connection: MagicMock, no_sleep: AsyncMock
    ):
        mock_connection.execute.side_effect = asyncpg.InterfaceError("gone")
        with pytest.raises(ConnectionPoolError, match="execute failed after 3 attempts"):
            await mock_pool.execute("SELECT 1")
        assert mock_connection.execute.await_count == 3
        assert no_sleep.await_count == 2

    async def test_query_error_not_retried(
        self, mock_pool: Pool, mock_connection: MagicMock, no_sleep: AsyncMock
    ):
        mock_connection.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key")
        with pytest.raises(QueryError, match="fetchrow failed"):
            await mock_pool.fetchrow("INSERT ...")
        assert mock_connection.fetchrow.await_count == 1
        no_sleep.assert_not_awaited()


class TestPoolTransaction:
    async def test_yields_connection(self, mock_pool: Pool, mock_connection: MagicMock):
        async with mock_pool.transaction() as conn:
            assert conn is mock_connection
        mock_connection.transaction.assert_called_once()

    async def test_postgres_error_becomes_query_error(self, mock_pool: Pool):
        with pytest.raises(QueryError, match="rolled back"):
            async with mock_pool.transaction() as conn:
                await conn.execute("DELETE ...")
                raise asyncpg.ForeignKeyViolationError("still referenced")

    async def test_transient_error_becomes_pool_error(self, mock_pool: Pool):
        with pytest.raises(ConnectionPoolError, match="aborted"):
            async with mock_pool.transaction():
                raise asyncpg.ConnectionDoesNotExistError("closed")

    async def test_other_errors_propagate(self, mock_pool: Pool):
        with pytest.raises(KeyError):
            async with mock_pool.transaction():
                raise KeyError("x")
