"""
Typed database facade for relay policy records.

[PolicyStore][relaypolicy.core.store.PolicyStore] owns every SQL statement
the policy subsystem issues. Callers pass and receive validated model
instances ([Relay][relaypolicy.models.relay.Relay],
[PolicyList][relaypolicy.models.acl.PolicyList], entries,
[Job][relaypolicy.models.job.Job]) and never see SQL or driver records.

Allow-lists and block-lists live in two tables (``allow_list`` and
``block_list``) and share three entry tables that point at their owning
list through one of two nullable foreign keys. Both are selected by
[ListType][relaypolicy.models.constants.ListType] through a fixed mapping
of trusted identifiers; no identifier is ever taken from caller input.

Atomicity:

* lists are provisioned with ``INSERT ... ON CONFLICT (relay_id) DO UPDATE
  ... RETURNING``, so concurrent first writes converge on one row;
* pubkey entries are upserted against a per-list partial unique index, so
  repeated bans and allows are idempotent;
* the relay deletion cascade runs inside one transaction.

Uses composition with [Pool][relaypolicy.core.pool.Pool] for connection
management and implements an async context manager for the pool lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

from pydantic import BaseModel, Field, field_validator

from relaypolicy.models import (
    Job,
    KeywordEntry,
    KindEntry,
    ListType,
    Moderator,
    PolicyList,
    PubkeyEntry,
    Relay,
    RelayStatus,
    User,
)

from .exceptions import QueryError
from .logger import Logger
from .pool import Pool, PoolConfig
from .yaml import load_yaml


if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from contextlib import AbstractAsyncContextManager

    import asyncpg


_MIN_TIMEOUT_SECONDS = 0.1


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class PolicyStoreTimeoutsConfig(BaseModel):
    """Timeout settings for store operations (in seconds, ``None`` = no limit).

    ``query`` bounds the lookups on the write-authorization path, which sits
    in front of every inbound event, so it is kept short.
    """

    query: float | None = Field(default=5.0, description="Lookup timeout (seconds, None=infinite)")
    write: float | None = Field(
        default=10.0, description="Single-statement mutation timeout (seconds, None=infinite)"
    )
    cascade: float | None = Field(
        default=60.0, description="Relay deletion cascade timeout (seconds, None=infinite)"
    )

    @field_validator("query", "write", "cascade", mode="after")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v < _MIN_TIMEOUT_SECONDS:
            raise ValueError(
                f"Timeout must be None (infinite) or >= {_MIN_TIMEOUT_SECONDS} seconds"
            )
        return v


class PolicyStoreConfig(BaseModel):
    """Aggregate configuration for the policy store."""

    timeouts: PolicyStoreTimeoutsConfig = Field(default_factory=PolicyStoreTimeoutsConfig)


# ---------------------------------------------------------------------------
# SQL identifiers
# ---------------------------------------------------------------------------


class _ListTables(NamedTuple):
    """Trusted identifiers for one list type."""

    table: str
    entry_fk: str


_LIST_TABLES: dict[ListType, _ListTables] = {
    ListType.ALLOW: _ListTables("allow_list", "allow_list_id"),
    ListType.BLOCK: _ListTables("block_list", "block_list_id"),
}

_RELAY_COLUMNS = (
    "id, name, domain, owner_id, status, default_message_policy, auth_required, "
    "allow_tagged, allow_giftwrap, is_external, request_payment, details, banner_image"
)

# Tables holding rows that reference a relay directly, in deletion order.
CASCADE_TABLES: tuple[str, ...] = (
    "moderator",
    "stream",
    "job",
    '"order"',
    "client_order",
    "plan_change",
    "relay_plan_change",
    "acl_source",
)

ENTRY_TABLES: tuple[str, ...] = ("list_entry_pubkey", "list_entry_keyword", "list_entry_kind")


def _affected(status: str) -> int:
    """Row count from a command status tag such as ``"DELETE 3"``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


# ---------------------------------------------------------------------------
# PolicyStore Class
# ---------------------------------------------------------------------------


class PolicyStore:
    """Record-level read/write access to relays, users, lists, and jobs.

    Examples:
        ```python
        store = PolicyStore.from_yaml("config/relaypolicy.yaml")

        async with store:
            relay = await store.get_relay("r1")
            block = await store.ensure_list("r1", ListType.BLOCK)
            await store.upsert_pubkey_entry(block, "ab" * 32, "spam")
        ```

    Raises:
        QueryError: From every method, on permanent database errors.
        ConnectionPoolError: From every method, once connection retries are
            exhausted.
    """

    def __init__(
        self,
        pool: Pool | None = None,
        config: PolicyStoreConfig | None = None,
    ) -> None:
        self._pool = pool or Pool()
        self._config = config or PolicyStoreConfig()
        self._logger = Logger("store")

    @property
    def config(self) -> PolicyStoreConfig:
        return self._config

    @property
    def pool_config(self) -> PoolConfig:
        return self._pool.config

    @classmethod
    def from_yaml(cls, config_path: str) -> PolicyStore:
        """Create a store from a YAML file with a ``pool`` key and optional ``timeouts``."""
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> PolicyStore:
        """Create a store from a configuration dictionary.

        The ``pool`` key builds the [Pool][relaypolicy.core.pool.Pool]; the
        ``store`` key, when present, holds
        [PolicyStoreConfig][relaypolicy.core.store.PolicyStoreConfig] fields.
        """
        pool = Pool.from_dict(config_dict["pool"]) if "pool" in config_dict else None
        store_dict = config_dict.get("store")
        config = PolicyStoreConfig(**store_dict) if store_dict else None
        return cls(pool=pool, config=config)

    def transaction(self) -> AbstractAsyncContextManager[asyncpg.Connection[asyncpg.Record]]:
        return self._pool.transaction()

    # -------------------------------------------------------------------------
    # Relays
    # -------------------------------------------------------------------------

    async def _fetch_relay(self, where: str, *args: Any) -> Relay | None:
        row = await self._pool.fetchrow(
            f"SELECT {_RELAY_COLUMNS} FROM relay WHERE {where} LIMIT 1",
            *args,
            timeout=self._config.timeouts.query,
        )
        return Relay.from_db_row(row) if row is not None else None

    async def get_relay(self, relay_id: str) -> Relay | None:
        """Return the relay with the given id, or ``None``."""
        return await self._fetch_relay("id = $1", relay_id)

    async def find_relay(
        self,
        name: str,
        domain: str,
        *,
        statuses: Collection[RelayStatus] | None = None,
    ) -> Relay | None:
        """Return the internal relay served as ``<name>.<domain>``, or ``None``.

        Args:
            statuses: When given, only relays in one of these statuses match.
        """
        if statuses is None:
            return await self._fetch_relay("name = $1 AND domain = $2", name, domain)
        return await self._fetch_relay(
            "name = $1 AND domain = $2 AND status = ANY($3::text[])",
            name,
            domain,
            [str(s) for s in statuses],
        )

    async def find_external_relay(
        self,
        domain: str,
        *,
        statuses: Collection[RelayStatus] | None = None,
    ) -> Relay | None:
        """Return the external relay whose full hostname is *domain*, or ``None``."""
        if statuses is None:
            return await self._fetch_relay("is_external AND domain = $1", domain)
        return await self._fetch_relay(
            "is_external AND domain = $1 AND status = ANY($2::text[])",
            domain,
            [str(s) for s in statuses],
        )

    async def update_relay_description(self, relay_id: str, description: str) -> bool:
        """Set the relay description. Returns ``False`` if the relay does not exist."""
        status = await self._pool.execute(
            "UPDATE relay SET details = $2 WHERE id = $1",
            relay_id,
            description,
            timeout=self._config.timeouts.write,
        )
        return _affected(status) > 0

    async def update_relay_icon(self, relay_id: str, icon_url: str) -> bool:
        """Set the relay icon URL. Returns ``False`` if the relay does not exist."""
        status = await self._pool.execute(
            "UPDATE relay SET banner_image = $2 WHERE id = $1",
            relay_id,
            icon_url,
            timeout=self._config.timeouts.write,
        )
        return _affected(status) > 0

    # -------------------------------------------------------------------------
    # Users / moderators
    # -------------------------------------------------------------------------

    async def get_owner_pubkey(self, relay_id: str) -> str | None:
        """Return the hex pubkey of the relay's owner, or ``None``."""
        value: str | None = await self._pool.fetchval(
            'SELECT u.pubkey FROM relay r JOIN "user" u ON u.id = r.owner_id WHERE r.id = $1',
            relay_id,
            timeout=self._config.timeouts.query,
        )
        return value

    async def list_moderators(self, relay_id: str) -> list[Moderator]:
        """Return the relay's moderators with their users' pubkeys."""
        rows = await self._pool.fetch(
            'SELECT m.id, m.relay_id, m.user_id, u.pubkey FROM moderator m '
            'JOIN "user" u ON u.id = m.user_id WHERE m.relay_id = $1',
            relay_id,
            timeout=self._config.timeouts.query,
        )
        return [Moderator.from_db_row(row) for row in rows]

    async def find_admin_user(self, pubkeys: Sequence[str]) -> User | None:
        """Return a platform super-admin holding one of *pubkeys*, or ``None``."""
        row = await self._pool.fetchrow(
            'SELECT id, pubkey, name, admin FROM "user" '
            "WHERE admin AND pubkey = ANY($1::text[]) LIMIT 1",
            list(pubkeys),
            timeout=self._config.timeouts.query,
        )
        return User.from_db_row(row) if row is not None else None

    # -------------------------------------------------------------------------
    # Lists
    # -------------------------------------------------------------------------

    async def ensure_list(self, relay_id: str, list_type: ListType) -> PolicyList:
        """Return the relay's list of the given type, creating it if absent.

        A single upsert statement: concurrent callers all receive the same row.
        """
        tables = _LIST_TABLES[list_type]
        row = await self._pool.fetchrow(
            f"INSERT INTO {tables.table} (relay_id) VALUES ($1) "
            "ON CONFLICT (relay_id) DO UPDATE SET relay_id = EXCLUDED.relay_id "
            "RETURNING id, relay_id",
            relay_id,
            timeout=self._config.timeouts.write,
        )
        if row is None:
            raise QueryError("ensure_list upsert returned no row")
        return PolicyList.from_db_row(row, list_type)

    # -------------------------------------------------------------------------
    # Pubkey entries
    # -------------------------------------------------------------------------

    async def list_pubkey_entries(self, relay_id: str, list_type: ListType) -> list[PubkeyEntry]:
        tables = _LIST_TABLES[list_type]
        rows = await self._pool.fetch(
            f"SELECT e.pubkey, e.reason FROM list_entry_pubkey e "
            f"JOIN {tables.table} l ON e.{tables.entry_fk} = l.id "
            "WHERE l.relay_id = $1 ORDER BY e.pubkey",
            relay_id,
            timeout=self._config.timeouts.query,
        )
        return [PubkeyEntry.from_db_row(row) for row in rows]

    async def has_pubkey_entry(
        self, relay_id: str, list_type: ListType, pubkeys: Sequence[str]
    ) -> bool:
        """Whether the list holds an entry equal to any of *pubkeys*."""
        tables = _LIST_TABLES[list_type]
        result: bool | None = await self._pool.fetchval(
            f"SELECT EXISTS(SELECT 1 FROM list_entry_pubkey e "
            f"JOIN {tables.table} l ON e.{tables.entry_fk} = l.id "
            "WHERE l.relay_id = $1 AND e.pubkey = ANY($2::text[]))",
            relay_id,
            list(pubkeys),
            timeout=self._config.timeouts.query,
        )
        return bool(result)

    async def upsert_pubkey_entry(self, policy_list: PolicyList, pubkey: str, reason: str) -> None:
        """Insert a pubkey entry, or refresh its reason if already present."""
        fk = _LIST_TABLES[policy_list.list_type].entry_fk
        await self._pool.execute(
            f"INSERT INTO list_entry_pubkey ({fk}, pubkey, reason) VALUES ($1, $2, $3) "
            f"ON CONFLICT ({fk}, pubkey) WHERE {fk} IS NOT NULL "
            "DO UPDATE SET reason = EXCLUDED.reason",
            policy_list.id,
            pubkey,
            reason,
            timeout=self._config.timeouts.write,
        )

    async def delete_pubkey_entry(self, relay_id: str, list_type: ListType, pubkey: str) -> int:
        """Delete the matching pubkey entry; returns the number of rows removed."""
        tables = _LIST_TABLES[list_type]
        status = await self._pool.execute(
            f"DELETE FROM list_entry_pubkey WHERE pubkey = $2 AND {tables.entry_fk} IN "
            f"(SELECT id FROM {tables.table} WHERE relay_id = $1)",
            relay_id,
            pubkey,
            timeout=self._config.timeouts.write,
        )
        return _affected(status)

    # -------------------------------------------------------------------------
    # Keyword entries
    # -------------------------------------------------------------------------

    async def list_keyword_entries(self, relay_id: str, list_type: ListType) -> list[KeywordEntry]:
        tables = _LIST_TABLES[list_type]
        rows = await self._pool.fetch(
            f"SELECT e.keyword, e.reason FROM list_entry_keyword e "
            f"JOIN {tables.table} l ON e.{tables.entry_fk} = l.id "
            "WHERE l.relay_id = $1 ORDER BY e.keyword",
            relay_id,
            timeout=self._config.timeouts.query,
        )
        return [KeywordEntry.from_db_row(row) for row in rows]

    async def add_keyword_entry(self, policy_list: PolicyList, keyword: str, reason: str) -> None:
        fk = _LIST_TABLES[policy_list.list_type].entry_fk
        await self._pool.execute(
            f"INSERT INTO list_entry_keyword ({fk}, keyword, reason) VALUES ($1, $2, $3)",
            policy_list.id,
            keyword,
            reason,
            timeout=self._config.timeouts.write,
        )

    async def delete_keyword_entry(self, relay_id: str, list_type: ListType, keyword: str) -> int:
        tables = _LIST_TABLES[list_type]
        status = await self._pool.execute(
            f"DELETE FROM list_entry_keyword WHERE keyword = $2 AND {tables.entry_fk} IN "
            f"(SELECT id FROM {tables.table} WHERE relay_id = $1)",
            relay_id,
            keyword,
            timeout=self._config.timeouts.write,
        )
        return _affected(status)

    # -------------------------------------------------------------------------
    # Kind entries
    # -------------------------------------------------------------------------

    async def list_kind_entries(self, relay_id: str, list_type: ListType) -> list[KindEntry]:
        tables = _LIST_TABLES[list_type]
        rows = await self._pool.fetch(
            f"SELECT e.kind, e.reason FROM list_entry_kind e "
            f"JOIN {tables.table} l ON e.{tables.entry_fk} = l.id "
            "WHERE l.relay_id = $1 ORDER BY e.kind",
            relay_id,
            timeout=self._config.timeouts.query,
        )
        return [KindEntry.from_db_row(row) for row in rows]

    async def add_kind_entry(self, policy_list: PolicyList, kind: int, reason: str) -> None:
        fk = _LIST_TABLES[policy_list.list_type].entry_fk
        await self._pool.execute(
            f"INSERT INTO list_entry_kind ({fk}, kind, reason) VALUES ($1, $2, $3)",
            policy_list.id,
            kind,
            reason,
            timeout=self._config.timeouts.write,
        )

    async def delete_kind_entry(self, relay_id: str, list_type: ListType, kind: int) -> int:
        """Delete one matching kind row. Duplicates beyond the first are left in place."""
        tables = _LIST_TABLES[list_type]
        status = await self._pool.execute(
            "DELETE FROM list_entry_kind WHERE id = ("
            f"SELECT e.id FROM list_entry_kind e JOIN {tables.table} l "
            f"ON e.{tables.entry_fk} = l.id WHERE l.relay_id = $1 AND e.kind = $2 "
            "ORDER BY e.created_at, e.id LIMIT 1)",
            relay_id,
            kind,
            timeout=self._config.timeouts.write,
        )
        return _affected(status)

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    async def enqueue_job(self, job: Job) -> str:
        """Insert a job row and return its id."""
        params = job.to_db_params()
        job_id: str = await self._pool.fetchval(
            "INSERT INTO job (relay_id, kind, status, pubkey, event_id) "
            "VALUES ($1, $2, $3, $4, $5) RETURNING id",
            *params,
            timeout=self._config.timeouts.write,
        )
        self._logger.debug("job_enqueued", relay_id=job.relay_id, kind=job.kind, job_id=job_id)
        return job_id

    # -------------------------------------------------------------------------
    # Deletion cascade
    # -------------------------------------------------------------------------

    async def delete_relay(self, relay_id: str) -> bool:
        """Delete a relay and everything that references it, atomically.

        Order: directly dependent rows, then the entries of both lists, then
        both lists, then the relay row. Any failure rolls the whole cascade
        back.

        Returns:
            ``False`` if the relay does not exist (nothing is deleted).
        """
        timeout = self._config.timeouts.cascade

        async with self._pool.transaction() as conn:
            exists = await conn.fetchval(
                "SELECT id FROM relay WHERE id = $1 FOR UPDATE", relay_id, timeout=timeout
            )
            if exists is None:
                return False

            for table in CASCADE_TABLES:
                await conn.execute(
                    f"DELETE FROM {table} WHERE relay_id = $1", relay_id, timeout=timeout
                )

            for entry_table in ENTRY_TABLES:
                await conn.execute(
                    f"DELETE FROM {entry_table} "
                    "WHERE allow_list_id IN (SELECT id FROM allow_list WHERE relay_id = $1) "
                    "OR block_list_id IN (SELECT id FROM block_list WHERE relay_id = $1)",
                    relay_id,
                    timeout=timeout,
                )

            for tables in _LIST_TABLES.values():
                await conn.execute(
                    f"DELETE FROM {tables.table} WHERE relay_id = $1", relay_id, timeout=timeout
                )

            await conn.execute("DELETE FROM relay WHERE id = $1", relay_id, timeout=timeout)

        self._logger.info("relay_deleted", relay_id=relay_id)
        return True

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> PolicyStore:
        await self._pool.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self._pool.close()

    def __repr__(self) -> str:
        db = self._pool.config.database
        return (
            f"PolicyStore(host={db.host}, database={db.database}, "
            f"connected={self._pool.is_connected})"
        )
