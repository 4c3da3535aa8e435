"""
Unit tests for the relaypolicy CLI entry point.

Tests:
- Argument parsing for every subcommand
- run_command against the in-memory store
- main() exit codes and JSON output
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from relaypolicy.__main__ import DEFAULT_CONFIG, main, parse_args, run_command
from relaypolicy.core.exceptions import (
    InvalidInputError,
    QueryError,
    RelayNotFoundError,
    UnknownMethodError,
)
from relaypolicy.models import ListType, Relay, User
from tests.fixtures.store import InMemoryPolicyStore


PUBKEY = "ab" * 32


# ============================================================================
# parse_args
# ============================================================================


class TestParseArgs:
    def test_authorize(self):
        args = parse_args(["authorize", "nostr.example.com", PUBKEY])
        assert args.command == "authorize"
        assert args.hostname == "nostr.example.com"
        assert args.pubkey == PUBKEY
        assert args.config == DEFAULT_CONFIG
        assert args.log_level == "WARNING"

    def test_global_options(self):
        args = parse_args(["--config", "x.yaml", "--log-level", "DEBUG", "mode", "a.b.c"])
        assert args.config == Path("x.yaml")
        assert args.log_level == "DEBUG"
        assert args.command == "mode"

    def test_manage_collects_params(self):
        args = parse_args(["manage", "r1", "banpubkey", PUBKEY, "spam"])
        assert args.method == "banpubkey"
        assert args.params == [PUBKEY, "spam"]

    def test_entries(self):
        args = parse_args(["entries", "r1", "block", "keywords", "add", "casino", "--reason", "x"])
        assert args.list_type == "block"
        assert args.entry == "keywords"
        assert args.action == "add"
        assert args.value == "casino"
        assert args.reason == "x"

    def test_entries_rejects_unknown_list(self):
        with pytest.raises(SystemExit):
            parse_args(["entries", "r1", "grey", "kinds", "list"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


# ============================================================================
# run_command
# ============================================================================


class TestRunCommand:
    async def test_authorize(self, store: InMemoryPolicyStore, relay: Relay, owner: User):
        args = parse_args(["authorize", "nostr.example.com", owner.pubkey])
        assert await run_command(store, args) == {"status": "full"}

    async def test_authorize_stranger(self, store: InMemoryPolicyStore, relay: Relay):
        args = parse_args(["authorize", "nostr.example.com", PUBKEY])
        assert await run_command(store, args) == {"status": "unauthorized"}

    async def test_authorize_unknown_host(self, store: InMemoryPolicyStore):
        args = parse_args(["authorize", "nope.example.com", PUBKEY])
        assert await run_command(store, args) == {"status": "not_found"}

    async def test_mode(self, store: InMemoryPolicyStore, relay: Relay):
        args = parse_args(["mode", "nostr.example.com"])
        assert await run_command(store, args) == {"mode": "authnone"}

    async def test_mode_unknown_host(self, store: InMemoryPolicyStore):
        args = parse_args(["mode", "nope.example.com"])
        assert await run_command(store, args) == {"mode": None}

    async def test_manage(self, store: InMemoryPolicyStore, relay: Relay):
        args = parse_args(["manage", relay.id, "banpubkey", PUBKEY, "spam"])
        assert await run_command(store, args) == {"result": True}
        assert len(store.jobs) == 1

        args = parse_args(["manage", relay.id, "listbannedpubkeys"])
        assert await run_command(store, args) == {
            "result": [{"pubkey": PUBKEY, "reason": "spam"}]
        }

    async def test_manage_unknown_relay(self, store: InMemoryPolicyStore):
        args = parse_args(["manage", "nope", "supportedmethods"])
        with pytest.raises(RelayNotFoundError):
            await run_command(store, args)

    async def test_manage_unknown_method(self, store: InMemoryPolicyStore, relay: Relay):
        args = parse_args(["manage", relay.id, "nosuchmethod"])
        with pytest.raises(UnknownMethodError):
            await run_command(store, args)

    async def test_keyword_entries(self, store: InMemoryPolicyStore, relay: Relay):
        add = ["entries", relay.id, "block", "keywords", "add", "casino", "--reason", "spam"]
        assert await run_command(store, parse_args(add)) == {"result": True}

        listing = parse_args(["entries", relay.id, "block", "keywords", "list"])
        assert await run_command(store, listing) == {
            "result": [{"keyword": "casino", "reason": "spam"}]
        }

        remove = parse_args(["entries", relay.id, "block", "keywords", "remove", "casino"])
        await run_command(store, remove)
        assert await run_command(store, listing) == {"result": []}

    async def test_kind_entries(self, store: InMemoryPolicyStore, relay: Relay):
        await run_command(store, parse_args(["entries", relay.id, "allow", "kinds", "add", "1"]))
        await run_command(store, parse_args(["entries", relay.id, "allow", "kinds", "add", "7"]))
        await run_command(
            store, parse_args(["entries", relay.id, "allow", "kinds", "remove", "1"])
        )
        listing = parse_args(["entries", relay.id, "allow", "kinds", "list"])
        assert await run_command(store, listing) == {"result": [7]}
        assert (relay.id, ListType.ALLOW) in store.lists

    @pytest.mark.parametrize("value", ["seven", "-1", "²"])
    async def test_kind_must_be_integer(
        self, store: InMemoryPolicyStore, relay: Relay, value: str
    ):
        args = parse_args(["entries", relay.id, "allow", "kinds", "add", value])
        with pytest.raises(InvalidInputError, match="kind"):
            await run_command(store, args)

    async def test_entry_value_required(self, store: InMemoryPolicyStore, relay: Relay):
        args = parse_args(["entries", relay.id, "block", "keywords", "add"])
        with pytest.raises(InvalidInputError, match="requires a value"):
            await run_command(store, args)

    async def test_delete_relay(self, store: InMemoryPolicyStore, relay: Relay):
        args = parse_args(["delete-relay", relay.id])
        assert await run_command(store, args) == {"result": True}
        assert relay.id not in store.relays

    async def test_delete_missing_relay(self, store: InMemoryPolicyStore):
        with pytest.raises(RelayNotFoundError):
            await run_command(store, parse_args(["delete-relay", "nope"]))


# ============================================================================
# main
# ============================================================================


@pytest.fixture
def fake_store() -> MagicMock:
    store = MagicMock()
    store.__aenter__ = AsyncMock(return_value=store)
    store.__aexit__ = AsyncMock(return_value=False)
    return store


def _argv(tmp_path: Path, *rest: str) -> list[str]:
    return ["--config", str(tmp_path / "missing.yaml"), *rest]


class TestMain:
    @pytest.fixture(autouse=True)
    def _keep_logging(self):
        with patch("relaypolicy.__main__.setup_logging"):
            yield

    async def test_success_prints_json(
        self, fake_store: MagicMock, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ):
        with (
            patch("relaypolicy.__main__.PolicyStore.from_dict", return_value=fake_store),
            patch(
                "relaypolicy.__main__.run_command",
                new_callable=AsyncMock,
                return_value={"mode": "authnone"},
            ),
        ):
            code = await main(_argv(tmp_path, "mode", "nostr.example.com"))

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"mode": "authnone"}
        fake_store.__aenter__.assert_awaited_once()
        fake_store.__aexit__.assert_awaited_once()

    async def test_loads_config_file(self, fake_store: MagicMock, tmp_path: Path):
        config = tmp_path / "relaypolicy.yaml"
        config.write_text("store:\n  timeouts:\n    query: 5\n")
        with (
            patch(
                "relaypolicy.__main__.PolicyStore.from_dict", return_value=fake_store
            ) as from_dict,
            patch("relaypolicy.__main__.run_command", new_callable=AsyncMock, return_value={}),
        ):
            await main(["--config", str(config), "mode", "nostr.example.com"])

        from_dict.assert_called_once_with({"store": {"timeouts": {"query": 5}}})

    @pytest.mark.parametrize(
        "error", [InvalidInputError("bad pubkey"), RelayNotFoundError("r9")]
    )
    async def test_client_errors_exit_2(
        self,
        fake_store: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
        error: Exception,
    ):
        with (
            patch("relaypolicy.__main__.PolicyStore.from_dict", return_value=fake_store),
            patch("relaypolicy.__main__.run_command", new_callable=AsyncMock, side_effect=error),
        ):
            code = await main(_argv(tmp_path, "authorize", "nostr.example.com", "x"))

        assert code == 2
        assert json.loads(capsys.readouterr().out) == {"error": str(error)}

    async def test_database_error_exit_1(
        self, fake_store: MagicMock, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ):
        with (
            patch("relaypolicy.__main__.PolicyStore.from_dict", return_value=fake_store),
            patch(
                "relaypolicy.__main__.run_command",
                new_callable=AsyncMock,
                side_effect=QueryError("boom"),
            ),
        ):
            code = await main(_argv(tmp_path, "mode", "nostr.example.com"))

        assert code == 1
        assert capsys.readouterr().out == ""

    async def test_interrupt_exit_130(self, fake_store: MagicMock, tmp_path: Path):
        with (
            patch("relaypolicy.__main__.PolicyStore.from_dict", return_value=fake_store),
            patch(
                "relaypolicy.__main__.run_command",
                new_callable=AsyncMock,
                side_effect=KeyboardInterrupt,
            ),
        ):
            code = await main(_argv(tmp_path, "mode", "nostr.example.com"))

        assert code == 130

    async def test_missing_password_exit_1(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        code = await main(_argv(tmp_path, "mode", "nostr.example.com"))
        assert code == 1
