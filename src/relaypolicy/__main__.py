"""CLI entry point for relaypolicy.

Exposes the policy decisions and list mutations to operators and to relay
daemons that prefer shelling out over linking the library. Every command
prints one JSON object on stdout.

Examples:
    ```bash
    python -m relaypolicy authorize nostr.example.com npub1...
    python -m relaypolicy mode nostr.example.com
    python -m relaypolicy manage r1 banpubkey <hex-pubkey> "spam"
    python -m relaypolicy entries r1 block keywords add casino --reason spam
    python -m relaypolicy delete-relay r1 --config config/relaypolicy.yaml
    ```
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from relaypolicy.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    InvalidInputError,
    NotFoundError,
    PolicyError,
    RelayNotFoundError,
)
from relaypolicy.core.logger import Logger, setup_logging
from relaypolicy.core.store import PolicyStore
from relaypolicy.core.yaml import load_yaml
from relaypolicy.models.constants import ListType
from relaypolicy.nips.nip86 import parse_command
from relaypolicy.services.acl import AclService
from relaypolicy.services.authorization import AuthorizationEngine


DEFAULT_CONFIG = Path("config") / "relaypolicy.yaml"

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="relaypolicy", description="Relay policy tools")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    authorize = sub.add_parser("authorize", help="Decide write authorization for a pubkey")
    authorize.add_argument("hostname")
    authorize.add_argument("pubkey", help="Hex or npub pubkey")

    mode = sub.add_parser("mode", help="Report a relay's connection mode")
    mode.add_argument("hostname")

    manage = sub.add_parser("manage", help="Apply a NIP-86 command without a credential")
    manage.add_argument("relay_id")
    manage.add_argument("method")
    manage.add_argument("params", nargs="*")

    entries = sub.add_parser("entries", help="Manage keyword and kind entries")
    entries.add_argument("relay_id")
    entries.add_argument("list_type", choices=[t.value for t in ListType])
    entries.add_argument("entry", choices=["keywords", "kinds"])
    entries.add_argument("action", choices=["list", "add", "remove"])
    entries.add_argument("value", nargs="?")
    entries.add_argument("--reason", default="")

    delete = sub.add_parser("delete-relay", help="Delete a relay and everything it owns")
    delete.add_argument("relay_id")

    return parser.parse_args(argv)


def _load_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


async def _entries(acl: AclService, args: argparse.Namespace) -> Any:
    list_type = ListType(args.list_type)
    if args.action == "list":
        if args.entry == "keywords":
            return await acl.list_keywords(args.relay_id, list_type)
        return await acl.list_kinds(args.relay_id, list_type)

    if args.value is None:
        raise InvalidInputError(f"{args.action} requires a value")

    if args.entry == "keywords":
        if args.action == "add":
            await acl.add_keyword(args.relay_id, list_type, args.value, args.reason)
        else:
            await acl.remove_keyword(args.relay_id, list_type, args.value)
        return True

    if not (args.value.isascii() and args.value.isdigit()):
        raise InvalidInputError("kind must be an integer")
    if args.action == "add":
        await acl.add_kind(args.relay_id, list_type, int(args.value), args.reason)
    else:
        await acl.remove_kind(args.relay_id, list_type, int(args.value))
    return True


async def run_command(store: PolicyStore, args: argparse.Namespace) -> dict[str, Any]:
    """Run one subcommand against a connected store and return its JSON output."""
    engine = AuthorizationEngine(store)
    acl = AclService(store)

    if args.command == "authorize":
        status = await engine.authorize_write(args.hostname, args.pubkey)
        return {"status": status.value}

    if args.command == "mode":
        mode = await engine.connection_mode(args.hostname)
        return {"mode": mode.value if mode is not None else None}

    if args.command == "delete-relay":
        await acl.delete_relay(args.relay_id)
        return {"result": True}

    if await store.get_relay(args.relay_id) is None:
        raise RelayNotFoundError(args.relay_id)

    if args.command == "manage":
        command = parse_command(args.method, list(args.params))
        return {"result": await acl.execute(args.relay_id, command)}

    return {"result": await _entries(acl, args)}


async def main(argv: list[str] | None = None) -> int:
    """Parse args, connect the store, run the subcommand, and print its output."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        store = PolicyStore.from_dict(_load_config(args.config))
    except (ConfigurationError, ValueError) as e:
        logger.error("config_invalid", error=str(e))
        return 1

    try:
        async with store:
            output = await run_command(store, args)
    except (InvalidInputError, NotFoundError) as e:
        print(json.dumps({"error": str(e)}))
        return 2
    except DatabaseError as e:
        logger.error("database_failed", error=str(e))
        return 1
    except PolicyError as e:
        logger.error("command_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130

    print(json.dumps(output))
    return 0


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
