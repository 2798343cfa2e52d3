#!/usr/bin/env python3
"""
R.A.V.N. Realmsync - Command Line

Usage:
    realmsync list [--system dnd5e] [--sort updated]
    realmsync pull REMOTE_ID [--into ACTOR_ID]
    realmsync push ACTOR_ID [--label my-world] [--no-overwrite]

Actors are read from and written to a JSON document store (--store).
Connection settings come from RAVN_* environment variables or .env.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .client import ClientConfig, VaultClient
from .config import get_api_base_url, get_player_token, get_system_id, load_settings
from .errors import VaultError
from .module import MODULE_TITLE, RealmsyncAPI
from .reconcile import SyncReconciler
from .store import JsonDocumentStore

logger = logging.getLogger("realmsync")


def build_client() -> VaultClient:
    """Create the process-wide client. Providers re-read settings per request."""
    settings = load_settings()
    return VaultClient(
        ClientConfig(
            token_provider=get_player_token,
            base_url_provider=get_api_base_url,
            system_provider=get_system_id,
            timeout=settings.request_timeout,
        )
    )


def build_api(client: VaultClient, store_path: Path) -> RealmsyncAPI:
    """Wire the store and reconciler around an existing client."""
    store = JsonDocumentStore(store_path)
    reconciler = SyncReconciler(
        client,
        store,
        enforce_system=load_settings().enforce_system_match,
    )
    return RealmsyncAPI(client, store, reconciler)


async def run(args: argparse.Namespace) -> int:
    client = build_client()
    try:
        api = build_api(client, args.store)

        if args.command == "list":
            characters = await client.list_characters(
                system=args.system if args.system is not None else (get_system_id() or ""),
                sort=args.sort,
            )
            for character in characters:
                print(
                    f"{character.id}\t{character.name}\t{character.system}"
                    f"\t{character.label}\t{character.updated_at}"
                )
            if not characters:
                print("No Hero Vault characters found.")

        elif args.command == "pull":
            actor = await api.import_character(args.remote_id, args.into)
            verb = "Overwrote" if args.into else "Imported"
            print(f'{verb} "{actor.name}" as actor {actor.id}')

        elif args.command == "push":
            result = await api.export_actor(
                args.actor_id,
                label=args.label,
                overwrite=args.overwrite,
            )
            print(json.dumps(result, indent=2))

        return 0

    except VaultError as e:
        logger.error(f"{MODULE_TITLE}: {e}")
        return 1
    finally:
        await client.close()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="realmsync",
        description="Synchronize characters with the Hero Vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=Path("actors.json"),
        help="JSON document store holding local actors (default: actors.json)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List vault characters")
    list_parser.add_argument("--system", default=None, help="Game system filter (default: RAVN_SYSTEM_ID)")
    list_parser.add_argument("--sort", default="updated", help="Sort key (default: updated)")

    pull_parser = subparsers.add_parser("pull", help="Import a vault character")
    pull_parser.add_argument("remote_id", help="Hero Vault character id")
    pull_parser.add_argument("--into", default=None, metavar="ACTOR_ID", help="Overwrite this local actor")

    push_parser = subparsers.add_parser("push", help="Send a local actor to the vault")
    push_parser.add_argument("actor_id", help="Local actor id")
    push_parser.add_argument("--label", default=None, help="Vault label (default: RAVN_WORLD_ID)")
    push_parser.add_argument(
        "--no-overwrite",
        dest="overwrite",
        action="store_false",
        help="Keep an existing vault entry instead of replacing it",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
