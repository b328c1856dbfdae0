"""CLI entry point for nostrfeed.

Runs one facade operation against the configured relays and prints the
result as JSON on stdout. Logs go to stderr.

Examples:
    ```bash
    python -m nostrfeed authors <pubkey> [<pubkey> ...] --limit 20
    python -m nostrfeed mentions <pubkey>
    python -m nostrfeed profile <pubkey>
    python -m nostrfeed thread <event-id> --log-level DEBUG
    NOSTR_PRIVATE_KEY=... python -m nostrfeed publish "gm"
    ```
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from nostrfeed.client.feed import NostrFeed
from nostrfeed.core.exceptions import ConfigurationError, PublishingError
from nostrfeed.core.logger import Logger, setup_logging
from nostrfeed.core.yaml import load_yaml
from nostrfeed.models.constants import EventKind


DEFAULT_CONFIG = Path("config") / "nostrfeed.yaml"

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="nostrfeed",
        description="Query and publish Nostr events across many relays",
    )

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

    commands = parser.add_subparsers(dest="command", required=True)

    authors = commands.add_parser("authors", help="Notes and reposts by one or more authors")
    authors.add_argument("pubkeys", nargs="+", help="Author public keys (hex)")
    authors.add_argument("--limit", type=int, help="Maximum number of notes")

    mentions = commands.add_parser("mentions", help="Notes and reposts tagging an author")
    mentions.add_argument("pubkey", help="Public key (hex)")
    mentions.add_argument("--limit", type=int, help="Maximum number of notes")

    profile = commands.add_parser("profile", help="Profile metadata and contact list")
    profile.add_argument("pubkey", help="Public key (hex)")

    thread = commands.add_parser("thread", help="Notes replying to or quoting events")
    thread.add_argument("event_ids", nargs="+", help="Event ids (hex)")

    publish = commands.add_parser("publish", help="Sign and publish an event")
    publish.add_argument("content", help="Event content")
    publish.add_argument("--kind", type=int, default=int(EventKind.NOTE), help="Event kind (default: 1)")

    return parser.parse_args(argv)


def _load_config(path: Path) -> dict[str, Any]:
    """Load the YAML config, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.info("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


async def run_command(feed: NostrFeed, args: argparse.Namespace) -> dict[str, Any] | None:
    """Run the selected operation and return its JSON-ready result."""
    if args.command == "authors":
        return (await feed.fetch_events_for_authors(args.pubkeys, limit=args.limit)).to_dict()
    if args.command == "mentions":
        return (await feed.fetch_events_mentioning(args.pubkey, limit=args.limit)).to_dict()
    if args.command == "profile":
        return (await feed.fetch_profile(args.pubkey)).to_dict()
    if args.command == "thread":
        return (await feed.fetch_thread(args.event_ids)).to_dict()

    event = await feed.publish(args.kind, args.content)
    return event.to_dict() if event else None


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the facade and run one command."""
    args = parse_args(argv)
    setup_logging(args.log_level, stream=sys.stderr)

    try:
        feed = NostrFeed.from_dict(_load_config(args.config))
        result = await run_command(feed, args)
    except (ConfigurationError, PublishingError) as e:
        logger.error(f"{args.command}_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130

    if result is None:
        logger.error(f"{args.command}_failed", error="no relay accepted the event")
        return 1
    json.dump(result, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
