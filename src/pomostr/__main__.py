"""CLI entry point for pomostr.

One subcommand per user-facing operation. Fetch-style commands open
short-lived relay connections; ``publish-session`` and ``watch`` use the
persistent client pool. ``watch`` runs until interrupted and serves the
Prometheus endpoint when metrics are enabled.

Examples:
    ```bash
    python -m pomostr rankings
    python -m pomostr search alice --log-level DEBUG
    python -m pomostr publish-session --duration 25 --level practitioner
    python -m pomostr publish-session --duration 25
    python -m pomostr --config config/pomostr.yaml watch
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Any

from nostr_sdk import NostrSdkError
from pydantic import ValidationError

from pomostr.app import App, AppConfig
from pomostr.core.exceptions import ConfigurationError, PomostrError, SigningError
from pomostr.core.logger import Logger, StructuredFormatter
from pomostr.core.metrics import start_metrics_server
from pomostr.models.constants import TAG_DURATION, EventKind, PomodoroLevel
from pomostr.models.filter import Filter
from pomostr.models.ranking import RankingWindow
from pomostr.nips.nip01 import subscription_id
from pomostr.services.common.types import AwaitingSignature, PublishFailed, Published
from pomostr.utils.keys import parse_public_key


DEFAULT_CONFIG = Path("config") / "pomostr.yaml"

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="pomostr", description="Pomodoro social client for Nostr")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Config path (default: {DEFAULT_CONFIG}; defaults apply if missing)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    rankings = commands.add_parser("rankings", help="Show daily, weekly, and monthly leaderboards")
    rankings.add_argument("pubkeys", nargs="*", help="npub or hex keys (default: your contacts)")

    search = commands.add_parser("search", help="Search users by name")
    search.add_argument("query")

    commands.add_parser("friends", help="List users who added you")

    metadata = commands.add_parser("metadata", help="Fetch profiles")
    metadata.add_argument("pubkeys", nargs="+", help="npub or hex keys")

    session = commands.add_parser("publish-session", help="Publish a completed session")
    session.add_argument("--duration", type=int, required=True, help="Minutes")
    session.add_argument(
        "--level",
        choices=[level.value for level in PomodoroLevel],
        default=None,
        help="Level tag (default: derived from your sessions of the last seven days)",
    )

    add_friend = commands.add_parser("add-friend", help="Add a contact and send a friend signal")
    add_friend.add_argument("target", help="npub or hex key")

    commands.add_parser("watch", help="Stream live session events until interrupted")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that both
    ``Logger`` output and plain ``logging.getLogger()`` calls in models and
    utils render as ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_config(path: Path) -> AppConfig:
    """Load the YAML config, falling back to defaults when the file is missing."""
    try:
        if not path.exists():
            logger.warning("config_not_found", path=str(path))
            return AppConfig()
        return AppConfig.from_yaml(path)
    except (ValidationError, NostrSdkError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _parse_pubkeys(values: list[str]) -> list[str]:
    pubkeys = []
    for value in values:
        pubkey = parse_public_key(value)
        if pubkey is None:
            logger.warning("invalid_pubkey_skipped", value=value)
            continue
        pubkeys.append(pubkey)
    return pubkeys


def _require_identity(app: App) -> str:
    identity = app.identity
    if identity is None:
        raise SigningError(f"No private key: set {app.config.keys.keys_env}")
    return identity


def _report(outcome: Published | AwaitingSignature | PublishFailed) -> int:
    match outcome:
        case Published(event=event, sent=sent, report=report):
            print(f"{'published' if sent else 'not sent'} {event.id}")
            if report is not None:
                for ack in report.acks:
                    status = {True: "accepted", False: "rejected", None: "no answer"}[ack.accepted]
                    print(f"  {ack.relay}: {status} {ack.message}".rstrip())
            return 0 if sent else 1
        case AwaitingSignature(request_id=request_id):
            print(f"awaiting signature {request_id}")
            return 0
        case PublishFailed(reason=reason):
            print(f"failed: {reason}", file=sys.stderr)
            return 1
    return 1


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_rankings(app: App, args: argparse.Namespace) -> int:
    pubkeys = _parse_pubkeys(args.pubkeys) if args.pubkeys else list(app.contacts.contacts)
    if not args.pubkeys and app.identity is not None:
        pubkeys.insert(0, app.identity)
    if not pubkeys:
        print("no pubkeys: pass some or add contacts", file=sys.stderr)
        return 1

    rankings = await app.rankings.fetch_rankings(pubkeys)
    names = await app.search.fetch_metadata(pubkeys)
    for window in RankingWindow:
        print(window.name.lower())
        for position, entry in enumerate(rankings.window(window), start=1):
            profile = names.get(entry.pubkey)
            name = profile.best_name if profile else entry.pubkey[:12] + "..."
            level = entry.level.display_name if entry.level else "-"
            print(f"  {position:>3}. {name:<32} {entry.session_count:>4}  {level}")
    return 0


async def cmd_search(app: App, args: argparse.Namespace) -> int:
    exclude = [app.identity] if app.identity else []
    for profile in await app.search.search_users(args.query, exclude):
        print(f"{profile.pubkey}  {profile.best_name}")
    return 0


async def cmd_friends(app: App, _args: argparse.Namespace) -> int:
    _require_identity(app)
    for pubkey in sorted(await app.friends.fetch_inbound()):
        marker = "*" if pubkey in app.contacts else " "
        print(f"{marker} {pubkey}")
    return 0


async def cmd_metadata(app: App, args: argparse.Namespace) -> int:
    profiles = await app.search.fetch_metadata(_parse_pubkeys(args.pubkeys))
    for pubkey, profile in profiles.items():
        print(f"{pubkey}  {profile.best_name}")
        if profile.about:
            print(f"    {profile.about}")
    return 0 if profiles else 1


async def cmd_publish_session(app: App, args: argparse.Namespace) -> int:
    identity = _require_identity(app)
    await app.client.connect()
    if not await app.client.wait_connected(app.config.client.connect_timeout):
        print("failed: no relay connected", file=sys.stderr)
        return 1
    if args.level is None:
        level = await app.rankings.suggest_level(identity)
    else:
        level = PomodoroLevel(args.level)
    return _report(await app.sessions.publish_session(args.duration, level))


async def cmd_add_friend(app: App, args: argparse.Namespace) -> int:
    _require_identity(app)
    result = app.contacts.add_from_string(args.target)
    if result.error is not None:
        print(f"failed: {result.error}", file=sys.stderr)
        return 1
    return _report(await app.friends.publish_friend_add(args.target))


async def cmd_watch(app: App, _args: argparse.Namespace) -> int:
    metrics_config = app.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    sub_id = subscription_id("watch")
    event_filter = Filter(kinds=(EventKind.POMODORO_SESSION,), since=int(time.time()))

    async def _print_events() -> None:
        async with app.client.events.listen() as listener:
            async for item in listener:
                if item.subscription_id != sub_id:
                    continue
                duration = item.event.first_tag_value(TAG_DURATION) or "?"
                print(f"{item.event.pubkey[:12]}... {duration} min via {item.relay_url}")

    try:
        printer = asyncio.create_task(_print_events())
        await app.client.connect()
        await app.client.subscribe(sub_id, [event_filter])
        await stop.wait()
        printer.cancel()
        await asyncio.gather(printer, return_exceptions=True)
        return 0
    finally:
        await metrics_server.stop()


COMMANDS: dict[str, Any] = {
    "rankings": cmd_rankings,
    "search": cmd_search,
    "friends": cmd_friends,
    "metadata": cmd_metadata,
    "publish-session": cmd_publish_session,
    "add-friend": cmd_add_friend,
    "watch": cmd_watch,
}


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the app, and run one command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        app = App(_load_config(args.config))
        async with app:
            return await COMMANDS[args.command](app, args)
    except (ConfigurationError, SigningError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except PomostrError as e:
        logger.error(f"{args.command}_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
