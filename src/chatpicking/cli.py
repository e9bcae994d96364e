"""chatpicking CLI.

Reads QQ group chat through a NapCat (OneBot v11) WebSocket endpoint.
Reports go to stdout as JSON; progress and errors go to stderr.

Usage:
    chatpicking-fetch --napcat ws://127.0.0.1:3001 --group 123456789 --count 50
    chatpicking-collect --napcat ws://127.0.0.1:3001 --group 123456789 --duration 30

    chatpicking fetch ...                 # Same commands, grouped
    chatpicking collect ...

Environment fallbacks: NAPCAT_WS, NAPCAT_GROUP, NAPCAT_TOKEN.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any, NoReturn

import click
from pydantic import BaseModel

from .config import DEFAULT_URL, BusConfig
from .errors import ChatPickingError
from .flows import collect_messages, fetch_history
from .report import ErrorReport

logger = logging.getLogger(__name__)

MISSING_GROUP = "Missing required option --group (QQ group id). Use --help for usage."


def _setup_logging(verbose: bool) -> None:
    """Log to stderr; stdout carries only the JSON report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[chatpicking] %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _fail(message: str) -> NoReturn:
    click.echo(ErrorReport(error=message).to_json(), err=True)
    sys.exit(1)


def _parse_group(group: str | None) -> int:
    if not group:
        _fail(MISSING_GROUP)
    try:
        return int(group)
    except ValueError:
        _fail(f"Invalid --group value {group!r}: expected a numeric QQ group id")


def _run(flow: Callable[[], Awaitable[BaseModel]]) -> None:
    """Run a flow and print its report, or the error object on failure."""
    try:
        report = asyncio.run(flow())
    except ChatPickingError as e:
        _fail(str(e))
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        _fail(f"Unexpected error: {e}")
    click.echo(report.model_dump_json(indent=2))


def connection_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command."""
    options = [
        click.option(
            "--napcat",
            envvar="NAPCAT_WS",
            default=DEFAULT_URL,
            show_default=True,
            help="NapCat WebSocket URL (env: NAPCAT_WS)",
        ),
        click.option(
            "--group",
            envvar="NAPCAT_GROUP",
            default=None,
            help="QQ group id, required (env: NAPCAT_GROUP)",
        ),
        click.option(
            "--token",
            envvar="NAPCAT_TOKEN",
            default=None,
            help="OneBot access_token (env: NAPCAT_TOKEN)",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Debug logging"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.command("fetch")
@connection_options
@click.option(
    "--count",
    default=100,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of history messages to fetch",
)
def fetch(napcat: str, group: str | None, token: str | None, verbose: bool, count: int) -> None:
    """Fetch recent group chat history.

    Examples:

        chatpicking-fetch --napcat ws://127.0.0.1:3001 --group 123456789 --count 50
    """
    group_id = _parse_group(group)
    _setup_logging(verbose)
    config = BusConfig(url=napcat, access_token=token or None)

    _run(lambda: fetch_history(config, group_id, count))


@click.command("collect")
@connection_options
@click.option(
    "--duration",
    default=60,
    show_default=True,
    type=click.IntRange(min=0),
    help="Collection window in minutes",
)
def collect(
    napcat: str, group: str | None, token: str | None, verbose: bool, duration: int
) -> None:
    """Collect live group messages for a fixed window.

    Ctrl+C ends the window early and still prints what was collected.

    Examples:

        chatpicking-collect --napcat ws://127.0.0.1:3001 --group 123456789 --duration 30
    """
    group_id = _parse_group(group)
    _setup_logging(verbose)
    config = BusConfig(url=napcat, access_token=token or None)
    click.echo(
        f"[chatpicking] Collecting group {group_id} for {duration} minute(s)...", err=True
    )

    _run(lambda: collect_messages(config, group_id, duration))


@click.group()
def main() -> None:
    """chatpicking - read QQ group chat via NapCat."""


main.add_command(fetch)
main.add_command(collect)


if __name__ == "__main__":
    main()
