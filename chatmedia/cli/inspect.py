"""Descriptor inspection CLI.

Classifies and resolves attachment descriptors the same way the relay
server does, and optionally runs the full delivery against a live relay.

Usage::

    chatmedia-inspect "https://mmg.whatsapp.net/v/t62/abc.enc"
    chatmedia-inspect --kind audio --json "https://minio.local/chat/voice.ogg"
    cat descriptors.txt | chatmedia-inspect -
    chatmedia-inspect --fetch "https://example.com/report.pdf"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import aiohttp
from rich.console import Console
from rich.table import Table

from chatmedia.runtime.config import settings as settings_module
from chatmedia.runtime.media.kinds import MediaKind
from chatmedia.runtime.media.loader import MediaLoader
from chatmedia.runtime.media.message import MediaView, MessageMedia, describe, prepare

logger = logging.getLogger(__name__)
console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatmedia-inspect",
        description="Show how attachment descriptors are classified, resolved and relayed.",
    )
    parser.add_argument(
        "descriptors",
        nargs="*",
        help="Descriptors to inspect.  Use '-' to read one per line from stdin.",
    )
    parser.add_argument(
        "--kind",
        choices=[k.value for k in MediaKind],
        default=None,
        help="Kind hint; overrides classification.",
    )
    parser.add_argument(
        "--instance",
        default=None,
        help="Messaging instance for the decrypting relay (default: DEFAULT_MESSAGING_INSTANCE).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print one JSON object per descriptor.",
    )
    parser.add_argument(
        "--fetch",
        action="store_true",
        default=False,
        help="Run the delivery against PUBLIC_BASE_URL and report the attempts.",
    )
    return parser


def _resolve_descriptors(args: argparse.Namespace) -> list[str]:
    """Return descriptors from the arguments, expanding '-' from stdin."""
    result: list[str] = []
    for item in args.descriptors:
        if item == "-":
            if sys.stdin.isatty():
                console.print("[red]Error:[/red] stdin is a TTY but '-' was specified.")
                sys.exit(1)
            result.extend(line.strip() for line in sys.stdin.read().splitlines() if line.strip())
        else:
            result.append(item)
    if not result:
        console.print("[red]Error:[/red] no descriptors provided.")
        sys.exit(1)
    return result


def _prepare_all(args: argparse.Namespace, descriptors: list[str]) -> list[MediaView]:
    cfg = settings_module.cfg
    kind = MediaKind(args.kind) if args.kind else None
    instance = args.instance or cfg.default_messaging_instance
    return [
        prepare(
            MessageMedia(d, kind=kind),
            hosts=cfg.media_hosts,
            routes=cfg.relay_routes,
            instance=instance,
            memo=cfg.relay_memo,
        )
        for d in descriptors
    ]


async def _fetch_all(views: list[MediaView]) -> list[dict[str, object]]:
    cfg = settings_module.cfg
    results: list[dict[str, object]] = []
    async with aiohttp.ClientSession() as session:
        loader = MediaLoader(
            session,
            base_url=cfg.public_base_url,
            timeout=cfg.relay_timeout_seconds,
            probe_timeout_ms=cfg.probe_timeout_ms,
        )
        for view in views:
            result = await loader.load(view)
            results.append({
                "status": result.state.status.value,
                "reason": result.state.reason,
                "bytes": len(result.data) if result.data is not None else 0,
                "content_type": result.content_type,
                "playable": result.probe.playable if result.probe else None,
                "attempts": [
                    {
                        "origin": a.origin.value,
                        "url": a.url,
                        "outcome": a.outcome.value,
                        "error": a.error.kind.value if a.error else None,
                    }
                    for a in result.state.attempts
                ],
            })
    return results


def _render_table(rows: list[dict[str, object]]) -> None:
    table = Table(show_lines=False)
    table.add_column("descriptor", overflow="fold", max_width=48)
    table.add_column("kind")
    table.add_column("transport")
    table.add_column("relay", overflow="fold", max_width=48)
    has_fetch = any("delivery" in row for row in rows)
    if has_fetch:
        table.add_column("status")
        table.add_column("attempts")
    for row in rows:
        cells = [
            str(row["descriptor"]),
            str(row["kind"]),
            str(row["transport"]),
            str(row["relay_url"] or "-"),
        ]
        if has_fetch:
            delivery = row.get("delivery") or {}
            attempts = delivery.get("attempts", [])
            cells.append(str(delivery.get("status", "")))
            cells.append(", ".join(f"{a['origin']}:{a['outcome']}" for a in attempts) or "-")
        table.add_row(*cells)
    console.print(table)


def main() -> None:
    args = _build_parser().parse_args()
    descriptors = _resolve_descriptors(args)
    cfg = settings_module.cfg
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )

    views = _prepare_all(args, descriptors)
    instance = args.instance or cfg.default_messaging_instance
    rows: list[dict[str, object]] = [
        {"descriptor": d, **describe(v, routes=cfg.relay_routes, instance=instance)}
        for d, v in zip(descriptors, views)
    ]

    if args.fetch:
        try:
            fetched = asyncio.run(_fetch_all(views))
        except KeyboardInterrupt:
            console.print("\n[dim]Interrupted.[/dim]")
            sys.exit(130)
        for row, delivery in zip(rows, fetched):
            row["delivery"] = delivery

    if args.json:
        for row in rows:
            print(json.dumps(row, ensure_ascii=False))
    else:
        _render_table(rows)

    failed = any(
        row.get("delivery", {}).get("status") in ("error-with-retry-hint", "error-final")
        for row in rows
    )
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
