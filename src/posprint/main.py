"""
Main entry point for POSPRINT.

Usage:
    posprint serve                 Run the HTTP print server
    posprint print order.json      Print one receipt payload
    posprint preview order.json    Render a payload to PNG and show a text preview
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from aiohttp import web

from posprint.config.settings import Settings, get_settings
from posprint.config.store import ProfileStore
from posprint.errors import PrintError
from posprint.printing.layout import preview_text
from posprint.printing.service import PrintService
from posprint.server.app import create_app

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )


def build_service(settings: Settings) -> PrintService:
    store = ProfileStore(settings.profile_path)
    store.load()
    return PrintService(store, settings)


def run_server(settings: Settings) -> None:
    """Run the HTTP print server until interrupted."""
    app = create_app(build_service(settings))
    logger.info(f"HTTP Print Server starting on http://{settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port, print=None)


async def print_file(settings: Settings, path: Path) -> None:
    service = build_service(settings)
    try:
        result = await service.print_payload(path.read_text(encoding="utf-8"))
        logger.info(f"Printed order '{result.order_id}' ({result.item_count} items)")
    finally:
        await service.close()


def preview_file(settings: Settings, path: Path, output: Optional[Path]) -> None:
    rendered = build_service(settings).render_payload(path.read_text(encoding="utf-8"))
    print(preview_text(rendered.commands))
    if output:
        rendered.image.save(output)
        logger.info(f"Receipt image saved to {output}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="posprint", description="POS receipt printing")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--profile", type=Path, help="Store profile file (key=value)")
    parser.add_argument("--mock", action="store_true", help="Simulate the printer")

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="Run the HTTP print server")

    print_cmd = commands.add_parser("print", help="Print a receipt payload file")
    print_cmd.add_argument("payload", type=Path)

    preview_cmd = commands.add_parser("preview", help="Preview a receipt payload file")
    preview_cmd.add_argument("payload", type=Path)
    preview_cmd.add_argument("-o", "--output", type=Path, help="Write the rendered PNG here")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    settings = get_settings()
    updates = {}
    if args.debug:
        updates["debug"] = True
    if args.profile:
        updates["profile_path"] = args.profile
    if args.mock:
        updates["printer"] = settings.printer.model_copy(update={"mock": True})
    if updates:
        settings = settings.model_copy(update=updates)

    setup_logging(settings.debug)

    try:
        if args.command == "print":
            asyncio.run(print_file(settings, args.payload))
        elif args.command == "preview":
            preview_file(settings, args.payload, args.output)
        else:
            run_server(settings)
    except PrintError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")

    return 0


if __name__ == "__main__":
    sys.exit(main())
