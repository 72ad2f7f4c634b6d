"""CLI entry point — ``pumlrender render`` and ``pumlrender urls``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pumlrender import __version__
from pumlrender.config import Settings
from pumlrender.diagrams.model import Diagram
from pumlrender.diagrams.source import diagram_at, diagrams_of
from pumlrender.logging_config import setup_logging
from pumlrender.renders.dispatcher import RenderDispatcher
from pumlrender.renders.errors import ExportError, parse_error
from pumlrender.renders.session import RenderSession
from pumlrender.urls import make_diagram_urls


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"pumlrender {__version__}")
        return

    settings = Settings()
    verbose = args.verbose or settings.debug_mode
    setup_logging("DEBUG" if verbose else settings.log_level)

    if args.command == "render":
        sys.exit(asyncio.run(_run_render(args, settings)))
    elif args.command == "urls":
        sys.exit(asyncio.run(_run_urls(args, settings)))
    else:
        parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pumlrender",
        description=(
            "Render PlantUML diagrams locally, through a server, "
            "or through a server spawned on demand."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command")

    render = sub.add_parser("render", help="Render diagrams to files")
    render.add_argument("source", type=str, help="Diagram source file")
    render.add_argument(
        "--format",
        "-f",
        default="svg",
        help="Output format (default: svg)",
    )
    render.add_argument(
        "--output-dir",
        "-o",
        default=None,
        help="Output directory (default: next to the source)",
    )
    render.add_argument(
        "--line",
        "-l",
        type=int,
        default=None,
        help="Only the diagram enclosing this 1-based line",
    )

    urls = sub.add_parser(
        "urls",
        help=(
            "Print server URLs per page "
            "(a server must already be running to open them)"
        ),
    )
    urls.add_argument("source", type=str, help="Diagram source file")
    urls.add_argument(
        "--format",
        "-f",
        default="svg",
        help="Output format (default: svg)",
    )

    return parser


def _load_diagrams(
    source: Path, line: int | None = None
) -> list[Diagram]:
    if not source.is_file():
        print(f"Error: {source} does not exist", file=sys.stderr)
        return []
    text = source.read_text(encoding="utf-8")
    location = str(source.resolve())
    if line is None:
        return diagrams_of(text, location)
    found = diagram_at(text, location, line - 1)
    return [found] if found else []


async def _render_one(
    dispatcher: RenderDispatcher,
    diagram: Diagram,
    fmt: str,
    out_dir: Path,
) -> bool:
    target = out_dir / f"{diagram.name}.{fmt.split(':')[0]}"
    task = await dispatcher.export_to_file(diagram, fmt, target)
    try:
        await task.result()
    except ExportError as exc:
        for err in parse_error(exc):
            print(f"Error: {diagram.name}: {err.message}", file=sys.stderr)
        return False
    except OSError as exc:
        print(
            f"Error: {diagram.name}: cannot write {target}: {exc}",
            file=sys.stderr,
        )
        return False
    print(f"  {diagram.name} ({diagram.page_count} page(s)) -> {target}")
    return True


async def _run_render(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the render command."""
    source = Path(args.source)
    diagrams = _load_diagrams(source, args.line)
    if not diagrams:
        print("No diagram found.", file=sys.stderr)
        return 1
    out_dir = Path(args.output_dir) if args.output_dir else source.parent

    async with RenderSession(
        timeout=settings.http_timeout_seconds
    ) as session:
        dispatcher = RenderDispatcher(settings, session)
        renderer = dispatcher.applied_render(diagrams[0].location)
        if renderer.limit_concurrency():
            results = [
                await _render_one(dispatcher, d, args.format, out_dir)
                for d in diagrams
            ]
        else:
            results = list(
                await asyncio.gather(
                    *(
                        _render_one(dispatcher, d, args.format, out_dir)
                        for d in diagrams
                    )
                )
            )
    return 0 if all(results) else 1


async def _run_urls(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the urls command."""
    diagrams = _load_diagrams(Path(args.source))
    if not diagrams:
        print("No diagram found.", file=sys.stderr)
        return 1
    async with RenderSession(
        timeout=settings.http_timeout_seconds
    ) as session:
        # no warm-up: the session closes right after printing
        for item in make_diagram_urls(
            diagrams, args.format, settings, session, warm=False
        ):
            print(item.name)
            for url in item.urls:
                print(f"  {url}")
    return 0
