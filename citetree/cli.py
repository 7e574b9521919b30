"""Command-line utilities for the citation tree explorer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any

from citetree.api import CitationExplorer
from citetree.config import CitetreeConfig
from citetree.storage.migrations import run_migrations


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:  # pragma: no cover - user input validation
        raise argparse.ArgumentTypeError("Expected an integer") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("Value must be a positive integer")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Utilities for the Citation Tree Explorer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    tree = subparsers.add_parser("tree", help="Build a citation tree and print it as JSON")
    tree.add_argument("paper_id", help="Semantic Scholar paper id of the root")
    tree.add_argument("--max-depth", type=_positive_int, default=None)
    tree.add_argument("--max-branches", type=_positive_int, default=None)
    tree.add_argument("--metrics", action="store_true", help="Include subtree node counts")
    tree.add_argument("--progress", action="store_true", help="Log progress while building")

    search = subparsers.add_parser("search", help="Search papers (store first, then provider)")
    search.add_argument("query")
    search.add_argument("--limit", type=_positive_int, default=10)

    subparsers.add_parser("migrate", help="Apply database migrations")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


async def _tree(config: CitetreeConfig, args: argparse.Namespace) -> int:
    async with CitationExplorer(config) as explorer:
        response = await explorer.build_tree_response(
            args.paper_id,
            max_depth=args.max_depth,
            max_references_per_level=args.max_branches,
            include_metrics=args.metrics,
            progress=args.progress,
        )
    print(json.dumps(response, indent=2))
    return 0 if response["success"] else 1


async def _search(config: CitetreeConfig, args: argparse.Namespace) -> int:
    async with CitationExplorer(config) as explorer:
        result = await explorer.search_papers(args.query, limit=args.limit)
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def _run_tree(config: CitetreeConfig, args: argparse.Namespace) -> int:
    return asyncio.run(_tree(config, args))


def _run_search(config: CitetreeConfig, args: argparse.Namespace) -> int:
    return asyncio.run(_search(config, args))


def _run_migrate(config: CitetreeConfig, args: argparse.Namespace) -> int:
    run_migrations(config.require_dsn())
    print("Migrations applied")
    return 0


def _run_serve(config: CitetreeConfig, args: argparse.Namespace) -> int:
    import uvicorn

    from citetree.web.app import create_app

    uvicorn.run(create_app(config=config), host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = CitetreeConfig()
    logging.basicConfig(level=config.log_level)

    commands: dict[str, Any] = {
        "tree": _run_tree,
        "search": _run_search,
        "migrate": _run_migrate,
        "serve": _run_serve,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.error("Unknown command")
        return 1

    return handler(config, args)


if __name__ == "__main__":
    raise SystemExit(main())
