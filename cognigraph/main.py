"""
Main entry point for cognigraph.

Indexes a vault once, or keeps indexing it while watching for changes.
"""

import argparse
import json
import sys
from pathlib import Path

import structlog

from .config import settings
from .logging import configure_logging
from .session import VaultSession
from .utils import CognigraphError

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cognigraph",
        description="Index a vault of Markdown notes into a knowledge graph.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full sync of the configured vault, print statistics
  cognigraph

  # Sync a specific vault into an in-memory store and search it
  cognigraph ~/Notes --storage memory --search "graph"

  # Keep the index up to date until interrupted
  cognigraph ~/Notes --watch

Environment Variables:
  COGNIGRAPH_VAULT_PATH   Vault directory (default: ~/Vault)
  COGNIGRAPH_STORAGE      sqlite or memory (default: sqlite)
  COGNIGRAPH_LOG_LEVEL    Minimum log level (default: INFO)
        """,
    )
    parser.add_argument("vault", nargs="?", type=Path, default=None, help="Vault directory")
    parser.add_argument("--storage", choices=["sqlite", "memory"], default=None, help="Graph store backend")
    parser.add_argument("--search", metavar="QUERY", default=None, help="Print notes matching QUERY after syncing")
    parser.add_argument("--watch", action="store_true", help="Watch the vault and sync changes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-format", choices=["console", "json"], default=None, help="Log line format")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None, args.log_format)

    vault_path = args.vault or settings.vault_path

    with VaultSession(storage=args.storage) as session:
        try:
            result = session.open(vault_path)
        except CognigraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(json.dumps({
            "sync": result.model_dump(),
            "statistics": session.statistics().model_dump(),
        }, indent=2))

        if args.search:
            matches = [{"title": n.title, "path": n.path} for n in session.search(args.search)]
            print(json.dumps(matches, indent=2, ensure_ascii=False))

        if args.watch:
            session.start_watching()
            logger.info("watching", vault=str(session.vault_path))
            try:
                while True:
                    session.process_pending(timeout=1.0)
            except KeyboardInterrupt:
                logger.info("watch_interrupted")

    return 0


if __name__ == "__main__":
    sys.exit(main())
