# src/main.py — v1
"""CLI entry point — translate, preload, cache-stats, reviews, feedback commands.

Usage:
    semantic-mediator translate <registry.json> <source> <target> [--data FILE]
    semantic-mediator preload <registry.json> <module> [<module> ...]
    semantic-mediator cache-stats [--recommend] [--limit N]
    semantic-mediator reviews [--limit N]
    semantic-mediator feedback <review_id> (--approve | --reject) [--corrected FILE]

Commands other than translate only see previous runs when STORE_BACKEND is
json or sqlite.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from semantic_mediator.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(args.verbose)

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="semantic-mediator",
        description=f"semantic-mediator v{__version__}: translate data between module shapes",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- translate ---
    p_translate = subparsers.add_parser(
        "translate", help="Translate one JSON document between modules",
    )
    p_translate.add_argument("registry", type=Path, help="Registry JSON file")
    p_translate.add_argument("source", help="Source module id")
    p_translate.add_argument("target", help="Target module id")
    p_translate.add_argument(
        "-d", "--data", type=Path, default=None,
        help="Input JSON file (default: stdin)",
    )
    p_translate.add_argument(
        "-c", "--context", default=None,
        help="Context as a JSON object string",
    )
    p_translate.set_defaults(func=_cmd_translate)

    # --- preload ---
    p_preload = subparsers.add_parser(
        "preload", help="Derive and cache paths between modules",
    )
    p_preload.add_argument("registry", type=Path, help="Registry JSON file")
    p_preload.add_argument("modules", nargs="+", help="Module ids")
    p_preload.set_defaults(func=_cmd_preload)

    # --- cache-stats ---
    p_stats = subparsers.add_parser(
        "cache-stats", help="Show path cache usage statistics",
    )
    p_stats.add_argument(
        "--recommend", action="store_true",
        help="Include retention/purge recommendations",
    )
    p_stats.add_argument(
        "-n", "--limit", type=int, default=5,
        help="Entries per listing (default: 5)",
    )
    p_stats.set_defaults(func=_cmd_cache_stats)

    # --- reviews ---
    p_reviews = subparsers.add_parser(
        "reviews", help="List pending human reviews",
    )
    p_reviews.add_argument(
        "-n", "--limit", type=int, default=10,
        help="Maximum number of reviews (default: 10)",
    )
    p_reviews.set_defaults(func=_cmd_reviews)

    # --- feedback ---
    p_feedback = subparsers.add_parser(
        "feedback", help="Submit a decision for a pending review",
    )
    p_feedback.add_argument("review_id", help="Review id")
    decision = p_feedback.add_mutually_exclusive_group(required=True)
    decision.add_argument("--approve", action="store_true", help="Approve the result")
    decision.add_argument("--reject", action="store_true", help="Reject the result")
    p_feedback.add_argument(
        "--corrected", type=Path, default=None,
        help="JSON file with corrected data (use with --approve)",
    )
    p_feedback.add_argument("--comment", default=None, help="Reviewer comment")
    p_feedback.set_defaults(func=_cmd_feedback)

    return parser


async def _cmd_translate(args: argparse.Namespace) -> int:
    """Translate stdin or --data from the source to the target module."""
    from semantic_mediator.api.facade import create_mediator, load_registry, translate

    if not args.registry.exists():
        logger.error("Registry file not found: %s", args.registry)
        return 1

    data = _read_json(args.data)
    context = json.loads(args.context) if args.context else None

    mediator = create_mediator()
    try:
        await load_registry(mediator, args.registry)
        outcome = await translate(mediator, args.source, args.target, data, context)
    finally:
        await mediator.close()

    logger.info(
        "Translated %s->%s (%s, %dms)",
        outcome.source_module, outcome.target_module, outcome.kind, outcome.latency_ms,
    )
    print(json.dumps(outcome.data, indent=2, ensure_ascii=False, default=str))
    return 0


async def _cmd_preload(args: argparse.Namespace) -> int:
    """Warm the path cache for every ordered pair of the given modules."""
    from semantic_mediator.api.facade import create_mediator, load_registry

    if not args.registry.exists():
        logger.error("Registry file not found: %s", args.registry)
        return 1

    mediator = create_mediator()
    try:
        await load_registry(mediator, args.registry)
        created = await mediator.cache.preload_cache_for_modules(args.modules)
    finally:
        await mediator.close()

    print(f"Preloaded {created} path(s)")
    return 0


async def _cmd_cache_stats(args: argparse.Namespace) -> int:
    """Print usage percentiles, busiest module pairs, most used and recent paths."""
    from semantic_mediator.api.facade import create_mediator

    mediator = create_mediator(oracle=_NoOracle())
    try:
        snapshot = await mediator.cache.usage_snapshot()
        most_used = await mediator.cache.get_most_used_paths(args.limit)
        recent = await mediator.cache.get_recently_used_paths(args.limit)
        recommendation = (
            await mediator.cache.recommend_cache_optimizations() if args.recommend else None
        )
    finally:
        await mediator.close()

    print("\nPath cache:")
    print(f"  Entries:      {snapshot.total_entries}")
    print(f"  Total uses:   {snapshot.total_usage}")
    print(f"  Unused:       {snapshot.unused_entries}")
    print(f"  Mean usage:   {snapshot.mean_usage:.2f}")
    for name, value in snapshot.usage_percentiles.items():
        print(f"  {name:<13} {value:.1f}")
    for pair in snapshot.pairs[:args.limit]:
        print(f"  {pair.source_module}->{pair.target_module}: {pair.total_usage} use(s)")
    _print_entries("Most used", most_used)
    _print_entries("Recently used", recent)
    if recommendation is not None:
        print(f"\nRetain: {', '.join(recommendation.retain_types) or '-'}")
        print(f"Purge:  {', '.join(recommendation.purge_types) or '-'}")
    return 0


def _print_entries(title: str, entries: list[Any]) -> None:
    if not entries:
        return
    print(f"\n{title}:")
    for entry in entries:
        print(
            f"  {entry.id}  {entry.type_label}  {entry.usage_count} use(s)"
            f"  last {entry.last_used.isoformat(timespec='seconds')}"
        )


async def _cmd_reviews(args: argparse.Namespace) -> int:
    """List pending reviews, oldest first."""
    from semantic_mediator.api.facade import create_mediator

    mediator = create_mediator(oracle=_NoOracle())
    try:
        pending = await mediator.review.get_pending_reviews(limit=args.limit)
    finally:
        await mediator.close()

    if not pending:
        print("No pending reviews")
        return 0
    for review in pending:
        source = review.context.get("source_module", "?")
        target = review.context.get("target_module", "?")
        print(f"{review.id}  {source}->{target}  created {review.created_at.isoformat()}")
    return 0


async def _cmd_feedback(args: argparse.Namespace) -> int:
    """Complete a pending review with an approve/reject decision."""
    from semantic_mediator.api.facade import create_mediator

    feedback: dict[str, Any] = {"approved": bool(args.approve)}
    if args.corrected is not None:
        feedback["corrected_data"] = _read_json(args.corrected)
    if args.comment:
        feedback["comment"] = args.comment

    mediator = create_mediator(oracle=_NoOracle())
    try:
        accepted = await mediator.review.submit_feedback(args.review_id, feedback)
    finally:
        await mediator.close()

    if not accepted:
        logger.error("Review %s is unknown or no longer pending", args.review_id)
        return 1
    print(f"Feedback recorded for {args.review_id}")
    return 0


class _NoOracle:
    """Oracle for commands that only read local state."""

    async def generate_content(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        from semantic_mediator.core.errors import OracleError

        raise OracleError("No inference oracle configured for this command")


def _read_json(path: Path | None) -> Any:
    """Read JSON from a file, or from stdin when path is None."""
    if path is None:
        return json.load(sys.stdin)
    return json.loads(path.read_text(encoding="utf-8"))


def _setup_logging(verbose: bool) -> None:
    """Configure logging from settings; -v forces DEBUG."""
    from semantic_mediator.config.settings import Settings
    from semantic_mediator.logging.logger import setup_logging_from_settings

    setup_logging_from_settings(Settings(), level="DEBUG" if verbose else None)
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
