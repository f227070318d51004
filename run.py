"""
Entry point: resolve trending topics for keywords from the command line.

Usage::

    # Trending topics for two keywords (cache first, then web search):
    python run.py "climate tech" robotics

    # Five topics each, cached for two days:
    python run.py "climate tech" --max-results 5 --retention 2d

    # Ignore the cache and overwrite it:
    python run.py robotics --refresh

    # Only report what is already cached:
    python run.py robotics --cached-only

    # Cache statistics and per-key TTLs:
    python run.py --stats
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve trending topics for keywords")
    parser.add_argument("keywords", nargs="*", help="Keywords to look up")
    parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Topics per keyword (default: from settings)",
    )
    parser.add_argument(
        "--retention",
        metavar="DURATION",
        help="Cache retention, e.g. 6h or 2d (default: from settings)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--refresh",
        action="store_true",
        help="Skip the cache and overwrite it with fresh results",
    )
    mode.add_argument(
        "--cached-only",
        action="store_true",
        help="Only return cached results; never call the search API",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print cache statistics and per-key TTLs",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Settings YAML (default: config/settings.yaml)",
    )
    return parser


async def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if not args.keywords and not args.stats:
        parser.error("Provide at least one keyword or --stats")

    from pathlib import Path

    from trendlens.cache import RetentionPolicy, connect_key_store
    from trendlens.config import Settings, validate_env
    from trendlens.exceptions import CallerError, ConfigurationError
    from trendlens.logging import ComponentLogger, EventLogger, LogComponent
    from trendlens.models import KeywordRequest, Retention
    from trendlens.orchestrator import TrendingOrchestrator
    from trendlens.tools import OpenAIWebSearchClient

    try:
        settings = Settings.from_yaml(Path(args.config) if args.config else None)
        retention = Retention.parse(args.retention) if args.retention else None
        if args.keywords and not args.cached_only:
            validate_env(strict=True)
    except (ConfigurationError, ValueError) as exc:
        parser.error(str(exc))

    logging.getLogger().setLevel(settings.log_level.upper())

    events = EventLogger(log_dir=settings.log_dir) if settings.log_dir else None
    key_store = await connect_key_store(settings.cache)
    await ComponentLogger(LogComponent.STARTUP, events).info(
        "Key store ready",
        data={"backend": key_store.backend_name, "model": settings.search.model},
    )
    orchestrator = TrendingOrchestrator(
        search_client=OpenAIWebSearchClient(base_url=settings.search.base_url),
        key_store=key_store,
        retention_policy=RetentionPolicy(settings.default_ttl_seconds),
        settings=settings,
        event_logger=events,
    )

    try:
        output = {}
        if args.keywords:
            max_results = args.max_results or settings.limits.default_results_per_keyword
            requests = [
                KeywordRequest(keyword=keyword, max_results=max_results, retention=retention)
                for keyword in args.keywords
            ]
            try:
                if args.cached_only:
                    output["lookup"] = (await orchestrator.resolve_cached_only(requests)).to_dict()
                elif args.refresh:
                    output["results"] = [r.to_dict() for r in await orchestrator.refresh(requests)]
                else:
                    output["results"] = [r.to_dict() for r in await orchestrator.resolve(requests)]
            except CallerError as exc:
                logger.error("%s (%s)", exc, exc.code)
                sys.exit(2)

        if args.stats:
            output["stats"] = orchestrator.stats()
            output["cache"] = (await orchestrator.cache_info()).to_dict()

        print(json.dumps(output, indent=2, ensure_ascii=False))
    finally:
        await orchestrator.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)
