"""
Entry point: generate trend-aware blog ideas for one company.

Usage::

    # Run the pipeline for a company described in a JSON file:
    python run.py data/acme.json

    # Write the result to a file and send a Telegram summary:
    python run.py data/acme.json --output out/acme_ideas.json --notify

    # Run without Supabase (in-memory concept cache, no run records):
    python run.py data/acme.json --no-db

    # Concept cache maintenance:
    python run.py --cache-status
    python run.py --refresh-concepts
    python run.py --invalidate-cache

The company file holds ``company_name``, ``website`` and optionally
``company_id``, ``company_type``, ``enrichment``, ``content_summary`` and
``specific_requirements``.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run")


async def run_cache_maintenance(cache, args: argparse.Namespace) -> int:
    """Apply the cache maintenance flags in order; return the process exit code."""
    from src.exceptions import ConceptCacheError

    if args.invalidate_cache:
        await cache.invalidate()
        logger.info("Concept cache '%s' invalidated", cache.key)
    if args.refresh_concepts:
        try:
            fetched = await cache.refresh()
        except ConceptCacheError as exc:
            logger.error("Concept refresh failed: %s", exc)
            return 1
        logger.info(
            "Extracted %d concepts (cost $%.4f)",
            len(fetched.concepts),
            fetched.cost.total_cost,
        )
    if args.cache_status:
        status = await cache.status()
        print(json.dumps(status or {"exists": False}, indent=2, default=str))
    return 0


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate trend-aware blog ideas for a company"
    )
    parser.add_argument(
        "company_file",
        nargs="?",
        help="JSON file describing the company",
    )
    parser.add_argument(
        "--cache-status",
        action="store_true",
        help="Print concept cache status and exit",
    )
    parser.add_argument(
        "--refresh-concepts",
        action="store_true",
        help="Force a fresh concept extraction and exit",
    )
    parser.add_argument(
        "--invalidate-cache",
        action="store_true",
        help="Delete the cached concept set and exit",
    )
    parser.add_argument(
        "--no-db",
        action="store_true",
        help="Use an in-memory concept cache and skip run records",
    )
    parser.add_argument(
        "--notify",
        action="store_true",
        help="Send a run summary to Telegram (TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID)",
    )
    parser.add_argument(
        "--output",
        metavar="FILE",
        help="Write the pipeline result as JSON to FILE instead of stdout",
    )
    args = parser.parse_args()

    maintenance = args.cache_status or args.refresh_concepts or args.invalidate_cache
    if not maintenance and not args.company_file:
        parser.error("Provide a company JSON file or a cache maintenance flag")

    from src.config import get_settings, validate_env

    validate_env(strict=True)
    settings = get_settings()

    # --- Init sinks ---------------------------------------------------
    db = None
    if args.no_db:
        from src.database import InMemoryDocumentStore

        store = InMemoryDocumentStore()
    else:
        from src.database import get_db

        db = await get_db()
        store = db
        logger.info("Database connected")

    notifier = None
    if args.notify:
        from src.tools.telegram_notifier import TelegramNotifier

        notifier = TelegramNotifier.from_env()
        if notifier is None:
            logger.warning("--notify given but Telegram is not configured")

    from src.agents.orchestrator import create_concept_cache, create_fusion_pipeline
    from src.tools.claude_client import get_claude

    claude = get_claude(model=settings.llm_model)

    # --- Cache maintenance --------------------------------------------
    if maintenance:
        cache = create_concept_cache(claude, store, settings)
        exit_code = await run_cache_maintenance(cache, args)
        if exit_code:
            sys.exit(exit_code)
        return

    # --- Run the pipeline ---------------------------------------------
    from src.exceptions import PipelineStageError
    from src.logging import init_logger
    from src.models import IdeaRequest

    with open(args.company_file, encoding="utf-8") as f:
        request = IdeaRequest.from_dict(json.load(f))

    agent_logger = init_logger(log_dir=settings.log_dir, db=db, telegram_notifier=notifier)
    pipeline = create_fusion_pipeline(
        store,
        settings=settings,
        claude=claude,
        db=db,
        notifier=notifier,
        agent_logger=agent_logger,
    )

    try:
        result = await pipeline.run(request)
    except PipelineStageError as exc:
        logger.error("Pipeline failed at stage '%s': %s", exc.stage, exc)
        sys.exit(1)

    payload = json.dumps(result.to_dict(), indent=2, default=str)
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(payload, encoding="utf-8")
        logger.info("Result written to %s", out_path)
    else:
        print(payload)

    logger.info(
        "Done. %d ideas for %s%s",
        len(result.ideas),
        request.company_name,
        " (degraded mode)" if result.degraded_mode else "",
    )


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)
