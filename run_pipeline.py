# run_pipeline.py
"""
One-shot entry point for schedulers (cron, CI, systemd timers).

Exit code 0 once the run completes, whatever the per-article outcomes;
1 on an unhandled fault in the pipeline itself.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

# Make the repo root importable when launched as a script
repo_root = Path(__file__).resolve().parent
if str(repo_root) not in sys.path:
    sys.path.append(str(repo_root))

from loguru import logger

from core.config import get_settings
from core.logging import configure_logging
from services.categories.allow_list import CategoryAllowList, CategorySync
from services.pipeline.orchestrator import PipelineOrchestrator
from services.scraper.http_client import HttpClient


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one EcoScope ingestion pass.")
    parser.add_argument("--dry-run", action="store_true", help="build payloads but do not POST them")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    parser.add_argument("--enrich-cap", type=int, default=None, help="override ENRICH_CAP")
    parser.add_argument("--max-per-source", type=int, default=None, help="override MAX_PER_SOURCE")
    parser.add_argument(
        "--source",
        action="append",
        dest="sources",
        metavar="NAME",
        help="only run this source (repeatable)",
    )
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.max_per_source is not None:
        settings = settings.model_copy(update={"MAX_PER_SOURCE": max(1, args.max_per_source)})

    async with HttpClient(settings) as http:
        allow_list = CategoryAllowList()
        await CategorySync(allow_list, http, settings.categories_url).sync()

        orchestrator = PipelineOrchestrator(
            http,
            allow_list,
            settings,
            only=args.sources,
            dry_run=args.dry_run,
        )
        metrics = await orchestrator.run(enrich_cap=args.enrich_cap)

    print("\n=== RUN SUMMARY ===")
    print(f"Raw items       : {metrics.raw_count}")
    print(f"Skipped         : {metrics.skipped_count}")
    print(f"After dedup     : {metrics.dedup_count}")
    print(f"Enriched        : {metrics.enrich_count}/{metrics.enrich_cap} "
          f"(avg {metrics.enrich_avg_ms}ms, p95 {metrics.enrich_p95_ms}ms)")
    print(f"Delivered ok/ko : {metrics.post_ok}/{metrics.post_ko}")
    return 0


def cli(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_JSON)
    try:
        return asyncio.run(main(args))
    except Exception:
        logger.exception("Pipeline run failed")
        return 1


if __name__ == "__main__":
    sys.exit(cli())
