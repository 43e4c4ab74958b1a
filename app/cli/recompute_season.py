"""Renumber the games of one or more seasons from the command line.

Usage:
    python -m app.cli.recompute_season --season-id 3
    python -m app.cli.recompute_season --all-active

Exit codes:
    0 - Success
    1 - Failure (check logs for details)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Sequence

from app.services.game_numbering_service import recompute_season
from app.utils.db_async import SessionLocal, build_schedule_store, dispose_engine, load_schema_modules

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("recompute_season")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Recompute game numbers for seasons.\n\n"
            "Each season is renumbered under its season lock in its own transaction,\n"
            "so one failing season does not roll back the others."
        )
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--season-id",
        type=int,
        nargs="+",
        dest="season_ids",
        help="Season id(s) to renumber.",
    )
    target.add_argument(
        "--all-active",
        action="store_true",
        help="Renumber every season that is not finished.",
    )
    return parser.parse_args(argv)


async def main_async(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    load_schema_modules()
    failures = 0
    try:
        season_ids: List[int]
        if args.all_active:
            async with SessionLocal() as db:
                season_ids = await build_schedule_store(db).list_season_ids(active_only=True)
        else:
            season_ids = list(args.season_ids)

        for season_id in season_ids:
            try:
                async with SessionLocal() as db:
                    changed = await recompute_season(build_schedule_store(db), season_id)
                logger.info(f"Season {season_id}: {changed} cell(s) renumbered")
            except Exception as e:
                failures += 1
                logger.error(f"Season {season_id} failed: {e}", exc_info=True)
    finally:
        await dispose_engine()
    return 1 if failures else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    return asyncio.run(main_async(argv))


if __name__ == "__main__":
    sys.exit(main())
