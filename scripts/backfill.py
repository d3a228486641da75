#!/usr/bin/env python3
"""
Backfill Form D filings from SEC EDGAR.

Ingests every Form D filed in a date range (by default the last
BACKFILL_DAYS days, 30 unless configured). Safe to re-run: filings
already stored are skipped.

Usage:
    python scripts/backfill.py
    python scripts/backfill.py --days 7
    python scripts/backfill.py --start 2024-01-01 --end 2024-01-31
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

sys.path.insert(0, str(Path(__file__).parent.parent))

from formd_scout.core.api_errors import APIError  # noqa: E402
from formd_scout.core.config import MissingUserAgentError, get_settings  # noqa: E402
from formd_scout.core.database import create_tables, get_session_factory  # noqa: E402
from formd_scout.core.http_client import create_fetch_client  # noqa: E402
from formd_scout.sources.sec_form_d import FormDClient, FormDIngestionService  # noqa: E402
from formd_scout.sources.sec_form_d.types import IngestionStatus  # noqa: E402

logger = logging.getLogger("backfill")


def resolve_date_range(
    days: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """
    Work out the inclusive range to ingest.

    --end defaults to today; --start defaults to `days` before the end.
    """
    end = end or today or date.today()
    if start is None:
        if days is None:
            days = get_settings().backfill_days
        start = end - timedelta(days=days)
    if start > end:
        raise ValueError(f"start {start.isoformat()} is after end {end.isoformat()}")
    return start, end


async def run(start: date, end: date) -> int:
    """Run one ingestion batch. Returns the number of errored filings."""
    create_tables()
    SessionLocal = get_session_factory()
    db = SessionLocal()

    try:
        async with create_fetch_client() as fetch_client:
            service = FormDIngestionService(db, FormDClient(fetch_client))
            summary = await service.ingest(start, end)
    finally:
        db.close()

    logger.info("=" * 60)
    logger.info(f"Backfill {start.isoformat()} .. {end.isoformat()} complete")
    logger.info(f"  Ingested: {summary.ingested}")
    logger.info(f"  Skipped:  {summary.skipped}")
    logger.info(f"  Errors:   {summary.errors}")
    logger.info("=" * 60)

    for outcome in summary.details:
        if outcome.status == IngestionStatus.ERROR:
            logger.info(f"  {outcome.accession_number}: {outcome.error}")

    return summary.errors


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill SEC Form D filings")
    parser.add_argument("--days", type=int, default=None, help="Days to look back (default: BACKFILL_DAYS)")
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="Start date YYYY-MM-DD")
    parser.add_argument("--end", type=date.fromisoformat, default=None, help="End date YYYY-MM-DD")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        start, end = resolve_date_range(args.days, args.start, args.end)
    except ValueError as e:
        logger.error(str(e))
        return 2

    try:
        settings.require_sec_user_agent()
    except MissingUserAgentError as e:
        logger.error(str(e))
        return 2

    try:
        errors = asyncio.run(run(start, end))
    except APIError as e:
        logger.error(f"Backfill aborted: {e}")
        return 1
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
