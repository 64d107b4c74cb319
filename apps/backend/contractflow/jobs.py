"""Scheduled entry point for recurring generation.

Run once per day (cron or any scheduler)::

    python -m contractflow.jobs
    python -m contractflow.jobs --as-of 2025-03-31 --company-id 1

Exit status is 0 when every contract was processed, 1 when any contract was
skipped or any occurrence failed to persist.
"""

from __future__ import annotations

import argparse
from datetime import date
from typing import Optional, Sequence

from contractflow.core.config import settings
from contractflow.core.database import SessionLocal
from contractflow.core.logging_setup import configure_logging, get_logger
from contractflow.services.generation_service import RecurringGenerationService
from contractflow.utils.dates import local_today


logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="contractflow.jobs", description="Materialize due recurring transactions.")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="cut-off date (default: local today)")
    parser.add_argument("--company-id", type=int, default=None)
    parser.add_argument("--contract-id", type=int, default=None)
    parser.add_argument("--max-per-contract", type=int, default=None, help="occurrences per contract in this run")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    as_of = args.as_of or local_today()
    db = SessionLocal()
    try:
        service = RecurringGenerationService(db, max_occurrences_per_run=args.max_per_contract)
        report = service.run_generation(as_of, company_id=args.company_id, contract_id=args.contract_id)
    finally:
        db.close()

    if report.warning:
        logger.warning("generation finished with warnings: %s", report.warning)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
