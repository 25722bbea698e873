"""Materialise upcoming occurrences of active recurring appointments.

Meant to run daily from cron:
    python -m marketplace.scripts.extend_recurring
    python -m marketplace.scripts.extend_recurring --horizon-days=14 --today=2024-03-01
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import Optional

from marketplace.core.config import configure_logging, settings
from marketplace.core.database import async_session_maker
from marketplace.models.user import User, Shop  # noqa: F401 - ensure models are registered
from marketplace.models.service import Service  # noqa: F401
from marketplace.models.order import Order  # noqa: F401
from marketplace.models.payment import Payment  # noqa: F401
from marketplace.models.wallet import Wallet, Transaction  # noqa: F401
from marketplace.models.notification import Notification  # noqa: F401
from marketplace.services.recurrence import extend_recurring_series

logger = logging.getLogger(__name__)


async def run(today: date, horizon_days: int) -> dict:
    async with async_session_maker() as db:
        return await extend_recurring_series(db, today=today, horizon_days=horizon_days)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Create upcoming appointments for active recurring series"
    )
    parser.add_argument(
        "--horizon-days",
        type=int,
        default=settings.RECURRING_HORIZON_DAYS,
        help="How many days ahead to materialise (default: %(default)s)",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference date as YYYY-MM-DD (default: today)",
    )
    args = parser.parse_args(argv)

    configure_logging()
    try:
        summary = asyncio.run(run(args.today or date.today(), args.horizon_days))
    except Exception:
        logger.exception("Recurring extension failed")
        return 1

    print(f"Checked {summary['series']} series, created {summary['created']} appointment(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
