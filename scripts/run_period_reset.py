#!/usr/bin/env python3
"""
Run one period reset sweep.

Rolls every balance and allocation whose period has ended into the current
calendar month. Safe to run repeatedly; records that are already current are
left alone. Intended for cron or a scheduler when the API's in-process sweep
is disabled (LEDGER_PERIOD_RESET_ENABLED=false).

Usage:
    python scripts/run_period_reset.py
    python scripts/run_period_reset.py --batch-size 200
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from pointledger.core.credits.period_reset import PeriodResetJob
from pointledger.db.connection import db


async def run(batch_size: int) -> int:
    try:
        result = await PeriodResetJob(batch_size=batch_size).sweep()
        logger.info(
            f"Period reset complete: {result.balances_reset} balances, "
            f"{result.allocations_reset} allocations"
        )
        return 0
    except Exception as e:
        logger.error(f"Period reset failed: {e}")
        return 1
    finally:
        await db.close_all()


def main():
    parser = argparse.ArgumentParser(description="Roll expired ledger periods forward")
    parser.add_argument("--batch-size", type=int, default=500, help="Rows locked per batch")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.batch_size)))


if __name__ == "__main__":
    main()
