#!/usr/bin/env python3
"""
Database setup script for the point ledger.

SQLAlchemy models in pointledger/db/models.py are the single source of truth
for the schema.

Usage:
    python scripts/db_setup.py setup      # Create all tables
    python scripts/db_setup.py teardown   # Drop all tables (with confirmation)
    python scripts/db_setup.py reset      # Teardown + setup
    python scripts/db_setup.py status     # Show row counts per ledger table
    python scripts/db_setup.py models     # Print model definitions

Environment variables (from .env):
    - DATABASE_URL: SQLAlchemy async URL (postgresql+asyncpg://... or sqlite+aiosqlite://...)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from sqlalchemy import func, select

from pointledger.db.connection import db
from pointledger.db.models import Base


def _confirm(prompt: str) -> bool:
    return input(f"{prompt} (yes/no): ").lower() == "yes"


async def cmd_setup():
    """Create all tables defined on the models."""
    await db.create_tables()
    table_names = sorted(Base.metadata.tables.keys())
    logger.info(f"Created {len(table_names)} tables: {', '.join(table_names)}")


async def cmd_teardown(force: bool = False):
    """Drop all ledger tables."""
    if not force and not _confirm("Are you sure you want to DROP all ledger tables? This cannot be undone."):
        logger.info("Operation cancelled")
        return
    await db.drop_tables()
    logger.info(f"Dropped {len(Base.metadata.tables)} tables")


async def cmd_reset(force: bool = False):
    """Teardown + setup."""
    if not force and not _confirm("Are you sure you want to RESET the ledger? All balances will be lost."):
        logger.info("Operation cancelled")
        return
    await db.drop_tables()
    await cmd_setup()


async def cmd_status():
    """Show row counts for each ledger table."""
    if not await db.test_connection():
        logger.error(f"Cannot connect to {db.config.safe_url}")
        return

    async with db.session() as session:
        for table_name, table in sorted(Base.metadata.tables.items()):
            try:
                count = (await session.execute(select(func.count()).select_from(table))).scalar_one()
                logger.info(f"  - {table_name}: {count} rows")
            except Exception as e:
                logger.info(f"  - {table_name}: missing ({type(e).__name__})")
                await session.rollback()


def cmd_models():
    """List all models and their columns."""
    for table_name, table in sorted(Base.metadata.tables.items()):
        print(f"Table: {table_name}")
        print("-" * 40)
        for column in table.columns:
            nullable = "NULL" if column.nullable else "NOT NULL"
            pk = " PRIMARY KEY" if column.primary_key else ""
            fk = ""
            if column.foreign_keys:
                fk = " -> " + ", ".join(str(ref.target_fullname) for ref in column.foreign_keys)
            print(f"  {column.name}: {column.type} {nullable}{pk}{fk}")
        for index in table.indexes:
            cols = ", ".join(c.name for c in index.columns)
            print(f"  INDEX {index.name} ({cols})")
        print()


async def _run(args):
    try:
        if args.command == "setup":
            await cmd_setup()
        elif args.command == "teardown":
            await cmd_teardown(force=args.force)
        elif args.command == "reset":
            await cmd_reset(force=args.force)
        elif args.command == "status":
            await cmd_status()
    finally:
        await db.close_all()


def main():
    parser = argparse.ArgumentParser(description="Database setup script for the point ledger")
    parser.add_argument(
        "command",
        choices=["setup", "teardown", "reset", "status", "models"],
        help="Command to execute"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Skip confirmation prompts for destructive operations"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    print(f"Target database: {db.config.safe_url}\n")

    if args.command == "models":
        cmd_models()
    else:
        asyncio.run(_run(args))


if __name__ == "__main__":
    main()
