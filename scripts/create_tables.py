"""
create_tables.py — idempotent table creation and trigger seeding script.
Run this before starting the service for the first time, or after schema changes.
Safe to run multiple times (all DDL uses IF NOT EXISTS, seeding skips existing names).

Usage:
    python scripts/create_tables.py
"""

from __future__ import annotations

import asyncio

from foodlog.database import AsyncSessionLocal, engine, init_db
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.services.trigger_catalog import seed_trigger_catalog


async def main() -> None:
    """Create all tables and seed the trigger vocabulary."""
    print("Creating tables...")
    await init_db()
    print("  ✓ All tables created (IF NOT EXISTS)")

    print("Seeding triggers...")
    async with AsyncSessionLocal() as session:
        catalog = await seed_trigger_catalog(FoodEntryRepository(session))
    print(f"  ✓ {len(catalog)} triggers in catalog")

    print("\nDone. Start the service with `uvicorn foodlog.main:app`.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
