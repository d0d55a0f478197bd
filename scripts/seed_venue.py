#!/usr/bin/env python3
"""
Seed script to create the venue tables and table combinations
"""

import asyncio


async def seed_venue():
    """Seed the venue layout for development"""
    from venue_booking.database import SessionLocal, engine, Base
    from venue_booking.layout import VENUE_TABLES, TABLE_COMBINATIONS, seed_layout
    import venue_booking.models  # noqa: F401

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        created = await seed_layout(db)

    await engine.dispose()

    if not created:
        print("Venue layout already exists. Skipping...")
        return

    print(f"""
Venue layout created successfully!

Tables: {len(VENUE_TABLES)}
Combinations: {len(TABLE_COMBINATIONS)}
""")


if __name__ == "__main__":
    asyncio.run(seed_venue())
