"""Default venue layout: two floors, sixteen tables, one combinable pair"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.models.venue import VenueTable, TableCombination

# (table_number, floor, capacity_min, capacity_max, description)
VENUE_TABLES = [
    (1, "upstairs", 4, 12, "Dance floor premium booth"),
    (2, "upstairs", 4, 8, "Dance floor side high table"),
    (3, "upstairs", 4, 8, "Dance floor side high table"),
    (4, "upstairs", 4, 8, "Dance floor front high table"),
    (5, "upstairs", 4, 10, "Dance floor front large high table"),
    (6, "upstairs", 2, 4, "Barrel bar area"),
    (7, "upstairs", 2, 4, "Barrel bar area"),
    (8, "upstairs", 2, 4, "Barrel bar area"),
    (9, "upstairs", 4, 10, "Large booth"),
    (10, "upstairs", 4, 12, "Premium Ciroc booth"),
    (11, "downstairs", 2, 8, "Intimate booth"),
    (12, "downstairs", 2, 8, "Intimate booth"),
    (13, "downstairs", 2, 8, "Dancefloor booth"),
    (14, "downstairs", 2, 8, "Dance floor booth"),
    (15, "downstairs", 2, 6, "Curved seating"),
    (16, "downstairs", 2, 6, "Curved seating"),
]

TABLE_COMBINATIONS = [
    {
        "name": "Tables 15 & 16",
        "description": "Curved seating joined for larger groups",
        "table_numbers": [15, 16],
        "min_capacity": 7,
        "max_capacity": 14,
        "auto_combine_threshold": 7,
        "setup_time_minutes": 15,
        "combination_fee": Decimal("25.00"),
    },
]


async def seed_layout(db: AsyncSession) -> bool:
    """Insert the default tables and combinations. Returns False if tables already exist."""
    existing = await db.execute(select(VenueTable.id).limit(1))
    if existing.scalar_one_or_none() is not None:
        return False

    for number, floor, capacity_min, capacity_max, description in VENUE_TABLES:
        db.add(
            VenueTable(
                table_number=number,
                floor=floor,
                capacity_min=capacity_min,
                capacity_max=capacity_max,
                description=description,
            )
        )
    for combination in TABLE_COMBINATIONS:
        db.add(TableCombination(**combination))

    await db.commit()
    return True
