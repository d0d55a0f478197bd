"""Tests for table and combination matching"""

from decimal import Decimal

import pytest

from venue_booking.errors import CapacityError
from venue_booking.layout import VENUE_TABLES, TABLE_COMBINATIONS
from venue_booking.models.venue import VenueTable, TableCombination
from venue_booking.services import holds, tables
from venue_booking.services.tables import select_tables

from tests.conftest import NOW, EVENT_DATE, EVENT_SLOT


def venue_tables():
    return [
        VenueTable(table_number=n, floor=floor, capacity_min=lo, capacity_max=hi, is_active=True)
        for n, floor, lo, hi, _ in VENUE_TABLES
    ]


def venue_combinations():
    return [TableCombination(is_active=True, **combo) for combo in TABLE_COMBINATIONS]


def test_single_table_tightest_fit():
    """Test a party of four gets the smallest table that seats them"""
    match = select_tables(4, venue_tables(), venue_combinations())

    assert match.tables == [6]
    assert match.combined is False
    assert match.total_capacity == 4


def test_single_table_preferred_over_combination():
    """Test a party at the combination threshold still gets a free single table"""
    match = select_tables(7, venue_tables(), venue_combinations())

    assert match.combined is False
    assert match.tables == [2]


def test_combination_when_no_single_table_fits():
    """Test tables 15 and 16 are combined once the big tables are taken"""
    occupied = {1, 2, 3, 4, 5, 9, 10, 11, 12, 13, 14}

    match = select_tables(13, venue_tables(), venue_combinations(), occupied)

    assert match.combined is True
    assert match.tables == [15, 16]
    assert match.total_capacity == 14
    assert match.setup_time_minutes == 15
    assert match.combination_fee == Decimal("25.00")


def test_party_larger_than_any_single_table():
    """Test a party no single table seats gets the combination"""
    match = select_tables(14, venue_tables(), venue_combinations())

    assert match.combined is True
    assert match.tables == [15, 16]


def test_no_combination_below_threshold():
    """Test parties under the threshold are never combined"""
    small = [
        VenueTable(table_number=1, floor="upstairs", capacity_min=2, capacity_max=4, is_active=True),
        VenueTable(table_number=2, floor="upstairs", capacity_min=2, capacity_max=4, is_active=True),
    ]
    combo = [
        TableCombination(
            name="1+2", table_numbers=[1, 2], min_capacity=5, max_capacity=8,
            auto_combine_threshold=7, is_active=True,
        )
    ]

    with pytest.raises(CapacityError) as exc:
        select_tables(5, small, combo)
    assert exc.value.reason == "fully_booked"

    match = select_tables(7, small, combo)
    assert match.combined is True
    assert match.tables == [1, 2]


def test_combination_skipped_when_a_table_is_taken():
    """Test a combination is unavailable if one of its tables is occupied"""
    occupied = {n for n, *_ in VENUE_TABLES if n != 15}

    with pytest.raises(CapacityError):
        select_tables(8, venue_tables(), venue_combinations(), occupied)


def test_party_larger_than_any_capacity():
    """Test oversized parties are reported as exceeding capacity"""
    with pytest.raises(CapacityError) as exc:
        select_tables(30, venue_tables(), venue_combinations())

    assert exc.value.reason == "exceeds_capacity"


def test_fully_booked():
    """Test a fitting party with every table taken is fully booked"""
    occupied = {n for n, *_ in VENUE_TABLES}

    with pytest.raises(CapacityError) as exc:
        select_tables(4, venue_tables(), venue_combinations(), occupied)

    assert exc.value.reason == "fully_booked"


@pytest.mark.asyncio
async def test_match_tables_skips_held_tables(test_db, venue):
    """Test tables under an active hold are not offered"""
    await holds.create_hold(test_db, [6], EVENT_DATE, EVENT_SLOT, 4, "session-a", NOW)

    match = await tables.match_tables(test_db, 4, EVENT_DATE, EVENT_SLOT, NOW)

    assert match.tables == [7]


@pytest.mark.asyncio
async def test_match_tables_ignores_expired_holds(test_db, venue):
    """Test a lapsed hold no longer blocks its table"""
    await holds.create_hold(test_db, [6], EVENT_DATE, EVENT_SLOT, 4, "session-a", NOW)

    later = NOW.replace(hour=13)
    match = await tables.match_tables(test_db, 4, EVENT_DATE, EVENT_SLOT, later)

    assert match.tables == [6]
