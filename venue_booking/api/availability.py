"""Availability and table matching API endpoints"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.database import get_db
from venue_booking.models.venue import TableCombination
from venue_booking.schemas.availability import TableMatchRequest, TableMatch, CombinationResponse
from venue_booking.services import tables

router = APIRouter()


@router.post("/match", response_model=TableMatch)
async def match_tables(
    request: TableMatchRequest,
    db: AsyncSession = Depends(get_db),
):
    """Pick a table, or a combination of tables, for a party"""
    return await tables.match_tables(db, request.party_size, request.booking_date, request.time_slot)


@router.get("/combinations", response_model=List[CombinationResponse])
async def list_combinations(db: AsyncSession = Depends(get_db)):
    """List active table combinations"""
    result = await db.execute(
        select(TableCombination)
        .where(TableCombination.is_active == True)
        .order_by(TableCombination.min_capacity)
    )
    return result.scalars().all()
