from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from crabclaim.core.db import get_db
from crabclaim.schemas.airdrop import FinalizeIn, ReservationOut
from crabclaim.services.airdrop import (
    ReservationError,
    finalize_reservation,
    list_open_reservations,
    release_reservation,
)
from crabclaim.services.internal_admin import require_internal_admin

router = APIRouter(prefix="/internal/airdrops", dependencies=[Depends(require_internal_admin)])


@router.get("/open", response_model=list[ReservationOut])
async def get_open_reservations(
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> list[ReservationOut]:
    rows = await list_open_reservations(db, limit=limit)
    return [ReservationOut.model_validate(r) for r in rows]


@router.post("/{wallet}/finalize", response_model=ReservationOut)
async def finalize(wallet: str, payload: FinalizeIn, db: AsyncSession = Depends(get_db)) -> ReservationOut:
    try:
        row = await finalize_reservation(db, wallet=wallet, tx_handle=payload.tx_hash)
    except ReservationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return ReservationOut.model_validate(row)


@router.post("/{wallet}/release")
async def release(wallet: str, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        await release_reservation(db, wallet=wallet)
    except ReservationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return {"released": wallet}
