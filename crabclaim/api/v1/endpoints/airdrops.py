from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crabclaim.core.db import get_db
from crabclaim.schemas.airdrop import AirdropStatsOut
from crabclaim.services.airdrop import airdrop_stats

router = APIRouter()


@router.get("/airdrops/stats", response_model=AirdropStatsOut)
async def get_airdrop_stats(db: AsyncSession = Depends(get_db)) -> AirdropStatsOut:
    return AirdropStatsOut(**await airdrop_stats(db))
