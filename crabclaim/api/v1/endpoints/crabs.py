from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from crabclaim.api.v1.endpoints.claims import to_verify_out
from crabclaim.core.config import settings
from crabclaim.core.db import get_db
from crabclaim.models.crab import Crab
from crabclaim.schemas.claim import VerifyIn, VerifyOut
from crabclaim.schemas.crab import ClaimStatusOut
from crabclaim.services.auth import get_current_crab
from crabclaim.services.executor_client import DisbursementExecutor
from crabclaim.services.executor_deps import get_executor
from crabclaim.services.proof_parser import InvalidProofFormat
from crabclaim.services.verification import VerificationError, verify_crab

router = APIRouter()


@router.get("/crabs/status", response_model=ClaimStatusOut)
async def claim_status(crab: Crab = Depends(get_current_crab)) -> ClaimStatusOut:
    if crab.verified:
        return ClaimStatusOut(
            status="claimed",
            twitter_handle=crab.twitter_handle,
            profile=f"{settings.public_base_url}/{crab.username}",
        )
    return ClaimStatusOut(
        status="pending_claim",
        claim_url=f"{settings.public_base_url}/claim/{crab.verification_code}",
        verification_code=crab.verification_code,
    )


@router.post("/crabs/verify", response_model=VerifyOut)
async def verify_current_crab(
    payload: VerifyIn,
    crab: Crab = Depends(get_current_crab),
    db: AsyncSession = Depends(get_db),
    executor: DisbursementExecutor = Depends(get_executor),
) -> VerifyOut:
    try:
        result = await verify_crab(db, crab=crab, proof_url=payload.tweet_url, executor=executor)
    except VerificationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except InvalidProofFormat as e:
        raise HTTPException(status_code=400, detail=str(e))

    return to_verify_out(result)
