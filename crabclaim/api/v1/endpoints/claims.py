from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from crabclaim.core.config import settings
from crabclaim.core.db import get_db
from crabclaim.schemas.claim import AirdropOut, ClaimPreviewOut, VerifyIn, VerifyOut
from crabclaim.services.executor_client import DisbursementExecutor
from crabclaim.services.executor_deps import get_executor
from crabclaim.services.proof_parser import InvalidProofFormat
from crabclaim.services.verification import VerificationError, VerificationResult, lookup_claim, verify_claim

router = APIRouter()


def to_verify_out(result: VerificationResult) -> VerifyOut:
    outcome = result.airdrop
    return VerifyOut(
        username=result.username,
        twitter_handle=result.twitter_handle,
        profile=f"{settings.public_base_url}/{result.username}",
        message=f"Welcome to CrabSpace, @{result.username}!",
        airdrop=AirdropOut(
            status=outcome.status,
            reason=outcome.reason,
            amount=outcome.amount,
            tx_hash=outcome.tx_handle,
            message=outcome.message,
        ),
    )


@router.get("/claim/{code}", response_model=ClaimPreviewOut)
async def get_claim(code: str, db: AsyncSession = Depends(get_db)) -> ClaimPreviewOut:
    try:
        crab = await lookup_claim(db, code)
    except VerificationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    return ClaimPreviewOut(
        username=crab.username,
        display_name=crab.display_name,
        bio=crab.bio,
        avatar_url=crab.avatar_url,
    )


@router.post("/claim/{code}/verify", response_model=VerifyOut)
async def verify_claim_code(
    code: str,
    payload: VerifyIn,
    db: AsyncSession = Depends(get_db),
    executor: DisbursementExecutor = Depends(get_executor),
) -> VerifyOut:
    try:
        result = await verify_claim(db, code=code, proof_url=payload.tweet_url, executor=executor)
    except VerificationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except InvalidProofFormat as e:
        raise HTTPException(status_code=400, detail=str(e))

    return to_verify_out(result)
