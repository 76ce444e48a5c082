from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from crabclaim.models.crab import Crab
from crabclaim.services.airdrop import AirdropOutcome, try_disburse
from crabclaim.services.executor_client import DisbursementExecutor
from crabclaim.services.proof_parser import parse_social_proof


log = logging.getLogger(__name__)


class VerificationError(Exception):
    status_code = 400
    default_detail = "Verification failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class CodeNotFound(VerificationError):
    # Also raised for consumed codes: callers cannot tell which codes ever existed
    status_code = 404
    default_detail = "Invalid or expired claim code"


class AlreadyVerified(VerificationError):
    status_code = 409
    default_detail = "This profile has already been claimed"


@dataclass(frozen=True)
class VerificationResult:
    crab_id: str
    username: str
    twitter_handle: str
    airdrop: AirdropOutcome


async def lookup_claim(db: AsyncSession, code: str) -> Crab:
    crab = (await db.execute(select(Crab).where(Crab.verification_code == code))).scalar_one_or_none()
    if crab is None:
        raise CodeNotFound()
    if crab.verified:
        raise AlreadyVerified()
    return crab


async def verify_claim(
    db: AsyncSession,
    *,
    code: str,
    proof_url: str,
    executor: DisbursementExecutor,
) -> VerificationResult:
    crab = await lookup_claim(db, code)
    return await _verify(db, crab=crab, code=code, proof_url=proof_url, executor=executor)


async def verify_crab(
    db: AsyncSession,
    *,
    crab: Crab,
    proof_url: str,
    executor: DisbursementExecutor,
) -> VerificationResult:
    """Same transition, for a crab authenticated by API key instead of by claim link."""
    if crab.verified:
        raise AlreadyVerified()
    if not crab.verification_code:
        raise CodeNotFound()
    return await _verify(db, crab=crab, code=crab.verification_code, proof_url=proof_url, executor=executor)


async def _consume_claim_code(db: AsyncSession, *, crab_id: str, code: str, handle: str) -> None:
    # Compare-and-set on the code we looked up: only one caller can win it
    result = await db.execute(
        update(Crab)
        .where(Crab.id == crab_id, Crab.verification_code == code, Crab.verified.is_(False))
        .values(verified=True, verification_code=None, twitter_handle=handle, verified_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        await db.commit()
        return

    await db.rollback()
    verified = (await db.execute(select(Crab.verified).where(Crab.id == crab_id))).scalar_one_or_none()
    if verified:
        raise AlreadyVerified()
    raise CodeNotFound()


async def _verify(
    db: AsyncSession,
    *,
    crab: Crab,
    code: str,
    proof_url: str,
    executor: DisbursementExecutor,
) -> VerificationResult:
    proof = parse_social_proof(proof_url)
    crab_id, username = crab.id, crab.username

    await _consume_claim_code(db, crab_id=crab_id, code=code, handle=proof.handle)
    log.info("crab @%s verified by @%s (post %s)", username, proof.handle, proof.post_id)

    # Verification is committed; nothing below may undo it
    try:
        fresh = (
            await db.execute(
                select(Crab).where(Crab.id == crab_id).execution_options(populate_existing=True)
            )
        ).scalar_one()
        airdrop = await try_disburse(db, fresh, executor)
    except SQLAlchemyError:
        log.exception("airdrop step failed for @%s after verification", username)
        await db.rollback()
        airdrop = AirdropOutcome(status="pending", reason="store_error")
    except Exception:
        log.exception("airdrop step raised for @%s after verification", username)
        await db.rollback()
        airdrop = AirdropOutcome(status="pending", reason="airdrop_error")

    return VerificationResult(crab_id=crab_id, username=username, twitter_handle=proof.handle, airdrop=airdrop)
