from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from crabclaim.core.config import settings
from crabclaim.core.ids import gen_id
from crabclaim.models.airdrop_budget import DEFAULT_BUDGET_ID, AirdropBudget
from crabclaim.models.airdrop_reservation import OPEN_STATUSES, AirdropReservation
from crabclaim.models.crab import Crab
from crabclaim.services.executor_client import PENDING_HANDLE_PREFIX, DisbursementExecutor, ExecutorResult


log = logging.getLogger(__name__)

AirdropStatus = Literal["sent", "pending", "skipped", "not_applicable"]
ReserveDecision = Literal["reserved", "wallet_used", "cap_reached"]


@dataclass(frozen=True)
class AirdropOutcome:
    status: AirdropStatus
    reason: str | None = None
    amount: int | None = None
    tx_handle: str | None = None
    error: str | None = None

    @property
    def message(self) -> str:
        symbol = settings.airdrop_token_symbol
        if self.status == "sent":
            return f"You received {self.amount} ${symbol}!"
        if self.status == "pending":
            return "Airdrop pending - will retry automatically"
        if self.reason == "wallet_used":
            return "Airdrop skipped: this wallet has already received an airdrop"
        if self.reason == "cap_reached":
            return "Airdrop skipped: all airdrop slots have been claimed"
        return "No airdrop for this profile"


class ReservationError(Exception):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


def _insert_for(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise ValueError(f"Unsupported dialect for airdrop reservations: {dialect}")


async def ensure_budget(db: AsyncSession) -> None:
    ins = _insert_for(db)
    await db.execute(
        ins(AirdropBudget)
        .values(id=DEFAULT_BUDGET_ID, total=settings.airdrop_cap, remaining=settings.airdrop_cap)
        .on_conflict_do_nothing(index_elements=["id"])
    )


async def _take_budget_slot(db: AsyncSession) -> bool:
    await ensure_budget(db)
    result = await db.execute(
        update(AirdropBudget)
        .where(AirdropBudget.id == DEFAULT_BUDGET_ID, AirdropBudget.remaining > 0)
        .values(remaining=AirdropBudget.remaining - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _within_count_cap(db: AsyncSession) -> bool:
    # Includes the row just inserted by this transaction
    live = (await db.execute(select(func.count()).select_from(AirdropReservation))).scalar_one()
    return live <= settings.airdrop_cap


async def reserve_wallet(db: AsyncSession, *, crab_id: str, username: str, wallet: str) -> ReserveDecision:
    """
    Single transaction: claim the wallet row, then check the cap.
    The wallet insert is conditional on the unique constraint, so two
    concurrent callers for the same wallet cannot both see it as free.
    """
    ins = _insert_for(db)
    stmt = (
        ins(AirdropReservation)
        .values(
            id=gen_id("adr"),
            wallet=wallet,
            crab_id=crab_id,
            username=username,
            status="reserved",
            amount=settings.airdrop_amount,
            token_mint=settings.airdrop_token_mint,
            attempts=0,
            executor_response={},
        )
        .on_conflict_do_nothing(index_elements=["wallet"])
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        await db.rollback()
        return "wallet_used"

    if settings.airdrop_cap_mode == "budget":
        within_cap = await _take_budget_slot(db)
    else:
        within_cap = await _within_count_cap(db)

    if not within_cap:
        await db.rollback()
        return "cap_reached"

    await db.commit()
    return "reserved"


async def record_disbursement(
    db: AsyncSession,
    *,
    crab_id: str,
    wallet: str,
    result: ExecutorResult,
) -> AirdropOutcome:
    amount = settings.airdrop_amount
    base = update(AirdropReservation).where(
        AirdropReservation.wallet == wallet,
        AirdropReservation.crab_id == crab_id,
        AirdropReservation.status != "final",
    )

    if result.outcome == "final":
        receipt = await db.execute(
            update(Crab)
            .where(Crab.id == crab_id, Crab.airdrop_tx.is_(None))
            .values(airdrop_tx=result.tx_handle)
            .execution_options(synchronize_session=False)
        )
        if receipt.rowcount != 1:
            log.warning("airdrop receipt already present for crab %s, keeping existing", crab_id)

        await db.execute(
            base.values(
                status="final",
                tx_handle=result.tx_handle,
                attempts=AirdropReservation.attempts + 1,
                last_error=None,
                executor_response=result.detail,
                finalized_at=func.now(),
            ).execution_options(synchronize_session=False)
        )
        await db.commit()
        return AirdropOutcome(status="sent", amount=amount, tx_handle=result.tx_handle)

    if result.outcome == "pending":
        await db.execute(
            base.values(
                status="pending",
                tx_handle=result.tx_handle,
                attempts=AirdropReservation.attempts + 1,
                last_error=None,
                executor_response=result.detail,
            ).execution_options(synchronize_session=False)
        )
        await db.commit()
        return AirdropOutcome(status="pending", reason="queued", amount=amount, tx_handle=result.tx_handle)

    # Failure: reservation stays so a retry can never double-send
    await db.execute(
        base.values(
            status="failed",
            attempts=AirdropReservation.attempts + 1,
            last_error=result.error,
            executor_response=result.detail,
        ).execution_options(synchronize_session=False)
    )
    await db.commit()
    return AirdropOutcome(status="pending", reason="executor_failed", amount=amount, error=result.error)


async def try_disburse(db: AsyncSession, crab: Crab, executor: DisbursementExecutor) -> AirdropOutcome:
    # Plain values: rollbacks below expire ORM instances
    crab_id, username = crab.id, crab.username
    wallet, receipt = crab.solana_wallet, crab.airdrop_tx

    if not wallet:
        return AirdropOutcome(status="not_applicable", reason="no_wallet")
    if receipt:
        return AirdropOutcome(status="not_applicable", reason="already_received")
    if not executor.configured:
        log.info("airdrop skipped for @%s: executor not configured", username)
        return AirdropOutcome(status="not_applicable", reason="executor_not_configured")

    decision = await reserve_wallet(db, crab_id=crab_id, username=username, wallet=wallet)
    if decision != "reserved":
        log.info("airdrop skipped for @%s (%s): %s", username, wallet, decision)
        return AirdropOutcome(status="skipped", reason=decision)

    log.info("airdrop reserved for @%s (%s)", username, wallet)
    result = await executor.disburse(
        wallet=wallet,
        username=username,
        amount=settings.airdrop_amount,
        mint=settings.airdrop_token_mint,
    )
    return await record_disbursement(db, crab_id=crab_id, wallet=wallet, result=result)


async def _get_reservation(db: AsyncSession, wallet: str) -> AirdropReservation | None:
    stmt = (
        select(AirdropReservation)
        .where(AirdropReservation.wallet == wallet)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_open_reservations(db: AsyncSession, *, limit: int = 100) -> list[AirdropReservation]:
    stmt = (
        select(AirdropReservation)
        .where(AirdropReservation.status.in_(OPEN_STATUSES))
        .order_by(AirdropReservation.created_at.asc())
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all())


async def finalize_reservation(db: AsyncSession, *, wallet: str, tx_handle: str) -> AirdropReservation:
    """
    Idempotent finalize-by-wallet for the reconciliation job.
    Repeating with the same handle is a no-op; a different handle is a conflict.
    """
    if not tx_handle or tx_handle.startswith(PENDING_HANDLE_PREFIX):
        raise ReservationError(422, "A final transaction handle is required")

    result = await db.execute(
        update(AirdropReservation)
        .where(AirdropReservation.wallet == wallet, AirdropReservation.status != "final")
        .values(status="final", tx_handle=tx_handle, last_error=None, finalized_at=func.now())
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        await db.rollback()
        existing = await _get_reservation(db, wallet)
        if existing is None:
            raise ReservationError(404, "Reservation not found")
        if existing.tx_handle != tx_handle:
            raise ReservationError(409, "Reservation already finalized with a different transaction")
        return existing

    reservation = await _get_reservation(db, wallet)
    await db.execute(
        update(Crab)
        .where(Crab.id == reservation.crab_id, Crab.airdrop_tx.is_(None))
        .values(airdrop_tx=tx_handle)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    log.info("airdrop finalized for @%s (%s): %s", reservation.username, wallet, tx_handle)
    return reservation


async def release_reservation(db: AsyncSession, *, wallet: str) -> None:
    """Drop a stale, never-finalized reservation so the wallet becomes eligible again."""
    result = await db.execute(
        delete(AirdropReservation)
        .where(AirdropReservation.wallet == wallet, AirdropReservation.status != "final")
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        await db.rollback()
        existing = await _get_reservation(db, wallet)
        if existing is None:
            raise ReservationError(404, "Reservation not found")
        raise ReservationError(409, "Finalized reservations cannot be released")

    if settings.airdrop_cap_mode == "budget":
        await ensure_budget(db)
        await db.execute(
            update(AirdropBudget)
            .where(AirdropBudget.id == DEFAULT_BUDGET_ID, AirdropBudget.remaining < AirdropBudget.total)
            .values(remaining=AirdropBudget.remaining + 1)
            .execution_options(synchronize_session=False)
        )

    await db.commit()
    log.info("airdrop reservation released for %s", wallet)


async def airdrop_stats(db: AsyncSession) -> dict[str, int]:
    rows = (
        await db.execute(
            select(AirdropReservation.status, func.count()).group_by(AirdropReservation.status)
        )
    ).all()
    by_status = {status: count for status, count in rows}
    finalized = by_status.get("final", 0)
    reserved = sum(by_status.values())

    if settings.airdrop_cap_mode == "budget":
        budget = (
            await db.execute(select(AirdropBudget.remaining).where(AirdropBudget.id == DEFAULT_BUDGET_ID))
        ).scalar_one_or_none()
        remaining = settings.airdrop_cap if budget is None else budget
    else:
        remaining = max(0, settings.airdrop_cap - reserved)

    return {
        "cap": settings.airdrop_cap,
        "amount": settings.airdrop_amount,
        "reserved": reserved,
        "finalized": finalized,
        "remaining": remaining,
    }
