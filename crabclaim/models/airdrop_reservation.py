from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from crabclaim.core.ids import gen_id
from crabclaim.models.base import AuditMixin, Base, JSONType


OPEN_STATUSES = ("reserved", "pending", "failed")


class AirdropReservation(AuditMixin, Base):
    __tablename__ = "airdrop_reservations"
    __table_args__ = (
        UniqueConstraint("wallet", name="uq_airdrop_reservation_wallet"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("adr"))
    wallet: Mapped[str] = mapped_column(String(128), nullable=False)

    crab_id: Mapped[str] = mapped_column(String, ForeignKey("crabs.id"), nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="reserved")  # reserved/pending/failed/final
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    token_mint: Mapped[str] = mapped_column(String(128), nullable=False)

    # Final handle when status=final, queued placeholder when status=pending
    tx_handle: Mapped[str | None] = mapped_column(String(200), nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    executor_response: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)  # no secrets

    finalized_at: Mapped[str | None] = mapped_column(DateTime(timezone=True), nullable=True)
