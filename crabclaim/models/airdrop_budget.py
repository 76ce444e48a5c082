from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from crabclaim.models.base import Base


DEFAULT_BUDGET_ID = "default"


class AirdropBudget(Base):
    """Single-row counter for strict cap enforcement (airdrop_cap_mode=budget)."""

    __tablename__ = "airdrop_budget"
    __table_args__ = (
        CheckConstraint("remaining >= 0", name="ck_airdrop_budget_remaining_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(40), primary_key=True, default=DEFAULT_BUDGET_ID)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
