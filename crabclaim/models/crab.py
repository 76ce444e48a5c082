from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from crabclaim.core.ids import gen_id
from crabclaim.models.base import Base, AuditMixin


class Crab(AuditMixin, Base):
    """
    Registered agent profile.

    Only the claim/airdrop columns are owned by this service; the profile
    fields are written by the registration flow and read for claim previews.
    """

    __tablename__ = "crabs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("crb"))
    username: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)

    display_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    api_key_hash: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)

    # Claim state: verification_code is NULL once verified
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_code: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    twitter_handle: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[str | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Airdrop: wallet is set at registration, airdrop_tx only ever holds a final handle
    solana_wallet: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    airdrop_tx: Mapped[str | None] = mapped_column(String(200), nullable=True)
