from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    wallet: str
    crab_id: str
    username: str
    status: str
    amount: int
    token_mint: str
    tx_handle: str | None
    attempts: int
    last_error: str | None
    created_at: datetime | None = None
    finalized_at: datetime | None = None


class FinalizeIn(BaseModel):
    tx_hash: str = Field(min_length=1, max_length=200)


class AirdropStatsOut(BaseModel):
    cap: int
    amount: int
    reserved: int
    finalized: int
    remaining: int
