from pydantic import BaseModel


class ClaimStatusOut(BaseModel):
    status: str  # claimed/pending_claim
    twitter_handle: str | None = None
    profile: str | None = None
    claim_url: str | None = None
    verification_code: str | None = None
