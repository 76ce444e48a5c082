from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class ClaimPreviewOut(BaseModel):
    username: str
    display_name: str
    bio: str
    avatar_url: str | None


class VerifyIn(BaseModel):
    # "tweetUrl" is what existing agent clients send.
    # Left untyped so any malformed proof reaches the parser and gets its 400.
    tweet_url: Any = Field(default=None, validation_alias=AliasChoices("tweetUrl", "tweet_url"))


class AirdropOut(BaseModel):
    status: str  # sent/pending/skipped/not_applicable
    reason: str | None = None
    amount: int | None = None
    tx_hash: str | None = None
    message: str


class VerifyOut(BaseModel):
    success: bool = True
    username: str
    twitter_handle: str
    profile: str
    message: str
    airdrop: AirdropOut
