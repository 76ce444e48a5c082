from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crabclaim.core.db import get_db
from crabclaim.core.security import hash_api_key
from crabclaim.models.crab import Crab

bearer = HTTPBearer(auto_error=False)


async def get_current_crab(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer),
    db: AsyncSession = Depends(get_db),
) -> Crab:
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Unauthorized - include Bearer token from registration")

    hashed = hash_api_key(credentials.credentials)
    crab = (await db.execute(select(Crab).where(Crab.api_key_hash == hashed))).scalar_one_or_none()
    if not crab:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return crab
