from fastapi import APIRouter

from crabclaim.api.v1.endpoints.health import router as health_router
from crabclaim.api.v1.endpoints.claims import router as claims_router
from crabclaim.api.v1.endpoints.crabs import router as crabs_router
from crabclaim.api.v1.endpoints.airdrops import router as airdrops_router
from crabclaim.api.v1.endpoints.internal import router as internal_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(claims_router, tags=["claims"])
router.include_router(crabs_router, tags=["crabs"])
router.include_router(airdrops_router, tags=["airdrops"])
router.include_router(internal_router, tags=["internal"])
