import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from crabclaim.api.v1.router import router as v1_router
from crabclaim.core.config import settings
from crabclaim.core.telemetry import setup_telemetry
from crabclaim.services.executor_deps import close_executor


logging.basicConfig(level=settings.log_level)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_executor()


app = FastAPI(title="CrabClaim API", version="0.1.0", lifespan=lifespan)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def store_unavailable(request: Request, exc: Exception) -> JSONResponse:
    log.error("store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Store unavailable, retry later"})


setup_telemetry(app)
app.include_router(v1_router)
