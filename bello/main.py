import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from . import __version__
from .config import configure_logging
from .db import init_db
from .realtime import router as realtime_router
from .routers import admin, auth, boards, cards, lists, projects
from .schemas import ErrorOut, Ping

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    logger.info("Bello API %s started", __version__)
    yield


app = FastAPI(title="Bello API", version=__version__, lifespan=lifespan)


# === Error envelope ===


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorOut(error=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # rejected input is not echoed back: it may be non-finite or a password
    details = [{key: err[key] for key in ("loc", "msg", "type") if key in err} for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=ErrorOut(error="Invalid request", details=jsonable_encoder(details)).model_dump(),
    )


# === Health ===


@app.get("/api/ping", response_model=Ping)
def ping() -> Ping:
    return Ping(time=datetime.now(timezone.utc))


app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(boards.router)
app.include_router(lists.router)
app.include_router(cards.router)
app.include_router(admin.router)
app.include_router(realtime_router)
