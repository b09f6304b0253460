# backend/dockbook/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .core.errors import DockbookError
from .database_init import init_db
from .jobs.scheduler import shutdown_scheduler, start_scheduler
from .routers import auth as auth_router
from .routers import bookings as bookings_router
from .routers import slots as slots_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("dockbook starting up...")
    init_db()
    start_scheduler()
    try:
        yield
    finally:
        shutdown_scheduler()
        logger.info("dockbook shutting down...")


app = FastAPI(
    title="dockbook",
    docs_url="/docs" if settings.APP_ENV == "dev" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# --- API Routers ---
app.include_router(auth_router.router)
app.include_router(slots_router.router)
app.include_router(bookings_router.router)


# --- Errors: every failure leaves in the same {"success": False, ...} shape ---
@app.exception_handler(DockbookError)
async def domain_error(request: Request, exc: DockbookError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_result())


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    return JSONResponse(status_code=422, content={"success": False, "errors": errors, "code": "VALIDATION_ERROR"})


@app.exception_handler(SQLAlchemyError)
async def storage_error(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "errors": ["storage error"], "code": "STORAGE_ERROR"},
    )


@app.get("/ping")
def ping():
    return {"ok": True}
