from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from timeledger.core.logging import configure_logging
from timeledger import models  # noqa: F401
from timeledger.routers.auth import router as auth_router
from timeledger.routers.employees import router as employees_router
from timeledger.routers.payroll import router as payroll_router
from timeledger.routers.projects import router as projects_router
from timeledger.routers.time_entries import router as time_entries_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Time ledger starting")
    yield


app = FastAPI(
    title="Time Ledger",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception", extra={"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(time_entries_router)
app.include_router(payroll_router)
app.include_router(employees_router)
app.include_router(projects_router)


@app.get("/")
def root():
    return {"status": "Time Ledger running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
