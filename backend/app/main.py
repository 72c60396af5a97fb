"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: middleware/router wiring, database
    lifecycle, and rendering of the error taxonomy into response envelopes.

Dependencies:
    - app.database
    - app.errors
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from app.config import settings
import app.database as _db
from app.database import connect_db, close_db
from app.errors import FatalError, TransientFailure, WagerError, classify_store_error
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging

logger = logging.getLogger("wagerline")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()
    logger.info("Connected to MongoDB database '%s'", settings.MONGO_DB)

    yield

    await close_db()


app = FastAPI(
    title="Wagerline",
    description="Bet placement and wagering ledger",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS (pre-flight OPTIONS is answered here)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", settings.USER_ID_HEADER, "Idempotency-Key"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from app.routers.account import router as account_router
from app.routers.bets import router as bets_router
from app.routers.matches import router as matches_router

app.include_router(matches_router)
app.include_router(bets_router)
app.include_router(account_router)


@app.exception_handler(WagerError)
async def wager_error_handler(request: Request, exc: WagerError):
    if isinstance(exc, FatalError):
        logger.error("Fatal error on %s %s: %s", request.method, request.url.path, exc.message)
    elif isinstance(exc, TransientFailure):
        logger.warning("Transient failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

def _describe_validation_error(err: dict) -> dict:
    # loc is ("body" | "query" | "header", field, ...); drop the source.
    path = [str(part) for part in err.get("loc", ())[1:]]
    return {"field": ".".join(path) or "request", "message": err.get("msg", "Invalid value.")}


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query strings share the VALIDATION_ERROR envelope."""
    errors = [_describe_validation_error(err) for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "reason": "VALIDATION_ERROR",
            "message": "Validation error.",
            "errors": errors,
        },
    )


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    """Store errors that escaped a service are classified here."""
    error = classify_store_error(exc)
    logger.error(
        "Unclassified store error on %s %s (%s): %s",
        request.method, request.url.path, error.reason, exc,
    )
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=FatalError("unhandled").to_payload())


@app.get("/health")
async def health():
    """Liveness plus a primary ping; the ledger cannot commit without one."""
    if _db.db is None:
        return {"status": "starting", "store": "unconfigured"}
    try:
        await _db.db.command("ping")
    except PyMongoError as exc:
        logger.warning("Health check ping failed: %s", exc)
        return {"status": "degraded", "store": "unreachable"}
    return {"status": "ok", "store": "reachable"}
