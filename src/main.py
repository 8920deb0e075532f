"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError

from config.settings import settings
from src.tab_account.api.router import router as account_router
from src.tab_admin.api.router import router as admin_router
from src.tab_common.database import engine
from src.tab_common.errors import AppError, StoreUnavailableError
from src.tab_common.redis_client import close_redis, get_redis
from src.tab_common.response import error_response
from src.tab_gateway.middleware.request_log import RequestLogMiddleware
from src.tab_inventory.api.router import router as inventory_router
from src.tab_ledger.api.router import router as ledger_router
from src.tab_ledger.api.router import top_up_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, probe Redis. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    if settings.BALANCE_CACHE_ENABLED:
        try:
            redis = await get_redis()
            await redis.ping()
        except RedisError as exc:
            logger.warning("Redis unreachable at startup, balances read from DB: %s", exc)
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _error_json(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_json(request, exc)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Store unavailable on %s: %s", request.url.path, exc)
    return _error_json(request, StoreUnavailableError())


app.include_router(account_router, prefix="/api/v1")
app.include_router(ledger_router, prefix="/api/v1")
app.include_router(top_up_router, prefix="/api/v1")
app.include_router(inventory_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
