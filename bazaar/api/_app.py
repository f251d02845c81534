"""
FastAPI application factory.

    app = create_app(Settings.from_env())

Tests pass their own session_factory so the app works without a lifespan
run; otherwise the database is opened on startup.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.api import _cart, _catalogue, _orders, _webhooks
from bazaar.api._http import render_error
from bazaar.config import Settings
from bazaar.db import create_database
from bazaar.errors import Errors, MarketFailure
from bazaar.logs import configure_logging
from bazaar.payments import PaymentGateway
from bazaar.services import Services
from bazaar.verification import KycProvider

log = logging.getLogger("bazaar.api")


async def _market_failure(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, MarketFailure)
    return render_error(exc.error)


async def _invalid_request(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return render_error(Errors.validation("VALIDATION_ERROR", "Invalid request", errors=errors))


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"})


def create_app(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    gateway: PaymentGateway | None = None,
    kyc_provider: KycProvider | None = None,
) -> FastAPI:
    configure_logging(settings.log_level)

    def build(factory: async_sessionmaker[AsyncSession]) -> Services:
        return Services.build(settings, factory, gateway=gateway, kyc_provider=kyc_provider)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if session_factory is not None:
            yield
            return
        factory, engine = await create_database(settings.database_url)
        app.state.services = build(factory)
        log.info("database ready (%s)", settings.env)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="bazaar", lifespan=lifespan)
    if session_factory is not None:
        app.state.services = build(session_factory)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(MarketFailure, _market_failure)
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.add_exception_handler(Exception, _unhandled)

    for module in (_cart, _orders, _catalogue, _webhooks):
        app.include_router(module.router)
    return app


__all__ = ("create_app",)
