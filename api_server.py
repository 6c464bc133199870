"""
FastAPI server for the leveraged trading settlement service
Exposes the bot-facing trading/user API and runs the liquidation sweep
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from config.config import validate_config, API_PORT
from config.logging import setup_logging
from config.sentry import init_sentry
from src.api.dependencies import AppServices
from src.api.router import router as api_router
from src.cache.redis_manager import RedisManager
from src.core.exceptions import TradingError, ValidationError
from src.database.engine import build_engine, build_session_maker, check_connection
from src.services.liquidation import LiquidationScanner
from src.services.market_hours import MarketHours
from src.services.position_service import PositionLifecycle
from src.services.price_feed import RedisPriceFeed
from src.services.transfers import TransferSettlement
from src.tasks.liquidation_scheduler import LiquidationScheduler


def build_services(session_maker, price_feed, market_hours) -> AppServices:
    """Wire the settlement services around one session maker"""
    lifecycle = PositionLifecycle(session_maker, price_feed, market_hours)
    scanner = LiquidationScanner(session_maker, price_feed, store=lifecycle.store)
    return AppServices(
        lifecycle=lifecycle,
        transfers=TransferSettlement(session_maker, ledger=lifecycle.ledger),
        scanner=scanner,
        scheduler=LiquidationScheduler(scanner),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events

    When the app was created with ready-made services nothing is built here.
    """
    if app.state.services is not None:
        yield
        return

    logger.info("Starting trading settlement API...")

    # NOTE: schema is managed by migrations, not created here
    engine = build_engine()
    await check_connection(engine)

    redis = RedisManager()
    await redis.initialize()

    services = build_services(
        build_session_maker(engine), RedisPriceFeed(redis), MarketHours()
    )
    app.state.services = services
    app.state.engine = engine
    app.state.redis = redis

    services.scheduler.start()

    yield

    logger.info("Shutting down trading settlement API...")

    services.scheduler.stop()
    await redis.close()
    await engine.dispose()
    logger.info("Database connections closed")


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        services: Pre-built services (tests); built in lifespan when omitted
    """
    app = FastAPI(
        title="Trading Settlement API",
        description="Custodial balances and leveraged positions",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.include_router(api_router)

    @app.get("/healthz")
    async def healthz():
        """Health check endpoint"""
        body = {"status": "healthy"}
        current = app.state.services
        if current is not None and current.scheduler is not None:
            body["liquidation"] = current.scheduler.get_status()
        return body

    @app.exception_handler(TradingError)
    async def trading_error_handler(request: Request, exc: TradingError):
        """
        Expected failures are a normal `fail` envelope with HTTP 200
        """
        logger.warning(f"{request.url.path} failed: [{exc.code}] {exc.message}")
        return JSONResponse(status_code=200, content={**exc.to_dict(), "body": {}})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """
        Malformed request bodies use the same `fail` envelope as TradingError
        """
        errors = exc.errors()
        field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else ""
        error = ValidationError(f"invalid {field}" if field else None)
        logger.warning(f"{request.url.path} rejected: {errors}")
        return JSONResponse(status_code=200, content={**error.to_dict(), "body": {}})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """
        Handle HTTPException properly - return correct status code and detail
        """
        if exc.status_code >= 500:
            logger.error(f"HTTP {exc.status_code}: {exc.detail}")
        elif exc.status_code >= 400:
            logger.warning(f"HTTP {exc.status_code}: {exc.detail}")

        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "fail", "error": exc.detail},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Global exception handler for unexpected errors
        """
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"status": "fail", "error": "Internal server error"},
        )

    return app


# Setup logging at module level (must run before app creation)
# This ensures logging works when uvicorn imports the module
setup_logging()
init_sentry()

app = create_app()


if __name__ == "__main__":
    import uvicorn

    validate_config()
    logger.info("Configuration validated successfully")

    uvicorn.run(
        "api_server:app",
        host="127.0.0.1",
        port=API_PORT,
        log_level="info",
    )
