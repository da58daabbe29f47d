from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tuner_guide.config import settings, setup_logging
from tuner_guide.dependencies import get_service_locator
from tuner_guide.errors import ConfigurationError, FetchError, GuideError
from tuner_guide.schemas import ErrorDetail, StandardErrorResponse
from tuner_guide.services import GuideService, guide_scheduler

from tuner_guide.routers import main_router


setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting Tuner Guide...")

    guide = GuideService.from_settings(settings)
    get_service_locator().register_singleton(GuideService, guide)

    try:
        outcome = await guide.reload()
        if outcome.ok:
            logger.info("Initial reload %s: %s services", outcome.status, outcome.services)
        else:
            logger.warning("Initial reload failed: %s", outcome.error)

        guide_scheduler.start(guide, settings.guide_reload_cron)
        logger.info("Tuner Guide started successfully")
    except Exception as e:
        logger.error(f"Failed to start Tuner Guide: {e}", exc_info=True)
        await guide.close()
        raise

    yield

    logger.info("Shutting down Tuner Guide...")

    try:
        guide_scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)

    await guide.close()
    get_service_locator().unregister(GuideService)
    logger.info("Tuner Guide stopped")


app = FastAPI(
    title="Tuner Guide",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(main_router)


def _error_response(status_code: int, code: str, exc: GuideError, request: Request) -> JSONResponse:
    body = StandardErrorResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        error=ErrorDetail(
            code=code,
            message=str(exc),
            context={"path": request.url.path},
        ),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Report a missing or invalid server address"""
    logger.error(f"Configuration error for {request.method} {request.url.path}: {exc}")
    return _error_response(503, "NOT_CONFIGURED", exc, request)


@app.exception_handler(FetchError)
async def fetch_error_handler(request: Request, exc: FetchError):
    """Report a failed request to the tuner server"""
    logger.error(f"Tuner server request failed for {request.method} {request.url.path}: {exc}")
    return _error_response(502, "FETCH_FAILED", exc, request)
