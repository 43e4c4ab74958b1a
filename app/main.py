"""
FastAPI application for the umpire schedule grid.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.logging_config import setup_logging
from app.routes import assignments, seasons
from app.routes.helpers import http_error
from app.services.errors import ScheduleError
from app.utils.db_async import DATABASE_URL, describe_database_url, dispose_engine, init_db

import logging
logger = logging.getLogger(__name__)

setup_logging(
    level=settings.log_level,
    access_log=settings.access_log,
    sql_echo=settings.sql_echo,
)


def _should_create_tables() -> bool:
    return settings.is_dev and settings.auto_init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Schedule DB: {describe_database_url(DATABASE_URL)}")
    logger.info(
        f"Season lock: timeout={settings.season_lock_timeout_ms}ms "
        f"attempts={settings.season_lock_attempts} "
        f"backoff={settings.season_lock_backoff_ms}ms"
    )
    if _should_create_tables():
        try:
            await init_db()
            logger.info("Schedule tables ready.")
        except Exception:
            logger.exception("init_db failed")
            raise
    else:
        logger.info("Skipping init_db(); auto_init_db disabled or not a dev environment")

    yield

    try:
        await dispose_engine()
    except Exception:
        logger.exception("Failed to dispose DB engine")


app = FastAPI(title="Umpire Schedule", lifespan=lifespan)
app.include_router(seasons.router)
app.include_router(assignments.router)


@app.exception_handler(ScheduleError)
async def schedule_error_handler(request: Request, exc: ScheduleError) -> JSONResponse:
    """Last resort for service errors a route did not translate itself."""
    logger.error(f"Unhandled schedule error on {request.url.path}: {exc}")
    http_exc = http_error(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.get("/health")
async def health_check():
    """Health Check Endpoint"""
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
