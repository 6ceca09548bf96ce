#main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.rotation.errors import RotationError
from db import close_pool
from middleware import RequestContextMiddleware
from routes.health import router as health_router
from routes.invitations import router as invitations_router
from routes.rounds import router as rounds_router
from routes.tontines import router as tontines_router
from services.observability import configure_logging
from services.rotation_errors import rotation_error_handler
from settings import settings, validate_env_settings

logger = logging.getLogger("dourou")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("dourou starting env=%s store=%s", settings.ENV, settings.STORE_BACKEND)
    yield
    close_pool()


def create_app() -> FastAPI:
    validate_env_settings()
    configure_logging()

    app = FastAPI(title="Dourou API", version=settings.APP_VERSION, lifespan=lifespan)

    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------

    app.include_router(health_router)
    app.include_router(tontines_router)
    app.include_router(rounds_router)
    app.include_router(invitations_router)

    app.add_exception_handler(RotationError, rotation_error_handler)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
