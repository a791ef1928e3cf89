import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.api.metrics import router as metrics_router
from app.api.routes import router as api_router
from app.api.ws import realtime_endpoint
from app.config import Settings, get_settings
from app.database import build_engine, build_session_factory
from app.models import Base
from app.services.revocation import build_revocation_store
from huddle.realtime import ConnectionRegistry


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "root": {
        "handlers": ["default"],
        "level": "INFO",
    },
    "loggers": {
        "huddle.realtime": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        }
    },
}


logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, session_factory: sessionmaker | None = None) -> FastAPI:
    """Build an application instance with its own connection registry."""

    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    if session_factory is None:
        engine = build_engine(settings.database_url, echo=settings.debug)
        session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Migrations are out of scope; create whatever tables are missing.
        Base.metadata.create_all(bind=session_factory.kw["bind"])
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            await app.state.connections.close()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.revocations = build_revocation_store(settings.token_revocation_url)
    app.state.connections = ConnectionRegistry()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_origin_regex=settings.cors_allow_origin_regex,
    )

    @app.exception_handler(SQLAlchemyError)
    async def _persistence_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Persistence error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Persistence error"},
        )

    @app.get("/health", tags=["system"])
    def health_check() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok", "environment": settings.environment}

    app.include_router(api_router, prefix="/api")
    app.add_api_websocket_route(settings.websocket_path, realtime_endpoint, name="realtime")
    app.include_router(metrics_router)
    return app


app = create_app()
