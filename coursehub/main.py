import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load environment variables as early as possible
load_dotenv()

from .core.clock import utc_now
from .core.config import Settings, get_settings
from .database import create_db_and_tables
from .dependencies import ServiceContainer, build_services
from .exceptions import AuthError, auth_error_handler, http_exception_handler, validation_exception_handler
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, SecurityMiddleware
from .routers import auth_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )


def create_app(settings: Optional[Settings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME}...")
        # a missing JWT_SECRET stops startup here rather than failing every login later
        app.state.services = services or build_services(settings)
        create_db_and_tables(app.state.services.engine)
        logger.info("Database initialized successfully")
        yield
        logger.info(f"Shutting down {settings.APP_NAME}...")
        app.state.services.engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None),
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health_check():
        services_ready = getattr(app.state, "services", None) is not None
        return {
            "status": "healthy" if services_ready else "starting",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": utc_now().isoformat(),
            "environment": settings.ENV,
            "auth": {
                "jwt_algorithm": settings.JWT_ALGORITHM,
                "standard_session_days": settings.STANDARD_SESSION_DAYS,
                "verified_session_days": settings.VERIFIED_SESSION_DAYS,
                "sms_provider": "twilio" if settings.twilio_configured else "console",
            },
        }

    return app


app = create_app()


# ------------------------
# Run with correct PORT in local/production
# ------------------------
if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "coursehub.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
