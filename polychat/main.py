import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import Settings, get_settings
from .database import create_engine_from_url, create_session_factory, init_models
from .providers.registry import ProviderRegistry, build_registry
from .routes.base_routes import router as base_router
from .routes.chat_routes import router as chat_router
from .services.chat_service import ChatService

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    await init_models(app.state.engine)
    logger.info(f"Providers available: {', '.join(app.state.registry) or 'none'}")

    yield

    # Let generations outlive their clients up to shutdown
    await app.state.chat_service.drain()
    await app.state.engine.dispose()


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error body as {"error": message}"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(
            str(part) for part in first.get("loc", ()) if part != "body"
        )
        message = first.get("msg", "Invalid request")
        logger.info(f"Rejected request to {request.url.path}: {errors}")
        return JSONResponse(
            status_code=400,
            content={"error": f"{location}: {message}" if location else message},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {str(exc)}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None, registry: Optional[ProviderRegistry] = None
) -> FastAPI:
    """Build the application.

    The provider registry is fixed here, once; pass ``registry`` to supply
    adapters directly instead of building them from credentials.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    engine = create_engine_from_url(settings.DATABASE_URL)
    session_factory = create_session_factory(engine)
    registry = registry if registry is not None else build_registry(settings)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.chat_service = ChatService(
        registry=registry,
        session_factory=session_factory,
        title_max_length=settings.TITLE_MAX_LENGTH,
        persist_on_disconnect=settings.PERSIST_ON_DISCONNECT,
        session_lock_enabled=settings.SESSION_LOCK_ENABLED,
    )

    # CORS middleware setup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routes
    app.include_router(base_router)
    app.include_router(chat_router)

    return app
