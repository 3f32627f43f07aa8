import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import Settings, get_settings
from app.core.exceptions import register_exception_handlers
from app.core.rate_limit import build_rate_limit_rules
from app.core.security import (
    BodySizeLimit,
    InterceptorPipeline,
    RateLimit,
    SanitizeMiddleware,
    SecurityHeadersMiddleware,
)
from app.domains.artwork.router import router as artwork_router
from app.domains.auth.router import router as auth_router
from app.domains.purchases.router import router as purchases_router
from app.domains.users.router import router as users_router
from app.shared.database.connection import Database
from app.shared.storage import LocalImageStorage, build_storage

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = [
    "Content-Type",
    "Authorization",
    "X-Requested-With",
    "Accept",
    "Origin",
]
CORS_EXPOSE_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"]

ENDPOINTS = {
    "health": "/api/health",
    "auth": "/api/auth",
    "artworks": "/api/artworks",
    "users": "/api/users",
    "purchases": "/api/purchases",
    "uploads": "/uploads",
}


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info(f"Starting {settings.app_name} in {settings.node_env} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    database.create_all()
    if database.ping():
        logger.info("Database connected")
    else:
        logger.warning("Database is not reachable")

    yield

    logger.info(f"Shutting down {settings.app_name}")
    database.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        lifespan=lifespan,
    )

    application.state.settings = settings
    application.state.database = Database(settings.database_url)
    application.state.storage = build_storage(settings)
    application.state.rate_limit_rules = build_rate_limit_rules(settings)

    # Added innermost first: the last middleware added runs first
    application.add_middleware(SanitizeMiddleware)
    application.add_middleware(
        InterceptorPipeline,
        interceptors=[
            BodySizeLimit(settings.max_body_size),
            RateLimit(application.state.rate_limit_rules),
        ],
        trust_proxy=settings.trust_proxy,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
        max_age=86400,
    )
    application.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(application, settings)

    if isinstance(application.state.storage, LocalImageStorage):
        application.mount(
            "/uploads",
            StaticFiles(directory=settings.upload_dir, check_dir=False),
            name="uploads",
        )

    # Include routers
    application.include_router(auth_router, prefix="/api")
    application.include_router(artwork_router, prefix="/api")
    application.include_router(purchases_router, prefix="/api")
    application.include_router(users_router, prefix="/api")

    @application.get("/")
    async def root() -> dict:
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "endpoints": ENDPOINTS,
        }

    @application.get("/api/health")
    def health_check(request: Request) -> dict:
        connected = request.app.state.database.ping()
        return {
            "status": "ok",
            "message": "Server is running",
            "database": {"status": "connected" if connected else "disconnected"},
            "environment": settings.node_env,
        }

    return application


app = create_app()
