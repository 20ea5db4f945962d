"""
CampusDesk - Main FastAPI Application

This is the entry point for the FastAPI application.
It wires the sync core (local cache, remote replica, coordinator), the
services on top of it, middleware, routes, and lifecycle handlers.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router, realtime_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.local_cache import LocalCacheStore
from .repositories.mongo_store import MongoRemoteStore, async_health_check, close_async_client
from .repositories.remote_store import InMemoryRemoteStore, RemoteStore
from .services.classifier_service import ClassifierService
from .services.request_service import RequestService
from .services.user_service import UserService
from .sync.coordinator import SyncCoordinator
from .sync.session import SessionManager
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)


# =============================================================================
# Wiring
# =============================================================================

def build_remote_store() -> Optional[RemoteStore]:
    """Remote replica selected by REMOTE_BACKEND (mongo, memory or none)"""
    if not settings.remote_enabled:
        return None
    backend = settings.remote_backend.lower()
    if backend == "mongo":
        return MongoRemoteStore()
    if backend == "memory":
        return InMemoryRemoteStore()
    logger.warning(f"Unknown remote backend '{backend}', running local-only")
    return None


def configure_services(
    app: FastAPI,
    coordinator: SyncCoordinator,
    classifier: Optional[ClassifierService] = None
) -> None:
    """Attach the coordinator and the services built on it to app.state"""
    session = SessionManager(coordinator.local)
    user_service = UserService(coordinator, session)
    app.state.coordinator = coordinator
    app.state.user_service = user_service
    app.state.request_service = RequestService(coordinator, user_service, classifier)


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    
    Startup:
        - Builds the sync core unless one was attached beforehand
        - Opens the users and requests subscriptions
    
    Shutdown:
        - Closes subscriptions and the remote store
        - Closes database connections
    """
    logger.info("Starting CampusDesk...")
    
    if getattr(app.state, "coordinator", None) is None:
        local = LocalCacheStore()
        coordinator = SyncCoordinator(local, build_remote_store())
        configure_services(app, coordinator, ClassifierService())
    coordinator = app.state.coordinator
    
    await coordinator.start()
    logger.info("Application started successfully")
    
    yield
    
    # Shutdown
    logger.info("Shutting down...")
    await coordinator.stop()
    if coordinator.remote is not None:
        await coordinator.remote.close()
    close_async_client()
    logger.info("Application shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    
    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="CampusDesk",
        description="Campus service-request ticketing with offline-first sync",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )
    
    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)
    
    return application


def _configure_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    
    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(api_router, prefix="/api/v1")
    app.include_router(realtime_router, tags=["Realtime"])
    
    @app.get("/health", tags=["Health"])
    async def health():
        """
        Health check endpoint.
        
        Reports whether a remote replica is attached; the local cache is
        always available.
        """
        coordinator = getattr(app.state, "coordinator", None)
        remote = coordinator.remote if coordinator is not None else None
        mongo_health = await async_health_check() if isinstance(remote, MongoRemoteStore) else None
        healthy = coordinator is not None and (mongo_health is None or mongo_health["status"] == "healthy")
        return {
            "status": "healthy" if healthy else "degraded",
            "version": "1.0.0",
            "environment": settings.environment,
            "remote": type(remote).__name__ if remote is not None else "local-only",
            "storage_warning": coordinator.storage_alert if coordinator is not None else None,
            "mongo": mongo_health,
        }
    
    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "CampusDesk",
            "version": "1.0.0",
            "docs": "/api/docs" if settings.debug else None
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
