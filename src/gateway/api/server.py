"""
Gateway Compliance API

Run with `gateway serve` (see gateway.cli).

Endpoints:
- GET /health - Health check
- POST /allow_access - Allow an institution (or one of its users) to receive customer information
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import structlog

from fastapi import Depends, FastAPI, Form, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import Settings, __version__, get_settings
from ..persistence import AllowedFi, AllowedUser, EntityManager, PersistenceDriver

logger = structlog.get_logger()

INTERNAL_SERVER_ERROR = {
    "code": "internal_server_error",
    "message": "Internal Server Error, please try again.",
}


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    """Generic error payload; never carries the underlying error."""
    code: str
    message: str


# ============================================================================
# Application State
# ============================================================================

class AppState:
    """Application state container."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.driver = PersistenceDriver()
        self.driver.init(settings.database_url)
        for component in settings.migration_components:
            self.driver.migrate_up(component)
        self.entity_manager = EntityManager(self.driver)
        self.start_time = datetime.now(timezone.utc)

    def close(self) -> None:
        self.driver.close()


# ============================================================================
# Application Factory
# ============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info("gateway_starting", version=__version__)
        application.state.gateway = AppState(settings)
        yield
        application.state.gateway.close()
        application.state.gateway = None
        logger.info("gateway_stopping")

    application = FastAPI(
        title="Gateway Compliance",
        description="Compliance record storage for the gateway.",
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_api_route(
        "/health", health_check, methods=["GET"], response_model=HealthResponse, tags=["System"]
    )
    application.add_api_route(
        "/allow_access",
        allow_access,
        methods=["POST"],
        responses={500: {"model": ErrorResponse}},
        tags=["Compliance"],
    )

    return application


# ============================================================================
# Dependencies
# ============================================================================

def get_state(request: Request) -> AppState:
    """Get application state."""
    state = getattr(request.app.state, "gateway", None)
    if state is None:
        raise HTTPException(status_code=503, detail="Application not initialized")
    return state


# ============================================================================
# Endpoints
# ============================================================================

async def health_check(state: AppState = Depends(get_state)):
    """Health check endpoint."""
    uptime = (datetime.now(timezone.utc) - state.start_time).total_seconds()
    return HealthResponse(status="healthy", version=__version__, uptime_seconds=uptime)


def allow_access(
    name: str = Form(""),
    domain: str = Form(""),
    public_key: str = Form(""),
    user_id: str = Form(""),
    state: AppState = Depends(get_state),
):
    """
    Record that an institution, or a single user of it, may receive customer information.

    A non-empty `user_id` stores an AllowedUser, otherwise an AllowedFi.
    """
    now = datetime.now(timezone.utc)

    if user_id:
        entity = AllowedUser(
            fi_name=name,
            fi_domain=domain,
            fi_public_key=public_key,
            user_id=user_id,
            allowed_at=now,
        )
    else:
        entity = AllowedFi(
            name=name,
            domain=domain,
            public_key=public_key,
            allowed_at=now,
        )

    try:
        state.entity_manager.persist(entity)
    except Exception as e:
        logger.warning("allow_access_persist_failed", err=str(e), entity_type=type(entity).__name__)
        return JSONResponse(status_code=500, content=INTERNAL_SERVER_ERROR)

    logger.info("access_allowed", entity_type=type(entity).__name__, domain=domain, id=entity.id)
    return Response(status_code=200)


app = create_app()
