"""Main FastAPI application module.

This module builds the FastAPI application, wires the shared collaborators
(database engine, credential store, blob store) onto ``app.state`` and
registers all route handlers.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.routes import assignment, auth, class_route, submission, user
from config import API_HOST, API_PORT, Settings, load_settings
from core.database import create_db_engine, create_session_factory, init_db
from core.exceptions import InternalFailure, SunClassError
from core.logging_config import setup_logging
from core.security import CredentialStore
from utils.blob_store import LocalBlobStore

logger = logging.getLogger(__name__)


def _error_response(exc: SunClassError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SunClassError)
    async def handle_sun_class_error(request: Request, exc: SunClassError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(
            "Database error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return _error_response(InternalFailure("Database operation failed"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Runtime settings; loaded from the environment when omitted.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    if not settings.jwt_secret:
        logger.warning("JWT_SECRET is not set; login and authenticated routes will fail")

    app = FastAPI(
        title=settings.project_name,
        description="Backend API service for classrooms, assignments and grading.",
        version=settings.version,
    )

    engine = create_db_engine(settings)
    init_db(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.credential_store = CredentialStore.from_settings(settings)
    app.state.blob_store = LocalBlobStore(settings.upload_dir)

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register route handlers
    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(user.router, prefix=settings.api_prefix)
    app.include_router(class_route.router, prefix=settings.api_prefix)
    app.include_router(assignment.router, prefix=settings.api_prefix)
    app.include_router(submission.router, prefix=settings.api_prefix)

    @app.get("/", summary="API root", tags=["Info"])
    def root() -> dict:
        """API root path, returns API information and documentation links.

        Returns:
            Dictionary with API information and documentation links.
        """
        return {
            "name": settings.project_name,
            "version": settings.version,
            "description": "Backend API service for classrooms, assignments and grading.",
            "docs": {
                "swagger": "/docs",
                "redoc": "/redoc",
            },
            "health": "/api/health",
        }

    @app.get("/api/health", summary="Health check", tags=["Health"])
    def health() -> dict:
        """Health check endpoint.

        Returns:
            Dictionary with status "ok".
        """
        return {"status": "ok"}

    logger.info("%s %s ready", settings.project_name, settings.version)
    return app


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    print(f"Starting Sun Class API at {server_url}")
    print(f"API docs: {server_url}/docs")
    uvicorn.run("app:create_app", factory=True, host=API_HOST, port=API_PORT, reload=True)
