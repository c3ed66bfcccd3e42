from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from notesauth.app import App
from notesauth.config import Config
from notesauth.errors import UserError
from notesauth.web.csrf import CSRF_HEADER, CSRFMiddleware
from notesauth.web.error_handlers import general_exception_handler, request_validation_error_handler, user_error_handler
from notesauth.web.middleware import AuthenticateMiddleware
from notesauth.web.openapi import set_custom_openapi
from notesauth.web.routers import auth_router, csrf_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="notesauth API",
        lifespan=lifespan,
        openapi_tags=[],  # Tags will be added by custom OpenAPI function
    )
    app.state.app = app_instance
    app.state.config = config

    # Middleware added last runs first: Authenticate -> CSRF -> routes.
    # Authenticate is always installed here, require_auth depends on it.
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(AuthenticateMiddleware, notes_app=app_instance)

    # Add CORS middleware for frontend development
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["Content-Type", CSRF_HEADER],
        )

    # Health check endpoint (at root level, not versioned)
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(csrf_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")

    # Register error handlers
    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
