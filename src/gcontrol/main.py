"""Application definition for gcontrol."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version

import structlog
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from safir.fastapi import ClientRequestError, client_request_error_handler
from safir.logging import configure_uvicorn_logging
from safir.slack.webhook import SlackRouteErrorHandler

from .dependencies.config import config_dependency
from .dependencies.context import context_dependency
from .handlers import internal, login

__all__ = ["create_app", "create_openapi"]


def create_app(*, load_config: bool = True) -> FastAPI:
    """Create the FastAPI application.

    This is in a function rather than using a global variable (as is more
    typical for FastAPI) because some setup depends on configuration settings
    and we therefore want to recreate the application between tests.

    Parameters
    ----------
    load_config
        If set to `False`, do not try to load the configuration. This is used
        primarily for OpenAPI schema generation, where constructing the app is
        required but the configuration won't matter.

    Raises
    ------
    OSError
        Raised if the configuration file cannot be read.
    pydantic.ValidationError
        Raised if the configuration is invalid. gcontrol never runs with a
        partial configuration.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        config = config_dependency.config()
        await context_dependency.initialize(config)
        logger = structlog.get_logger("gcontrol")
        logger.info("gcontrol started", servers=len(config.servers))

        yield

        await context_dependency.aclose()
        logger.info("gcontrol stopped")

    app = FastAPI(
        title="gcontrol",
        description=(
            "gcontrol synchronizes Grafana organization and team membership"
            " from the group memberships of users in one or more directory"
            " servers."
        ),
        version=version("gcontrol"),
        tags_metadata=[
            {
                "name": "login",
                "description": "Routes called when a user logs in.",
            },
            {
                "name": "internal",
                "description": "Internal routes used for monitoring.",
            },
        ],
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add all of the routes.
    app.include_router(internal.router)
    app.include_router(login.router)

    # Load configuration if it is available to us and configure Uvicorn
    # logging. Loading fails loudly so that a broken configuration stops
    # startup.
    config = None
    if load_config:
        config = config_dependency.config()
        configure_uvicorn_logging()

    # Configure Slack alerts.
    if config and config.slack_alerts and config.slack_webhook:
        logger = structlog.get_logger("gcontrol")
        SlackRouteErrorHandler.initialize(
            config.slack_webhook, "gcontrol", logger
        )
        logger.debug("Initialized Slack webhook")

    # Handle exceptions descended from ClientRequestError.
    app.exception_handler(ClientRequestError)(client_request_error_handler)

    return app


def create_openapi() -> str:
    """Generate the OpenAPI schema.

    Returns
    -------
    str
        OpenAPI schema as serialized JSON.
    """
    app = create_app(load_config=False)
    schema = get_openapi(
        title=app.title,
        description=app.description,
        version=app.version,
        routes=app.routes,
    )
    return json.dumps(schema)
