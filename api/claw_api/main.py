"""Main FastAPI application module."""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from claw_api.config import Settings, get_settings
from claw_api.routes import droplets_router
from claw_shared.digitalocean import DigitalOceanClient
from claw_shared.logging import bind_request_id, clear_request_id, get_logger, setup_logging
from claw_shared.poller import ConvergencePoller
from claw_shared.provisioner import DropletConfig, DropletProvisioner
from claw_shared.registry import DropletRegistry

logger = get_logger(__name__)


def build_provisioner(settings: Settings) -> DropletProvisioner:
    """
    Wire the provider client, registry and poller from settings.

    Args:
        settings: Application settings

    Returns:
        DropletProvisioner: Provisioner owning a fresh registry
    """
    client = DigitalOceanClient(
        api_token=settings.do_api_token,
        base_url=settings.do_api_base_url,
    )
    registry = DropletRegistry()
    poller = ConvergencePoller(
        client,
        registry,
        interval_seconds=settings.poll_interval_seconds,
        max_attempts=settings.poll_max_attempts,
    )
    config = DropletConfig(
        region=settings.do_region,
        size=settings.droplet_size,
        image=settings.droplet_image,
        ssh_keys=settings.ssh_key_ids,
        tags=[settings.droplet_tag],
    )
    return DropletProvisioner(
        client,
        registry,
        poller,
        config=config,
        name_prefix=settings.droplet_name_prefix,
    )


def create_app(
    settings: Optional[Settings] = None,
    provisioner: Optional[DropletProvisioner] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (default: get_settings())
        provisioner: Pre-built provisioner, mainly for tests

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    provisioner = provisioner or build_provisioner(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        FastAPI lifespan context manager for startup and shutdown events.

        Args:
            app: The FastAPI application instance
        """
        logger.info("Starting API", version=app.version, region=settings.do_region)
        if not settings.do_api_token:
            logger.warning("DO_API_TOKEN not set, droplet creation will fail")

        try:
            yield
        finally:
            await app.state.provisioner.shutdown()
            logger.info("Shutting down API")

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.provisioner = provisioner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next):
        """
        Middleware to add request ID to each request for tracing.

        Args:
            request: FastAPI request
            call_next: Next middleware or route handler

        Returns:
            Response from the next middleware or route handler
        """
        request_id = str(uuid.uuid4())
        bind_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_id()

    @app.get("/healthz", tags=["Health"])
    async def health_check(request: Request) -> JSONResponse:
        """
        Health check endpoint.

        Returns:
            JSONResponse: Status of the API and its droplet bookkeeping
        """
        current = request.app.state.provisioner
        return JSONResponse(
            content={
                "status": "ok",
                "token_configured": bool(settings.do_api_token),
                "tracked_droplets": len(current.registry),
                "active_pollers": current.active_pollers,
            }
        )

    app.include_router(droplets_router, prefix="/api/droplets")
    app.include_router(droplets_router, prefix="/resources", include_in_schema=False)

    return app


setup_logging(level=get_settings().log_level, json_format=get_settings().log_json)
app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run("claw_api.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
