"""API routes for droplet provisioning."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from claw_shared.errors import (
    ConfigurationError,
    DropletError,
    NotFoundError,
    ProviderError,
)
from claw_shared.logging import get_logger
from claw_shared.models import CreateDropletResponse, Droplet, ErrorResponse
from claw_shared.provisioner import DropletProvisioner

router = APIRouter(tags=["Droplets"])
logger = get_logger(__name__)


def get_provisioner(request: Request) -> DropletProvisioner:
    return request.app.state.provisioner


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "",
    response_model=CreateDropletResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={500: {"model": ErrorResponse}},
    summary="Create a droplet",
    description="Create a droplet and poll it in the background until it is active",
)
async def create_droplet(request: Request):
    """
    Create a new droplet.

    Returns as soon as the provider accepts the request; readiness is
    reported by the status endpoint.
    """
    provisioner = get_provisioner(request)

    try:
        return await provisioner.create_droplet()
    except (ConfigurationError, ProviderError) as e:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)
    except DropletError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create droplet")


@router.get(
    "/{droplet_id}",
    response_model=Droplet,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Get droplet status",
    description="Return the last known state of a droplet, refreshed from DigitalOcean until it is ready",
)
async def get_droplet(droplet_id: int, request: Request):
    """Get the status of a droplet."""
    provisioner = get_provisioner(request)

    try:
        return await provisioner.get_droplet(droplet_id)
    except NotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, "Droplet not found")
    except DropletError as e:
        logger.error("Droplet lookup failed", droplet_id=droplet_id, error=e.message)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch droplet")
