"""API routes for the droplet API."""

from claw_api.routes.droplets import router as droplets_router

__all__ = ["droplets_router"]
