"""Shared provisioning core for the OpenClaw droplet service."""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    ConvergenceTimeout,
    DropletError,
    NotFoundError,
    ProviderError,
    TransportError,
)
from .models import CreateDropletResponse, Droplet, DropletCreateRequest, DropletStatus
from .digitalocean import DigitalOceanClient
from .registry import DropletRegistry
from .poller import ConvergencePoller
from .provisioner import DropletConfig, DropletProvisioner
