"""Error taxonomy for droplet provisioning."""

from typing import Optional


class DropletError(Exception):
    """Base class for provisioning failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(DropletError):
    """The provider credential is missing."""


class ProviderError(DropletError):
    """The provider rejected a request or answered with an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(DropletError):
    """The provider could not be reached."""


class NotFoundError(DropletError):
    """The provider has no droplet with the requested id."""

    def __init__(self, droplet_id: int):
        super().__init__(f"Droplet {droplet_id} not found")
        self.droplet_id = droplet_id


class ConvergenceTimeout(DropletError):
    """A droplet never became active with a public address."""

    def __init__(self, droplet_id: int, attempts: int):
        super().__init__(f"Droplet {droplet_id} timed out after {attempts} attempts")
        self.droplet_id = droplet_id
        self.attempts = attempts
