"""Async DigitalOcean REST client."""

from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from claw_shared.errors import (
    ConfigurationError,
    NotFoundError,
    ProviderError,
    TransportError,
)
from claw_shared.logging import get_logger
from claw_shared.models import Droplet, DropletCreateRequest

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.digitalocean.com/v2"
DEFAULT_TIMEOUT = 30.0


class DigitalOceanClient:
    """Thin client over the droplet endpoints of the DigitalOcean API."""

    def __init__(
        self,
        api_token: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            api_token: Bearer token; creation and lookups fail without it
            base_url: API root (default: public v2 endpoint)
            timeout_seconds: Per-request timeout
        """
        self.api_token = api_token or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    def _headers(self) -> Dict[str, str]:
        if not self.configured:
            raise ConfigurationError("DO_API_TOKEN not configured")
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method, f"{self.base_url}{path}", json=json, headers=headers
                )
        except httpx.RequestError as e:
            logger.error("DigitalOcean request failed", method=method, path=path, error=str(e))
            raise TransportError(f"Failed to reach DigitalOcean: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response, fallback: str) -> str:
        """Pull the provider's ``message`` out of an error body."""
        try:
            body = response.json()
        except ValueError:
            return fallback
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return fallback

    async def create_droplet(self, request: DropletCreateRequest) -> int:
        """
        Ask the provider to create a droplet.

        Args:
            request: Create body

        Returns:
            int: Provider-assigned droplet id

        Raises:
            ConfigurationError: If no token is configured
            ProviderError: If the provider rejects the request
            TransportError: If the provider cannot be reached
        """
        response = await self._request("POST", "/droplets", json=request.model_dump())

        if not response.is_success:
            message = self._error_message(response, "Failed to create droplet")
            logger.error(
                "DigitalOcean create failed",
                name=request.name,
                status_code=response.status_code,
                error=message,
            )
            raise ProviderError(message, status_code=response.status_code)

        try:
            return int(response.json()["droplet"]["id"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProviderError(
                "Failed to create droplet", status_code=response.status_code
            ) from e

    async def get_droplet(self, droplet_id: int) -> Droplet:
        """
        Fetch the current state of a droplet.

        Args:
            droplet_id: Provider-assigned id

        Returns:
            Droplet: Fresh snapshot

        Raises:
            NotFoundError: If the provider answers 404
            ProviderError: For any other non-success answer
            TransportError: If the provider cannot be reached
        """
        response = await self._request("GET", f"/droplets/{droplet_id}")

        if response.status_code == 404:
            raise NotFoundError(droplet_id)
        if not response.is_success:
            raise ProviderError(
                self._error_message(response, "Failed to fetch droplet"),
                status_code=response.status_code,
            )

        try:
            return Droplet.from_api(response.json()["droplet"])
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ProviderError(
                "Failed to fetch droplet", status_code=response.status_code
            ) from e
