"""Background convergence polling for newly created droplets."""

import asyncio
from typing import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from claw_shared.errors import ConvergenceTimeout, DropletError
from claw_shared.logging import get_logger
from claw_shared.models import Droplet, DropletStatus
from claw_shared.registry import DropletRegistry

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_ATTEMPTS = 60

Sleep = Callable[[float], Awaitable[None]]


def _not_ready(droplet: Droplet) -> bool:
    return not droplet.is_ready


def _mark_error(droplet: Droplet) -> Droplet:
    return droplet.model_copy(update={"status": DropletStatus.ERROR})


class ConvergencePoller:
    """
    Drives one droplet at a time towards ``active`` with a public IP.

    Each attempt fetches the droplet and writes whatever the provider
    returned into the registry. Attempts are spaced ``interval_seconds``
    apart and capped at ``max_attempts``; after that the registry entry is
    flagged ``error`` and ``ConvergenceTimeout`` is raised.
    """

    def __init__(
        self,
        client,
        registry: DropletRegistry,
        interval_seconds: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the poller.

        Args:
            client: Provider client exposing ``async get_droplet(id)``
            registry: Registry receiving every fetched snapshot
            interval_seconds: Delay between attempts
            max_attempts: Number of fetches before giving up
            sleep: Awaitable delay, replaceable to fast-forward in tests
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.client = client
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def _observe(self, droplet_id: int) -> Droplet:
        droplet = await self.client.get_droplet(droplet_id)
        self.registry.set(droplet_id, droplet)
        return droplet

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        droplet_id = retry_state.args[0]
        outcome = retry_state.outcome
        if outcome.failed:
            logger.warning(
                "Droplet poll error",
                droplet_id=droplet_id,
                attempt=retry_state.attempt_number,
                error=str(outcome.exception()),
            )
        else:
            logger.debug(
                "Droplet not ready yet",
                droplet_id=droplet_id,
                attempt=retry_state.attempt_number,
                status=outcome.result().status.value,
            )

    async def run(self, droplet_id: int) -> Droplet:
        """
        Poll until the droplet converges or the attempt budget runs out.

        Args:
            droplet_id: Droplet to follow

        Returns:
            Droplet: The ready snapshot

        Raises:
            ConvergenceTimeout: If every attempt failed or saw a non-ready droplet
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.interval_seconds),
            retry=retry_if_exception_type(DropletError) | retry_if_result(_not_ready),
            before_sleep=self._log_attempt,
            sleep=self._sleep,
        )

        try:
            droplet = await retrying(self._observe, droplet_id)
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            self.registry.update(droplet_id, _mark_error)
            logger.error(
                "Droplet timed out",
                droplet_id=droplet_id,
                attempts=attempts,
            )
            raise ConvergenceTimeout(droplet_id, attempts) from e

        logger.info("Droplet is active", droplet_id=droplet_id, ip=droplet.ip)
        return droplet
