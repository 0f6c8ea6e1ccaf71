"""Droplet creation and status lookups."""

import asyncio
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional

from claw_shared.errors import ConvergenceTimeout, DropletError
from claw_shared.logging import bind_droplet_id, get_logger
from claw_shared.models import CreateDropletResponse, Droplet, DropletCreateRequest
from claw_shared.poller import ConvergencePoller
from claw_shared.registry import DropletRegistry

logger = get_logger(__name__)

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class DropletConfig:
    """Fixed parameters of every droplet this service creates."""
    region: str = "nyc1"
    size: str = "s-2vcpu-4gb"
    image: str = "moltbot"
    ssh_keys: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=lambda: ["openclaw"])
    backups: bool = False
    ipv6: bool = True
    monitoring: bool = True


def to_base36(value: int) -> str:
    """Render a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


class DropletProvisioner:
    """
    Creates droplets, tracks them in a registry and answers status queries.

    One background poller task is kept per droplet id. Handles of running
    pollers stay in ``_tasks`` so callers can await or cancel them.
    """

    def __init__(
        self,
        client,
        registry: DropletRegistry,
        poller: ConvergencePoller,
        config: Optional[DropletConfig] = None,
        name_prefix: str = "openclaw",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the provisioner.

        Args:
            client: Provider client exposing ``create_droplet`` and ``get_droplet``
            registry: Registry shared with the poller
            poller: Convergence poller run for each new droplet
            config: Droplet parameters (default: DropletConfig())
            name_prefix: Prefix of generated droplet names
            clock: Wall clock in seconds, used for name suffixes
        """
        self.client = client
        self.registry = registry
        self.poller = poller
        self.config = config or DropletConfig()
        self.name_prefix = name_prefix
        self._clock = clock
        self._last_stamp = -1
        self._tasks: Dict[int, asyncio.Task] = {}

    def next_name(self) -> str:
        """Generate a droplet name that is unique for this process."""
        stamp = max(int(self._clock() * 1000), self._last_stamp + 1)
        self._last_stamp = stamp
        return f"{self.name_prefix}-{to_base36(stamp)}"

    def _build_request(self, name: str) -> DropletCreateRequest:
        return DropletCreateRequest(
            name=name,
            region=self.config.region,
            size=self.config.size,
            image=self.config.image,
            ssh_keys=list(self.config.ssh_keys),
            backups=self.config.backups,
            ipv6=self.config.ipv6,
            monitoring=self.config.monitoring,
            tags=list(self.config.tags),
        )

    async def create_droplet(self) -> CreateDropletResponse:
        """
        Create a droplet and start following it in the background.

        Returns:
            CreateDropletResponse: id and name of the accepted droplet

        Raises:
            ConfigurationError: If no provider token is configured
            ProviderError: If the provider rejects the request
            TransportError: If the provider cannot be reached
        """
        name = self.next_name()
        request = self._build_request(name)

        try:
            droplet_id = await self.client.create_droplet(request)
        except DropletError as e:
            logger.error(
                "Droplet creation failed",
                name=name,
                error_type=type(e).__name__,
                error=e.message,
            )
            raise

        logger.info("Droplet created", droplet_id=droplet_id, name=name)

        self.registry.set(droplet_id, Droplet.placeholder(droplet_id, name))
        self.start_polling(droplet_id)

        return CreateDropletResponse(id=droplet_id, name=name)

    async def get_droplet(self, droplet_id: int) -> Droplet:
        """
        Return the best known state of a droplet.

        Converged droplets are served from the registry. Anything else is
        fetched from the provider and the registry is refreshed with it.

        Raises:
            NotFoundError: If the provider does not know the droplet
            ProviderError: If the provider lookup fails
            TransportError: If the provider cannot be reached
        """
        cached = self.registry.get(droplet_id)
        if cached is not None and cached.is_ready:
            return cached

        droplet = await self.client.get_droplet(droplet_id)
        self.registry.set(droplet_id, droplet)
        return droplet

    def start_polling(self, droplet_id: int) -> asyncio.Task:
        """Spawn the poller for a droplet unless one is already running."""
        task = self._tasks.get(droplet_id)
        if task is not None and not task.done():
            return task

        task = asyncio.create_task(
            self._poll(droplet_id), name=f"poll-droplet-{droplet_id}"
        )
        task.add_done_callback(partial(self._on_poll_done, droplet_id))
        self._tasks[droplet_id] = task
        return task

    async def _poll(self, droplet_id: int) -> Optional[Droplet]:
        bind_droplet_id(droplet_id)
        try:
            return await self.poller.run(droplet_id)
        except ConvergenceTimeout:
            # Visible to readers as status "error"
            return None

    def _on_poll_done(self, droplet_id: int, task: asyncio.Task) -> None:
        # Finished pollers are forgotten; their outcome lives in the registry
        if self._tasks.get(droplet_id) is task:
            del self._tasks[droplet_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Droplet poller crashed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    def poller_task(self, droplet_id: int) -> Optional[asyncio.Task]:
        return self._tasks.get(droplet_id)

    @property
    def active_pollers(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def shutdown(self) -> None:
        """Cancel pollers that are still running."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Cancelled droplet pollers", count=len(pending))
