"""Shared pytest fixtures: a scripted DigitalOcean stub and a virtual clock."""

import asyncio
from typing import List, Optional

import pytest

from claw_shared.errors import NotFoundError
from claw_shared.models import Droplet, DropletStatus


class StubDigitalOcean:
    """
    Stand-in for DigitalOceanClient.

    ``snapshots`` are returned by successive ``get_droplet`` calls; an
    exception in the list is raised instead, and the last item repeats.
    """

    def __init__(
        self,
        droplet_id: int = 1001,
        snapshots: Optional[List] = None,
        create_error: Optional[Exception] = None,
    ):
        self.droplet_id = droplet_id
        self.snapshots = list(snapshots or [])
        self.create_error = create_error
        self.create_calls = []
        self.get_calls = []

    async def create_droplet(self, request):
        self.create_calls.append(request)
        if self.create_error is not None:
            raise self.create_error
        return self.droplet_id

    async def get_droplet(self, droplet_id):
        self.get_calls.append(droplet_id)
        if not self.snapshots:
            raise NotFoundError(droplet_id)
        item = self.snapshots[min(len(self.get_calls), len(self.snapshots)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


class VirtualSleep:
    """Records requested delays and only yields to the event loop."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def make_droplet(
    droplet_id: int = 1001,
    status: DropletStatus = DropletStatus.NEW,
    ip: Optional[str] = None,
    name: str = "openclaw-test",
) -> Droplet:
    return Droplet(
        id=droplet_id,
        name=name,
        status=status,
        ip=ip,
        region="nyc1",
        memory=4096,
        vcpus=2,
        disk=80,
    )


@pytest.fixture
def stub_provider():
    """Factory for scripted provider stubs."""
    return StubDigitalOcean


@pytest.fixture
def droplet():
    """Factory for droplet snapshots."""
    return make_droplet


@pytest.fixture
def virtual_sleep():
    return VirtualSleep()
