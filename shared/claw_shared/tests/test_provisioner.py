"""Tests for droplet creation and status queries."""

import asyncio

import pytest
import structlog

from claw_shared.errors import (
    ConfigurationError,
    NotFoundError,
    ProviderError,
    TransportError,
)
from claw_shared.models import DropletStatus
from claw_shared.poller import ConvergencePoller
from claw_shared.provisioner import DropletConfig, DropletProvisioner, to_base36
from claw_shared.registry import DropletRegistry


def build(provider, sleep, max_attempts=60, clock=None):
    registry = DropletRegistry()
    poller = ConvergencePoller(provider, registry, max_attempts=max_attempts, sleep=sleep)
    kwargs = {"clock": clock} if clock else {}
    provisioner = DropletProvisioner(
        provider,
        registry,
        poller,
        config=DropletConfig(region="sfo3", ssh_keys=["111", "222"]),
        **kwargs,
    )
    return provisioner, registry


class TestNames:
    """Test droplet name generation."""

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"
        assert to_base36(1700000000000) == "loyw3v28"

    def test_names_unique_within_same_millisecond(self, stub_provider, virtual_sleep):
        provisioner, _ = build(stub_provider(), virtual_sleep, clock=lambda: 1700000000.0)

        names = {provisioner.next_name() for _ in range(5)}

        assert len(names) == 5
        assert all(name.startswith("openclaw-") for name in names)


class TestCreateDroplet:
    """Test the creation path."""

    @pytest.mark.asyncio
    async def test_registers_placeholder_and_returns(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider(
            droplet_id=4242, snapshots=[droplet(4242, DropletStatus.ACTIVE, "198.51.100.4")]
        )
        provisioner, registry = build(provider, virtual_sleep)

        response = await provisioner.create_droplet()

        assert response.id == 4242
        assert response.status == "provisioning"
        assert response.name.startswith("openclaw-")
        placeholder = registry.get(4242)
        assert placeholder.status == DropletStatus.NEW
        assert placeholder.ip is None
        assert placeholder.name == response.name

        await provisioner.poller_task(4242)
        assert registry.get(4242).ip == "198.51.100.4"

    @pytest.mark.asyncio
    async def test_create_request_body(self, stub_provider, virtual_sleep):
        provider = stub_provider(snapshots=[])
        provisioner, _ = build(provider, virtual_sleep, max_attempts=1)

        response = await provisioner.create_droplet()
        await provisioner.poller_task(provider.droplet_id)

        request = provider.create_calls[0]
        assert request.name == response.name
        assert request.region == "sfo3"
        assert request.size == "s-2vcpu-4gb"
        assert request.image == "moltbot"
        assert request.ssh_keys == ["111", "222"]
        assert request.backups is False
        assert request.ipv6 is True
        assert request.monitoring is True
        assert request.tags == ["openclaw"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("DO_API_TOKEN not configured"),
            ProviderError("You specified an invalid size", status_code=422),
            TransportError("Failed to reach DigitalOcean"),
        ],
    )
    async def test_failure_registers_nothing(self, stub_provider, virtual_sleep, error):
        provider = stub_provider(create_error=error)
        provisioner, registry = build(provider, virtual_sleep)

        with pytest.raises(type(error)):
            await provisioner.create_droplet()

        assert len(registry) == 0
        assert provisioner.poller_task(provider.droplet_id) is None
        assert provider.get_calls == []

    @pytest.mark.asyncio
    async def test_timeout_is_not_raised_to_caller(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider(snapshots=[droplet(status=DropletStatus.NEW)])
        provisioner, registry = build(provider, virtual_sleep, max_attempts=5)

        await provisioner.create_droplet()
        result = await provisioner.poller_task(1001)

        assert result is None
        assert len(provider.get_calls) == 5
        assert registry.get(1001).status == DropletStatus.ERROR
        assert provisioner.active_pollers == 0
        assert provisioner.poller_task(1001) is None

    @pytest.mark.asyncio
    async def test_one_poller_per_droplet(self, stub_provider, droplet):
        provider = stub_provider(snapshots=[droplet(status=DropletStatus.NEW)])
        gate = asyncio.Event()

        async def blocked_sleep(delay):
            await gate.wait()

        provisioner, _ = build(provider, blocked_sleep)
        await provisioner.create_droplet()
        first = provisioner.poller_task(1001)

        assert provisioner.start_polling(1001) is first
        assert provisioner.active_pollers == 1

        await provisioner.shutdown()
        assert first.cancelled()
        assert provisioner.active_pollers == 0

    @pytest.mark.asyncio
    async def test_poller_logs_carry_droplet_id(self, stub_provider, droplet):
        provider = stub_provider(
            snapshots=[
                droplet(status=DropletStatus.NEW),
                droplet(status=DropletStatus.ACTIVE, ip="198.51.100.3"),
            ]
        )
        bound = []

        async def capturing_sleep(delay):
            bound.append(structlog.contextvars.get_contextvars().get("droplet_id"))

        provisioner, _ = build(provider, capturing_sleep)
        await provisioner.create_droplet()
        await provisioner.poller_task(1001)

        assert bound == [1001]
        assert "droplet_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_finished_poller_is_forgotten(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider(snapshots=[droplet(status=DropletStatus.ACTIVE, ip="198.51.100.6")])
        provisioner, _ = build(provider, virtual_sleep)

        await provisioner.create_droplet()
        task = provisioner.poller_task(1001)
        result = await task

        assert result.is_ready
        assert provisioner.poller_task(1001) is None
        assert provisioner.start_polling(1001) is not task
        await provisioner.shutdown()


class TestGetDroplet:
    """Test the status query path."""

    @pytest.mark.asyncio
    async def test_ready_cache_skips_provider(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider()
        provisioner, registry = build(provider, virtual_sleep)
        registry.set(1001, droplet(status=DropletStatus.ACTIVE, ip="198.51.100.9"))

        result = await provisioner.get_droplet(1001)

        assert result.ip == "198.51.100.9"
        assert provider.get_calls == []

    @pytest.mark.asyncio
    async def test_converging_entry_is_refreshed(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider(snapshots=[droplet(status=DropletStatus.ACTIVE)])
        provisioner, registry = build(provider, virtual_sleep)
        registry.set(1001, droplet(status=DropletStatus.NEW))

        result = await provisioner.get_droplet(1001)

        assert result.status == DropletStatus.ACTIVE
        assert registry.get(1001).status == DropletStatus.ACTIVE
        assert provider.get_calls == [1001]

    @pytest.mark.asyncio
    async def test_errored_entry_can_be_refreshed(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider(snapshots=[droplet(status=DropletStatus.ACTIVE, ip="198.51.100.2")])
        provisioner, registry = build(provider, virtual_sleep)
        registry.set(1001, droplet(status=DropletStatus.ERROR))

        result = await provisioner.get_droplet(1001)

        assert result.is_ready
        assert registry.get(1001).is_ready

    @pytest.mark.asyncio
    async def test_unknown_droplet(self, stub_provider, virtual_sleep):
        provider = stub_provider(snapshots=[])
        provisioner, registry = build(provider, virtual_sleep)

        with pytest.raises(NotFoundError):
            await provisioner.get_droplet(555)

        assert 555 not in registry

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_cache(self, stub_provider, droplet, virtual_sleep):
        provider = stub_provider(snapshots=[TransportError("down")])
        provisioner, registry = build(provider, virtual_sleep)
        registry.set(1001, droplet(status=DropletStatus.NEW))

        with pytest.raises(TransportError):
            await provisioner.get_droplet(1001)

        assert registry.get(1001).status == DropletStatus.NEW
