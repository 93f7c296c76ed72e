"""
Integration tests for the daemon lifecycle.
"""
import asyncio

from conftest import FakeGateway, FakePublisher, FakeSession, make_inspect
from mqdockerup.MANAGERS.inventory import InventoryStore
from mqdockerup.MANAGERS.service_context import ServiceContext
from mqdockerup.MANAGERS.supervisor import Supervisor
from mqdockerup.MODELS.config import AppConfig, RuntimeConfig


class BlockingStreamGateway(FakeGateway):
    """Event stream that stays open until cancelled."""

    async def stream_events(self):
        await asyncio.Event().wait()
        yield b""


def _context(gateway, publisher, grace=2.0):
    config = AppConfig(runtime=RuntimeConfig(shutdown_grace=grace))
    inventory = InventoryStore(":memory:")
    return ServiceContext.create(config, gateway=gateway, publisher=publisher, inventory=inventory, session=FakeSession())


def test_stream_end_stops_with_error():
    gateway = FakeGateway()
    publisher = FakePublisher()

    async def scenario():
        context = await _context(gateway, publisher)
        return await Supervisor(context).run(), context

    exit_code, context = asyncio.run(scenario())
    assert exit_code == 1
    assert publisher.closed
    assert context.session.closed
    assert ("close",) in gateway.calls


def test_shutdown_request_aborts_running_updates():
    gateway = BlockingStreamGateway()
    gateway.add_container(make_inspect("1" * 64, "web", "nginx:1.25"))
    publisher = FakePublisher()

    async def scenario():
        context = await _context(gateway, publisher)
        context.updating.add("1" * 64)
        supervisor = Supervisor(context)
        asyncio.get_running_loop().call_later(0.05, supervisor.request_shutdown, 0)
        return await supervisor.run()

    assert asyncio.run(scenario()) == 0
    assert publisher.of("abort") == [("abort", "1" * 64)]
    assert publisher.closed


def test_first_shutdown_request_wins():
    gateway = BlockingStreamGateway()
    publisher = FakePublisher()

    async def scenario():
        supervisor = Supervisor(await _context(gateway, publisher))
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, supervisor.request_shutdown, 0)
        loop.call_later(0.02, supervisor.request_shutdown, 1)
        return await supervisor.run()

    assert asyncio.run(scenario()) == 0


def test_publisher_close_timeout_is_tolerated(caplog):
    gateway = BlockingStreamGateway()
    publisher = FakePublisher(close_delay=1.0)

    async def scenario():
        context = await _context(gateway, publisher, grace=0.05)
        supervisor = Supervisor(context)
        asyncio.get_running_loop().call_later(0.02, supervisor.request_shutdown, 0)
        return await supervisor.run(), context

    exit_code, context = asyncio.run(scenario())
    assert exit_code == 0
    assert not publisher.closed
    assert "did not close" in caplog.text
    assert context.session.closed


def test_periodic_checks_run_on_start():
    gateway = BlockingStreamGateway()
    gateway.add_container(make_inspect("1" * 64, "web", "nginx:1.25"))
    publisher = FakePublisher()

    async def scenario():
        supervisor = Supervisor(await _context(gateway, publisher))
        asyncio.get_running_loop().call_later(0.1, supervisor.request_shutdown, 0)
        return await supervisor.run()

    asyncio.run(scenario())
    assert ("config", "1" * 64) in publisher.calls
    assert publisher.of("image_state")
