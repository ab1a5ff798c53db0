import asyncio
import socket
import struct

import pytest
import pytest_asyncio

from tv_wol.adapters.tcp_listener import BindError, ConnectionListener
from tv_wol.domain.events import ConnectionEvent

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from conftest import wait_for_events

CONNECTED = ConnectionEvent.CONNECTED
DISCONNECTED = ConnectionEvent.DISCONNECTED


@pytest_asyncio.fixture
async def listener():
    events: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
    listener = ConnectionListener(events, host="127.0.0.1", port=0)
    await listener.start()
    yield listener
    await listener.stop()


def queue_of(listener: ConnectionListener) -> asyncio.Queue[ConnectionEvent]:
    return listener._events


class TestConnectionListener:
    @pytest.mark.asyncio
    async def test_start_resolves_ephemeral_port(self, listener):
        host, port = listener.address
        assert host == "127.0.0.1"
        assert port > 0

    @pytest.mark.asyncio
    async def test_address_before_start_raises(self):
        listener = ConnectionListener(asyncio.Queue())
        with pytest.raises(RuntimeError):
            listener.address

    @pytest.mark.asyncio
    async def test_bind_failure_raises_bind_error(self, listener):
        _, port = listener.address
        second = ConnectionListener(asyncio.Queue(), host="127.0.0.1", port=port)
        with pytest.raises(BindError):
            await second.start()

    @pytest.mark.asyncio
    async def test_connect_then_close_emits_both_events(self, listener):
        reader, writer = await asyncio.open_connection(*listener.address)
        assert await wait_for_events(queue_of(listener), 1) == [CONNECTED]

        writer.close()
        await writer.wait_closed()
        assert await wait_for_events(queue_of(listener), 1) == [DISCONNECTED]

    @pytest.mark.asyncio
    async def test_data_is_discarded_until_close(self, listener):
        reader, writer = await asyncio.open_connection(*listener.address)
        assert await wait_for_events(queue_of(listener), 1) == [CONNECTED]

        writer.write(b"GET / HTTP/1.1\r\n\r\n" * 200)
        await writer.drain()
        await asyncio.sleep(0.05)
        assert queue_of(listener).empty()

        writer.close()
        await writer.wait_closed()
        assert await wait_for_events(queue_of(listener), 1) == [DISCONNECTED]

    @pytest.mark.asyncio
    async def test_concurrent_connections_each_report_once(self, listener):
        clients = [await asyncio.open_connection(*listener.address) for _ in range(5)]
        events = await wait_for_events(queue_of(listener), 5)
        assert events == [CONNECTED] * 5

        for _, writer in clients:
            writer.close()
            await writer.wait_closed()
        events = await wait_for_events(queue_of(listener), 5)
        assert events == [DISCONNECTED] * 5
        await asyncio.sleep(0.05)
        assert queue_of(listener).empty()

    @pytest.mark.asyncio
    async def test_reset_right_after_accept_still_emits_both(self, listener):
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setblocking(False)
        await loop.sock_connect(sock, listener.address)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
        sock.close()

        events = await wait_for_events(queue_of(listener), 2)
        assert events == [CONNECTED, DISCONNECTED]

    @pytest.mark.asyncio
    async def test_stop_closes_open_connections(self, listener):
        reader, writer = await asyncio.open_connection(*listener.address)
        assert await wait_for_events(queue_of(listener), 1) == [CONNECTED]

        await asyncio.wait_for(listener.stop(), timeout=2.0)
        assert await wait_for_events(queue_of(listener), 1) == [DISCONNECTED]
        writer.close()

    @pytest.mark.asyncio
    async def test_serve_forever_ends_when_stopped(self, listener):
        serving = asyncio.create_task(listener.serve_forever())
        await asyncio.sleep(0.01)
        await listener.stop()
        await asyncio.wait([serving], timeout=2.0)
        assert serving.done()

    @pytest.mark.asyncio
    async def test_cancelled_serve_forever_ends_after_closing_connections(self, listener):
        serving = asyncio.create_task(listener.serve_forever())
        reader, writer = await asyncio.open_connection(*listener.address)
        assert await wait_for_events(queue_of(listener), 1) == [CONNECTED]

        serving.cancel()
        listener.close_connections()
        await asyncio.wait([serving], timeout=2.0)
        assert serving.done()
        assert await wait_for_events(queue_of(listener), 1) == [DISCONNECTED]
        writer.close()


class TestIdleTimeout:
    @pytest.mark.asyncio
    async def test_silent_connection_closed_after_timeout(self):
        events: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        listener = ConnectionListener(events, host="127.0.0.1", port=0, idle_timeout_seconds=0.1)
        await listener.start()
        try:
            reader, writer = await asyncio.open_connection(*listener.address)
            assert await wait_for_events(events, 2) == [CONNECTED, DISCONNECTED]
            assert await asyncio.wait_for(reader.read(), timeout=2.0) == b""
            writer.close()
        finally:
            await listener.stop()

    @pytest.mark.asyncio
    async def test_no_timeout_by_default(self, listener):
        reader, writer = await asyncio.open_connection(*listener.address)
        assert await wait_for_events(queue_of(listener), 1) == [CONNECTED]
        await asyncio.sleep(0.2)
        assert queue_of(listener).empty()
        writer.close()
        await writer.wait_closed()
        assert await wait_for_events(queue_of(listener), 1) == [DISCONNECTED]
