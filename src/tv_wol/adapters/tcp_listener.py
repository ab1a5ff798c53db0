import asyncio
import logging

from tv_wol.domain.events import ConnectionEvent

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024


class BindError(Exception):
    pass


class ConnectionListener:
    def __init__(
        self,
        events: asyncio.Queue[ConnectionEvent],
        host: str = "0.0.0.0",
        port: int = 0,
        idle_timeout_seconds: float = 0.0,
    ) -> None:
        self._events = events
        self._host = host
        self._port = port
        self._idle_timeout_seconds = idle_timeout_seconds
        self._server: asyncio.Server | None = None
        self._writers: set[asyncio.StreamWriter] = set()

    @property
    def address(self) -> tuple[str, int]:
        if not self._server or not self._server.sockets:
            raise RuntimeError("Listener is not bound")
        host, port = self._server.sockets[0].getsockname()[:2]
        return host, port

    async def start(self) -> None:
        try:
            self._server = await asyncio.start_server(
                self._watch_connection,
                host=self._host,
                port=self._port,
            )
        except OSError as exc:
            raise BindError(f"Unable to listen on {self._host}:{self._port}: {exc}") from exc
        host, port = self.address
        logger.info("Listening on %s:%d", host, port)

    async def serve_forever(self) -> None:
        if not self._server:
            raise RuntimeError("Listener is not bound")
        await self._server.serve_forever()

    def close_connections(self) -> None:
        """Stop accepting and close every open client connection.

        Watchers see end-of-stream and emit their DISCONNECTED events, which
        lets a cancelled ``serve_forever()`` finish waiting on the server.
        """
        if self._server:
            self._server.close()
        for writer in list(self._writers):
            writer.close()

    async def stop(self) -> None:
        if self._server:
            self.close_connections()
            await self._server.wait_closed()
            self._server = None

    async def _watch_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peer = writer.get_extra_info("peername")
        self._writers.add(writer)
        self._events.put_nowait(ConnectionEvent.CONNECTED)
        logger.debug("Connection from %s", peer)
        try:
            while True:
                if self._idle_timeout_seconds > 0:
                    data = await asyncio.wait_for(
                        reader.read(READ_CHUNK_SIZE),
                        timeout=self._idle_timeout_seconds,
                    )
                else:
                    data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    break
        except asyncio.TimeoutError:
            logger.info("Closing idle connection from %s", peer)
        except OSError as exc:
            logger.debug("Connection from %s failed: %s", peer, exc)
        finally:
            self._events.put_nowait(ConnectionEvent.DISCONNECTED)
            self._writers.discard(writer)
            logger.debug("Disconnected %s", peer)
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
