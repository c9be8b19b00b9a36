"""Listener: accepts connections and runs one handler task per connection."""

import asyncio
import logging
from typing import Optional

from mockhttpd.models.config import ServerConfig
from mockhttpd.services.fault_table import FaultTable
from mockhttpd.services.handler import RequestHandler


class MockServer:
    """Fault-injecting mock HTTP server.

    Usage in a test suite:

        async with MockServer(config) as server:
            httpx.get(f"{server.base_url}/pkg-1.0.tgz")

    The fault table is built from ``config.faults`` unless one is passed in.
    """

    def __init__(self, config: ServerConfig, fault_table: Optional[FaultTable] = None):
        self.logger = logging.getLogger("mockhttpd.server")
        self.config = config
        self.fault_table = fault_table or FaultTable(config.faults)
        self.handler = RequestHandler(config, self.fault_table)
        self._server: Optional[asyncio.AbstractServer] = None
        self._bound_port: Optional[int] = None

    async def __aenter__(self) -> "MockServer":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    async def start(self) -> None:
        """Bind and start accepting connections."""
        if self.config.socket_path is not None:
            socket_path = self.config.socket_path
            if socket_path.is_socket():
                socket_path.unlink()
            self._server = await asyncio.start_unix_server(
                self._handle_connection, path=str(socket_path)
            )
            self.logger.info(
                f"Serving {self.config.document_root} on unix:{socket_path} "
                f"({len(self.fault_table)} fault rule(s))"
            )
        else:
            self._server = await asyncio.start_server(
                self._handle_connection, self.config.host, self.config.port
            )
            self._bound_port = self._server.sockets[0].getsockname()[1]
            self.logger.info(
                f"Serving {self.config.document_root} on {self.base_url} "
                f"({len(self.fault_table)} fault rule(s))"
            )

    async def stop(self) -> None:
        """Stop accepting and release the listening socket."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        if self.config.socket_path is not None and self.config.socket_path.is_socket():
            self.config.socket_path.unlink()
        self.logger.info("Server stopped")

    async def serve_forever(self) -> None:
        """Run until cancelled."""
        if self._server is None:
            await self.start()
        try:
            await self._server.serve_forever()
        finally:
            await self.stop()

    @property
    def bound_port(self) -> Optional[int]:
        return self._bound_port

    @property
    def base_url(self) -> str:
        """Base URL of a TCP listener (actual port when configured with 0)."""
        return f"http://{self.config.host}:{self._bound_port or self.config.port}"

    @property
    def is_running(self) -> bool:
        return self._server is not None

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername") or "unix"
        try:
            await self.handler.handle(reader, writer)
        except Exception as e:
            self.logger.error(f"Error handling connection from {peer}: {e}", exc_info=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                self.logger.debug(f"Error closing connection from {peer}: {e}")
