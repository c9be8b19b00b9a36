"""Response writer: status line, headers and (possibly corrupted) body."""

import asyncio
import logging
import mimetypes
from email.utils import formatdate
from typing import Optional

import aiofiles

from mockhttpd.models.config import ServerConfig
from mockhttpd.models.exchange import Resource
from mockhttpd.models.fault import FaultKind, FaultRule
from mockhttpd.services.listing import render_listing

STATUS_REASONS = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
}


class TruncatedReadError(OSError):
    """Fixture yielded fewer bytes than planned (shrunk or vanished mid-response)."""


def plan_lengths(kind: FaultKind, size: int) -> tuple[int, int]:
    """Compute (declared Content-Length, body bytes to send) for a file.

    truncate advertises the real size but sends half; size_mismatch
    advertises and sends half. Everything else is served intact.
    """
    half = size // 2
    if kind == FaultKind.TRUNCATE:
        return size, half
    if kind == FaultKind.SIZE_MISMATCH:
        return half, half
    return size, size


def guess_content_type(name: str) -> str:
    """Content-Type from the filename; compressed encodings are served as opaque bytes."""
    content_type, encoding = mimetypes.guess_type(name)
    if content_type is None or encoding is not None:
        return "application/octet-stream"
    return content_type


def http_date(timestamp: Optional[float] = None) -> str:
    """RFC 1123 date in GMT."""
    return formatdate(timestamp, usegmt=True)


class ResponseWriter:
    """Writes exactly one response to a connection.

    Attributes:
        declared: Content-Length advertised (None when no length was sent)
        sent: Body bytes actually written
    """

    def __init__(self, writer: asyncio.StreamWriter, config: ServerConfig):
        self.logger = logging.getLogger("mockhttpd.writer")
        self.writer = writer
        self.config = config
        self.status: Optional[int] = None
        self.declared: Optional[int] = None
        self.sent = 0

    def _head(self, status: int, headers: list[tuple[str, str]]) -> bytes:
        lines = [
            f"HTTP/1.1 {status} {STATUS_REASONS.get(status, 'Unknown')}",
            f"Server: {self.config.server_name}",
            f"Date: {http_date()}",
        ]
        lines.extend(f"{name}: {value}" for name, value in headers)
        lines.append("Connection: close")
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

    async def _send_head(self, status: int, headers: list[tuple[str, str]]) -> None:
        self.status = status
        self.writer.write(self._head(status, headers))
        await self.writer.drain()

    async def _send_body(self, data: bytes) -> None:
        self.writer.write(data)
        await self.writer.drain()
        self.sent += len(data)

    async def send_error(self, status: int) -> None:
        """Error responses carry no resource headers and an empty body."""
        await self._send_head(status, [])

    async def send_listing(self, resource: Resource, head_only: bool) -> None:
        """Directory index; no Content-Length, the close delimits the body."""
        body = render_listing(resource.fs_path, resource.url_path).encode("utf-8")
        await self._send_head(
            200,
            [
                ("Content-Type", "text/html"),
                ("Last-Modified", http_date(resource.mtime)),
            ],
        )
        if not head_only:
            await self._send_body(body)

    async def send_file(
        self, resource: Resource, rule: Optional[FaultRule], head_only: bool
    ) -> None:
        """Regular file with the fault of the matching rule applied.

        Raises:
            OSError: If the fixture cannot be read to the planned length;
                the caller must close the connection without finishing.
        """
        kind = rule.kind if rule else FaultKind.NONE
        declared, to_send = plan_lengths(kind, resource.size)
        self.declared = declared

        await self._send_head(
            200,
            [
                ("Content-Length", str(declared)),
                ("Content-Type", guess_content_type(resource.name)),
                ("Last-Modified", http_date(resource.mtime)),
            ],
        )
        if head_only:
            return

        if kind == FaultKind.SLOW:
            self.logger.debug(f"Stalling {rule.delay}s before body of {resource.url_path}")
            await asyncio.sleep(rule.delay)

        remaining = to_send
        async with aiofiles.open(resource.fs_path, "rb") as f:
            while remaining > 0:
                chunk = await f.read(min(self.config.chunk_size, remaining))
                if not chunk:
                    raise TruncatedReadError(
                        f"{resource.fs_path} ended after {to_send - remaining} "
                        f"of {to_send} bytes"
                    )
                await self._send_body(chunk)
                remaining -= len(chunk)
