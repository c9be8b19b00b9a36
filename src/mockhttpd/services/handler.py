"""Per-connection request handling: parse, resolve, classify, respond."""

import asyncio
import logging
import stat
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

from mockhttpd.models.config import ServerConfig
from mockhttpd.models.exchange import Request, Resource, ResourceKind
from mockhttpd.models.fault import FaultKind
from mockhttpd.services.fault_table import FaultTable
from mockhttpd.services.writer import ResponseWriter

SUPPORTED_METHODS = ("GET", "HEAD")
MAX_HEADER_LINES = 100

OUTCOME_HIT = "HIT"
OUTCOME_MISS = "MISS"
OUTCOME_BAD_REQUEST = "BAD_REQUEST"
OUTCOME_ABORTED = "ABORTED"


class MalformedRequestError(ValueError):
    """Request head could not be parsed."""


async def read_request_head(reader: asyncio.StreamReader) -> Optional[list[str]]:
    """Read the request line and header lines up to the terminating blank line.

    Leading blank lines are skipped. Header lines are returned but never
    interpreted.

    Returns:
        Lines without their line endings (request line first), or None if
        the client closed the connection before sending anything

    Raises:
        MalformedRequestError: On EOF before the blank line, an over-long
            line, or too many header lines
    """
    lines: list[str] = []
    while True:
        try:
            raw = await reader.readline()
        except ValueError as e:
            raise MalformedRequestError(f"Request line too long: {e}") from e

        if not raw:
            if not lines:
                return None
            raise MalformedRequestError("Connection closed before end of request head")

        line = raw.decode("latin-1").rstrip("\r\n")
        if not line:
            if lines:
                return lines
            continue

        lines.append(line)
        if len(lines) > MAX_HEADER_LINES + 1:
            raise MalformedRequestError(f"More than {MAX_HEADER_LINES} header lines")


def parse_request_line(line: str) -> Request:
    """Split ``<METHOD> <PATH> <VERSION>``.

    Raises:
        MalformedRequestError: If the line does not have that shape
    """
    parts = line.split()
    if len(parts) != 3:
        raise MalformedRequestError(f"Unparsable request line: {line!r}")
    method, target, version = parts
    if not version.startswith("HTTP/"):
        raise MalformedRequestError(f"Unsupported protocol version: {version!r}")
    return Request(method=method, target=target, version=version)


def normalize_target(target: str) -> list[str]:
    """Turn a request target into path segments that cannot leave the root.

    Query and fragment are dropped, percent-escapes decoded, and ``..``
    pops a segment but never climbs above the root.
    """
    if target.startswith("/"):
        path = target.split("?", 1)[0].split("#", 1)[0]
    else:
        # absolute-form, e.g. a client talking to us as a proxy
        path = urlsplit(target).path
    path = unquote(path)
    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return parts


def resolve_resource(root: Path, target: str) -> Resource:
    """Map a request target to a Resource under the document root.

    Stats the filesystem every time; nothing is cached between requests.
    """
    parts = normalize_target(target)
    fs_path = root.joinpath(*parts)
    url_path = "/" + "/".join(parts)

    try:
        st = fs_path.stat()
    except (OSError, ValueError):
        # missing, ENAMETOOLONG, ELOOP, EACCES on a component, embedded NUL
        return Resource(url_path=url_path, fs_path=fs_path, kind=ResourceKind.MISSING)

    if stat.S_ISDIR(st.st_mode):
        if not url_path.endswith("/"):
            url_path += "/"
        return Resource(
            url_path=url_path,
            fs_path=fs_path,
            kind=ResourceKind.DIRECTORY,
            mtime=st.st_mtime,
        )
    if not stat.S_ISREG(st.st_mode):
        return Resource(url_path=url_path, fs_path=fs_path, kind=ResourceKind.MISSING)
    return Resource(
        url_path=url_path,
        fs_path=fs_path,
        kind=ResourceKind.FILE,
        size=st.st_size,
        mtime=st.st_mtime,
    )


class RequestHandler:
    """Handles the single exchange carried by one connection."""

    def __init__(self, config: ServerConfig, fault_table: FaultTable):
        self.logger = logging.getLogger("mockhttpd.handler")
        self.access_logger = logging.getLogger("mockhttpd.access")
        self.config = config
        self.fault_table = fault_table

    async def handle(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Read one request and write one response.

        The caller owns the connection and closes it afterwards, including
        when this method returns early on timeout or after an aborted body.
        """
        response = ResponseWriter(writer, self.config)

        try:
            lines = await asyncio.wait_for(
                read_request_head(reader), timeout=self.config.read_timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                f"No complete request within {self.config.read_timeout}s, closing"
            )
            return
        except MalformedRequestError as e:
            self.logger.info(f"Rejecting request: {e}")
            await self._reject(response, "-")
            return

        if lines is None:
            self.logger.debug("Client closed without sending a request")
            return

        try:
            request = parse_request_line(lines[0])
        except MalformedRequestError as e:
            self.logger.info(f"Rejecting request: {e}")
            await self._reject(response, "-")
            return

        if request.method not in SUPPORTED_METHODS:
            self.logger.info(f"Rejecting unsupported method {request.method!r}")
            await self._reject(response, request.method)
            return

        await self._respond(request, response)

    async def _reject(self, response: ResponseWriter, method: str) -> None:
        await response.send_error(400)
        self.access_logger.info(
            f"method={method} outcome={OUTCOME_BAD_REQUEST} status=400 sent=0"
        )

    async def _respond(self, request: Request, response: ResponseWriter) -> None:
        resource = resolve_resource(self.config.document_root, request.target)
        rule = self.fault_table.lookup(resource.name)
        kind = rule.kind if rule else FaultKind.NONE

        try:
            if kind == FaultKind.NOT_FOUND:
                outcome = kind.value
                await response.send_error(404)
            elif not resource.exists:
                outcome = OUTCOME_MISS
                await response.send_error(404)
            elif resource.kind == ResourceKind.DIRECTORY:
                outcome = OUTCOME_HIT
                await response.send_listing(resource, head_only=request.is_head)
            else:
                outcome = OUTCOME_HIT if kind == FaultKind.NONE else kind.value
                await response.send_file(resource, rule, head_only=request.is_head)
        except ConnectionError as e:
            self.logger.debug(f"Client went away during {resource.url_path}: {e}")
            outcome = OUTCOME_ABORTED
        except OSError as e:
            self.logger.error(
                f"Aborting response for {resource.url_path} after "
                f"{response.sent} bytes: {e}",
                exc_info=True,
            )
            outcome = OUTCOME_ABORTED

        declared = "-" if response.declared is None else response.declared
        self.access_logger.info(
            f"method={request.method} path={resource.url_path} outcome={outcome} "
            f"status={response.status or '-'} declared={declared} sent={response.sent}"
        )
