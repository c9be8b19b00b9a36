"""Startup configuration for the mock server."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mockhttpd.models.fault import FaultRule

SERVER_NAME = "mockhttpd/1.0.0"


class ServerConfig(BaseModel):
    """Immutable server configuration, built once at startup.

    Every connection handler receives the same instance; nothing in it
    changes after construction.
    """

    model_config = ConfigDict(frozen=True)

    document_root: Path = Field(..., description="Directory fixtures are served from")
    host: str = Field(default="127.0.0.1", description="TCP bind address")
    port: int = Field(default=8080, ge=0, le=65535, description="TCP port (0 = any free port)")
    socket_path: Optional[Path] = Field(
        default=None, description="Unix-domain socket path, overrides host/port"
    )
    log_file: Optional[Path] = Field(default=None, description="Access/diagnostic log file")
    error_log_file: Optional[Path] = Field(default=None, description="Warnings and errors only")
    faults: tuple[FaultRule, ...] = Field(default=(), description="Ordered fault rules")
    read_timeout: float = Field(
        default=30.0, gt=0, description="Seconds allowed for reading the request head"
    )
    chunk_size: int = Field(default=64 * 1024, gt=0, description="Body write chunk size")
    server_name: str = Field(default=SERVER_NAME, description="Value of the Server header")

    @field_validator("document_root")
    @classmethod
    def root_is_directory(cls, v: Path) -> Path:
        """The document root must exist; it is the only required setting."""
        v = v.expanduser().resolve()
        if not v.exists():
            raise ValueError(f"Document root does not exist: {v}")
        if not v.is_dir():
            raise ValueError(f"Document root is not a directory: {v}")
        return v
