"""Request and resource models for a single HTTP exchange."""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ResourceKind(str, Enum):
    """What a request path resolved to on disk."""

    FILE = "file"
    DIRECTORY = "dir"
    MISSING = "missing"


class Request(BaseModel):
    """Parsed request line. Header lines are read and discarded."""

    model_config = ConfigDict(frozen=True)

    method: str = Field(..., description="GET or HEAD")
    target: str = Field(..., description="Raw request target as sent")
    version: str = Field(..., pattern=r"^HTTP/", description="Protocol version")

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"


class Resource(BaseModel):
    """Filesystem entry behind a request path.

    Size and mtime come from a stat taken when the resource is resolved,
    so they always reflect the fixture as it is on disk right now.
    """

    model_config = ConfigDict(frozen=True)

    url_path: str = Field(..., description="Normalized path relative to the root, e.g. /sub/")
    fs_path: Path = Field(..., description="Absolute filesystem path")
    kind: ResourceKind
    size: int = Field(default=0, ge=0, description="Byte length (files only)")
    mtime: Optional[float] = Field(default=None, description="Modification time (epoch)")

    @property
    def name(self) -> str:
        """Filename component used for fault matching."""
        return self.url_path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def exists(self) -> bool:
        return self.kind != ResourceKind.MISSING
