from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileEntry(BaseModel):
    """A text file stored in the virtual file system."""

    type: Literal["file"] = "file"
    path: str
    content: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DirectoryEntry(BaseModel):
    """A directory; ``children`` holds the absolute paths of its immediate children."""

    type: Literal["directory"] = "directory"
    path: str
    children: set[str] = Field(default_factory=set)


FileNode = Annotated[FileEntry | DirectoryEntry, Field(discriminator="type")]


class SnapshotNode(BaseModel):
    """Wire form of a single node inside a serialized snapshot."""

    type: Literal["file", "directory"]
    name: str | None = None
    path: str | None = None
    content: str | None = None

    model_config = {"extra": "ignore"}
