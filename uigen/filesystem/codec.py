"""Conversion between a VirtualFileSystem and its flat snapshot form."""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from uigen.filesystem.errors import FileSystemError, InvalidSnapshot, PathError
from uigen.filesystem.virtual_fs import ROOT, VirtualFileSystem, base_name, normalize_path, parent_path
from uigen.models.file_node import FileEntry, SnapshotNode

logger = logging.getLogger(__name__)

Snapshot = dict[str, dict[str, Any]]


def serialize(file_system: VirtualFileSystem) -> Snapshot:
    """
    Flatten the tree into a `path -> node` mapping.

    The root directory is implicit and is not part of the snapshot.
    """
    snapshot: Snapshot = {}
    for node in file_system.iter_nodes():
        if node.path == ROOT:
            continue
        if isinstance(node, FileEntry):
            snapshot[node.path] = {
                "type": "file",
                "name": base_name(node.path),
                "path": node.path,
                "content": node.content,
            }
        else:
            snapshot[node.path] = {
                "type": "directory",
                "name": base_name(node.path),
                "path": node.path,
            }
    return snapshot


def _parse_entries(snapshot: Mapping[str, Any]) -> dict[str, SnapshotNode]:
    entries: dict[str, SnapshotNode] = {}
    for key, raw in snapshot.items():
        try:
            node = SnapshotNode.model_validate(raw)
            path = normalize_path(key)
        except ValidationError as e:
            raise InvalidSnapshot(f"Snapshot entry {key!r} is not a valid node: {e}") from e
        except PathError as e:
            raise InvalidSnapshot(f"Snapshot key {key!r} is not a valid path: {e.message}") from e

        if node.path is not None:
            try:
                declared = normalize_path(node.path)
            except PathError as e:
                raise InvalidSnapshot(f"Snapshot entry {key!r} has an invalid path: {e.message}") from e
            if declared != path:
                raise InvalidSnapshot(f"Snapshot key {key!r} does not match its node path {node.path!r}.")

        if path == ROOT:
            if node.type != "directory":
                raise InvalidSnapshot("The root path must be a directory.")
            continue

        previous = entries.get(path)
        if previous is not None and (previous.type, previous.content) != (node.type, node.content):
            raise InvalidSnapshot(f"Snapshot contains conflicting entries for {path}.")
        entries[path] = node
    return entries


def deserialize(snapshot: Mapping[str, Any] | None) -> VirtualFileSystem:
    """
    Rebuild a VirtualFileSystem from a snapshot.

    Directories implied by file paths are created even when the snapshot has
    no explicit entry for them.

    Raises:
        InvalidSnapshot: If the snapshot is malformed or internally inconsistent.
    """
    file_system = VirtualFileSystem()
    if snapshot is None:
        return file_system
    if not isinstance(snapshot, Mapping):
        raise InvalidSnapshot(f"Snapshot must be a mapping, got {type(snapshot).__name__}.")

    entries = _parse_entries(snapshot)

    for path, node in entries.items():
        ancestor = parent_path(path)
        while ancestor != ROOT:
            existing = entries.get(ancestor)
            if existing is not None and existing.type == "file":
                raise InvalidSnapshot(f"{ancestor} is a file but {path} is listed beneath it.")
            ancestor = parent_path(ancestor)

    # Sorted order guarantees a parent is visited before its children.
    try:
        for path in sorted(entries):
            node = entries[path]
            if node.type == "directory":
                file_system.mkdir(path, parents=True, exist_ok=True)
            else:
                file_system.mkdir(parent_path(path), parents=True, exist_ok=True)
                file_system.write(path, node.content or "", create=True)
    except FileSystemError as e:
        raise InvalidSnapshot(f"Snapshot is inconsistent: {e.message}") from e

    logger.debug(f"Deserialized snapshot with {len(entries)} entries into {len(file_system)} nodes")
    return file_system
