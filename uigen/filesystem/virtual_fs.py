"""In-memory virtual file system used as the working tree of a single agent run."""

import logging
from collections.abc import Iterator
from typing import Literal

from uigen.filesystem.errors import (
    AlreadyExists,
    AmbiguousMatch,
    DirectoryNotEmpty,
    InvalidArguments,
    IsDirectory,
    LineOutOfRange,
    NoMatch,
    NotADirectory,
    NotFound,
    PathError,
)
from uigen.models.file_node import DirectoryEntry, FileEntry, FileNode, utcnow

logger = logging.getLogger(__name__)

ROOT = "/"

ReplaceMode = Literal["exactly_one", "all"]


def normalize_path(path: str) -> str:
    """
    Normalize a user supplied path to the canonical absolute form.

    Relative paths are anchored at the root, duplicate slashes and `.` segments
    are dropped and `..` segments are resolved against the preceding segment.

    Raises:
        PathError: If the path is not a non-empty string, contains a NUL byte,
            or climbs above the root directory.
    """
    if not isinstance(path, str):
        raise PathError(f"Path must be a string, got {type(path).__name__}.")
    stripped = path.strip()
    if not stripped:
        raise PathError("Path must not be empty.")
    if "\x00" in stripped:
        raise PathError("Path must not contain NUL characters.")

    segments: list[str] = []
    for segment in stripped.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                raise PathError(f"Path '{path}' escapes the root directory.")
            segments.pop()
            continue
        segments.append(segment)
    return ROOT + "/".join(segments)


def parent_path(path: str) -> str:
    """Return the parent of a normalized, non-root path."""
    index = path.rfind("/")
    return path[:index] or ROOT


def base_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def split_lines(content: str) -> list[str]:
    """Split file content into lines; an empty file has no lines."""
    if not content:
        return []
    return content.split("\n")


class VirtualFileSystem:
    """
    A tree of files and directories kept entirely in memory.

    Nodes are stored in a flat mapping keyed by normalized absolute path. The
    root directory always exists, and every other node's parent must exist as
    a directory before the node itself can be added.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, FileNode] = {ROOT: DirectoryEntry(path=ROOT)}

    def __repr__(self) -> str:
        return f"VirtualFileSystem(nodes={len(self._nodes)})"

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._nodes
        except PathError:
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VirtualFileSystem):
            return NotImplemented
        return self._structure() == other._structure()

    __hash__ = None  # type: ignore[assignment]

    def _structure(self) -> dict[str, tuple[str, str | frozenset[str]]]:
        structure: dict[str, tuple[str, str | frozenset[str]]] = {}
        for path, node in self._nodes.items():
            if isinstance(node, FileEntry):
                structure[path] = ("file", node.content)
            else:
                structure[path] = ("directory", frozenset(node.children))
        return structure

    # --- Lookups ---

    def get_node(self, path: str) -> FileNode | None:
        return self._nodes.get(normalize_path(path))

    def exists(self, path: str) -> bool:
        return normalize_path(path) in self._nodes

    def is_file(self, path: str) -> bool:
        return isinstance(self.get_node(path), FileEntry)

    def is_directory(self, path: str) -> bool:
        return isinstance(self.get_node(path), DirectoryEntry)

    def iter_nodes(self) -> Iterator[FileNode]:
        """Yield every node, root included, in path order."""
        for path in sorted(self._nodes):
            yield self._nodes[path]

    def file_paths(self) -> list[str]:
        return sorted(path for path, node in self._nodes.items() if isinstance(node, FileEntry))

    def _require_node(self, path: str) -> FileNode:
        node = self._nodes.get(path)
        if node is None:
            raise NotFound(f"The path {path} does not exist.")
        return node

    def _require_file(self, path: str) -> FileEntry:
        node = self._require_node(normalize_path(path))
        if isinstance(node, DirectoryEntry):
            raise IsDirectory(f"The path {node.path} is a directory, not a file.")
        return node

    def _require_directory(self, path: str) -> DirectoryEntry:
        node = self._require_node(normalize_path(path))
        if isinstance(node, FileEntry):
            raise NotADirectory(f"The path {node.path} is a file, not a directory.")
        return node

    def _descendants(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        return [candidate for candidate in self._nodes if candidate.startswith(prefix)]

    def _check_parent(self, path: str, create_parent: bool) -> str | None:
        """
        Make sure `path` can be attached to its parent directory.

        Returns the parent path when it is missing but may be created (only one
        level, and only when its own parent is an existing directory), or None
        when the parent already exists.
        """
        parent = parent_path(path)
        node = self._nodes.get(parent)
        if isinstance(node, DirectoryEntry):
            return None
        if isinstance(node, FileEntry):
            raise NotADirectory(f"Cannot create {path}: {parent} is a file.")

        grandparent = self._nodes.get(parent_path(parent))
        if isinstance(grandparent, FileEntry):
            raise NotADirectory(f"Cannot create {path}: {grandparent.path} is a file.")
        if not create_parent or grandparent is None:
            raise NotFound(f"Cannot create {path}: parent directory {parent} does not exist.")
        return parent

    def _link(self, node: FileNode) -> None:
        self._nodes[node.path] = node
        parent = self._nodes[parent_path(node.path)]
        assert isinstance(parent, DirectoryEntry)
        parent.children.add(node.path)

    # --- Mutations ---

    def mkdir(self, path: str, parents: bool = False, exist_ok: bool = False) -> DirectoryEntry:
        """Create a directory, optionally creating every missing ancestor."""
        path = normalize_path(path)
        existing = self._nodes.get(path)
        if existing is not None:
            if exist_ok and isinstance(existing, DirectoryEntry):
                return existing
            raise AlreadyExists(f"The path {path} already exists.")

        parent = parent_path(path)
        parent_node = self._nodes.get(parent)
        if parent_node is None:
            if not parents:
                raise NotFound(f"Cannot create {path}: parent directory {parent} does not exist.")
            self.mkdir(parent, parents=True, exist_ok=True)
        elif isinstance(parent_node, FileEntry):
            raise NotADirectory(f"Cannot create {path}: {parent} is a file.")

        directory = DirectoryEntry(path=path)
        self._link(directory)
        logger.debug(f"Created directory {path}")
        return directory

    def read(self, path: str) -> str:
        return self._require_file(path).content

    def write(self, path: str, text: str, create: bool = False) -> FileEntry:
        """
        Write `text` to the file at `path`.

        An existing file is overwritten. A missing file is only created when
        `create` is set; in that case the immediate parent directory is created
        as well if, and only if, its own parent already exists.
        """
        path = normalize_path(path)
        if not isinstance(text, str):
            raise InvalidArguments(f"File content must be a string, got {type(text).__name__}.")

        node = self._nodes.get(path)
        if isinstance(node, DirectoryEntry):
            raise IsDirectory(f"The path {path} is a directory, not a file.")
        if isinstance(node, FileEntry):
            node.content = text
            node.updated_at = utcnow()
            logger.debug(f"Overwrote {path}, content length: {len(text)}")
            return node

        if not create:
            raise NotFound(f"The file {path} does not exist.")

        missing_parent = self._check_parent(path, create_parent=True)
        if missing_parent is not None:
            self._link(DirectoryEntry(path=missing_parent))
            logger.debug(f"Implicitly created directory {missing_parent}")

        entry = FileEntry(path=path, content=text)
        self._link(entry)
        logger.debug(f"Created {path}, content length: {len(text)}")
        return entry

    def replace(
        self, path: str, old_text: str, new_text: str, expected: ReplaceMode = "exactly_one"
    ) -> int:
        """
        Replace `old_text` with `new_text` inside one file.

        With `expected="exactly_one"` the text must occur exactly once; with
        `expected="all"` every occurrence is replaced. The file is left untouched
        on any failure.

        Returns:
            The number of replacements performed.
        """
        entry = self._require_file(path)
        if not isinstance(old_text, str) or not old_text:
            raise InvalidArguments("The text to replace must be a non-empty string.")
        if not isinstance(new_text, str):
            raise InvalidArguments("The replacement text must be a string.")
        if expected not in ("exactly_one", "all"):
            raise InvalidArguments(f"Unknown replacement mode: {expected}.")

        occurrences = entry.content.count(old_text)
        if occurrences == 0:
            raise NoMatch(
                f"No replacement was performed, old_str `{old_text}` did not appear verbatim in {entry.path}."
            )
        if occurrences > 1 and expected == "exactly_one":
            lines = [
                idx + 1 for idx, line in enumerate(entry.content.split("\n")) if old_text in line
            ]
            location = f" in lines {lines}" if lines else ""
            raise AmbiguousMatch(
                f"No replacement was performed. Multiple occurrences ({occurrences}) of old_str "
                f"`{old_text}`{location} in {entry.path}. Please ensure it is unique."
            )

        entry.content = entry.content.replace(old_text, new_text)
        entry.updated_at = utcnow()
        logger.debug(f"Replaced {occurrences} occurrence(s) in {entry.path}")
        return occurrences

    def insert(self, path: str, after_line: int, text: str) -> FileEntry:
        """Insert `text` after the 1-indexed line `after_line`; 0 prepends."""
        entry = self._require_file(path)
        if isinstance(after_line, bool) or not isinstance(after_line, int):
            raise InvalidArguments(f"Line number must be an integer, got {type(after_line).__name__}.")
        if not isinstance(text, str):
            raise InvalidArguments("Inserted text must be a string.")

        lines = split_lines(entry.content)
        if after_line < 0 or after_line > len(lines):
            raise LineOutOfRange(
                f"Invalid `insert_line` parameter: {after_line}. "
                f"It should be within the range of lines of the file: {[0, len(lines)]}"
            )

        entry.content = "\n".join(lines[:after_line] + text.split("\n") + lines[after_line:])
        entry.updated_at = utcnow()
        logger.debug(f"Inserted {len(text)} characters after line {after_line} of {entry.path}")
        return entry

    def view(self, path: str, view_range: list[int] | tuple[int, int] | None = None) -> str:
        """Return a file's content, optionally limited to a line range, or a directory listing."""
        node = self._require_node(normalize_path(path))
        if isinstance(node, DirectoryEntry):
            if view_range is not None:
                raise InvalidArguments(
                    "The `view_range` parameter is not allowed when `path` points to a directory."
                )
            return self._format_listing(node)

        if view_range is None:
            return node.content

        if len(view_range) != 2 or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in view_range
        ):
            raise InvalidArguments("Invalid `view_range`. It should be a list of two integers.")

        lines = split_lines(node.content)
        n_lines = len(lines)
        start, end = view_range
        if start < 1 or start > n_lines:
            raise LineOutOfRange(
                f"Invalid `view_range`: {list(view_range)}. Its first element `{start}` should be "
                f"within the range of lines of the file: {[1, n_lines]}"
            )
        if end > n_lines:
            raise LineOutOfRange(
                f"Invalid `view_range`: {list(view_range)}. Its second element `{end}` should be "
                f"smaller than the number of lines in the file: `{n_lines}`"
            )
        if end != -1 and end < start:
            raise LineOutOfRange(
                f"Invalid `view_range`: {list(view_range)}. Its second element `{end}` should be "
                f"larger or equal than its first `{start}`"
            )
        selected = lines[start - 1 :] if end == -1 else lines[start - 1 : end]
        return "\n".join(selected)

    def _format_listing(self, directory: DirectoryEntry) -> str:
        if not directory.children:
            return "(empty directory)"
        entries = []
        for child in sorted(directory.children):
            marker = "[DIR]" if isinstance(self._nodes[child], DirectoryEntry) else "[FILE]"
            entries.append(f"{marker} {base_name(child)}")
        return "\n".join(entries)

    def delete(self, path: str, recursive: bool = False) -> list[str]:
        """
        Delete a file or directory.

        Returns:
            The removed paths, the target first.
        """
        path = normalize_path(path)
        if path == ROOT:
            raise PathError("The root directory cannot be deleted.")
        node = self._require_node(path)

        removed = [path]
        if isinstance(node, DirectoryEntry):
            if node.children and not recursive:
                raise DirectoryNotEmpty(
                    f"The directory {path} is not empty. Set `recursive` to delete it with its contents."
                )
            removed.extend(sorted(self._descendants(path)))

        for doomed in removed:
            del self._nodes[doomed]
        parent = self._nodes[parent_path(path)]
        assert isinstance(parent, DirectoryEntry)
        parent.children.discard(path)
        logger.debug(f"Deleted {len(removed)} node(s) under {path}")
        return removed

    def rename(self, old_path: str, new_path: str) -> FileNode:
        """
        Move a file or a whole directory subtree to a new path.

        The new node map is built completely before it replaces the current one,
        so a failure leaves the tree exactly as it was.
        """
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if ROOT in (old_path, new_path):
            raise PathError("The root directory cannot be renamed.")

        node = self._require_node(old_path)
        if new_path in self._nodes:
            raise AlreadyExists(f"Cannot rename {old_path}: {new_path} already exists.")
        if isinstance(node, DirectoryEntry) and new_path.startswith(old_path + "/"):
            raise PathError(f"Cannot move directory {old_path} into itself ({new_path}).")
        missing_parent = self._check_parent(new_path, create_parent=True)

        def relocate(path: str) -> str:
            return new_path + path[len(old_path) :]

        nodes = dict(self._nodes)
        moved = [old_path]
        if isinstance(node, DirectoryEntry):
            moved.extend(self._descendants(old_path))

        relocated: dict[str, FileNode] = {}
        for path in moved:
            current = nodes.pop(path)
            if isinstance(current, DirectoryEntry):
                update = {"path": relocate(path), "children": {relocate(c) for c in current.children}}
            else:
                update = {"path": relocate(path)}
            relocated[relocate(path)] = current.model_copy(update=update)
        nodes.update(relocated)

        def reparent(directory: str, add: str | None = None, remove: str | None = None) -> None:
            entry = nodes[directory]
            assert isinstance(entry, DirectoryEntry)
            children = set(entry.children)
            if remove is not None:
                children.discard(remove)
            if add is not None:
                children.add(add)
            nodes[directory] = entry.model_copy(update={"children": children})

        if missing_parent is not None:
            nodes[missing_parent] = DirectoryEntry(path=missing_parent)
            reparent(parent_path(missing_parent), add=missing_parent)
        reparent(parent_path(old_path), remove=old_path)
        reparent(parent_path(new_path), add=new_path)

        self._nodes = nodes
        logger.debug(f"Renamed {old_path} to {new_path} ({len(moved)} node(s) moved)")
        return nodes[new_path]

    def list(self, path: str = ROOT) -> list[str]:
        """Return the sorted absolute paths of a directory's immediate children."""
        return sorted(self._require_directory(path).children)
