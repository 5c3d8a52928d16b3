import logging
from typing_extensions import override

from uigen.filesystem.virtual_fs import normalize_path
from uigen.models.file_node import DirectoryEntry
from uigen.tools.base import ToolCallArguments, ToolError, ToolExecResult, ToolParameter
from uigen.tools.base_file_editor import BaseFileEditorTool

logger = logging.getLogger(__name__)

FileManagerSubCommands = ["rename", "delete"]


class FileManagerTool(BaseFileEditorTool):
    """
    Tool for restructuring the virtual file system.
    Renames or moves files and directories, and deletes them.
    Content edits belong to the `editor` tool.
    """

    @override
    def get_name(self) -> str:
        return "manager"

    @override
    def get_description(self) -> str:
        return """Rename, move or delete files and directories in the virtual file system.
* `rename` moves `old_path` to `new_path`. Moving a directory moves its whole subtree. The destination must not exist.
* `delete` removes `path`. A non-empty directory is only removed when `recursive` is true."""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="command",
                type="string",
                description=f"The command to run. Allowed options are: {', '.join(FileManagerSubCommands)}.",
                required=True,
                enum=FileManagerSubCommands,
            ),
            ToolParameter(
                name="path",
                type="string",
                description="Required parameter of `delete` command. Absolute path of the file or directory to delete.",
            ),
            ToolParameter(
                name="old_path",
                type="string",
                description="Required parameter of `rename` command. Current absolute path.",
            ),
            ToolParameter(
                name="new_path",
                type="string",
                description="Required parameter of `rename` command. New absolute path.",
            ),
            ToolParameter(
                name="recursive",
                type="boolean",
                description="Optional parameter of `delete` command. Delete a directory together with its contents. Defaults to false.",
            ),
        ]

    @override
    async def _execute_operation(self, command: str, arguments: ToolCallArguments) -> ToolExecResult:
        match command:
            case "rename":
                return self._rename_handler(arguments)
            case "delete":
                return self._delete_handler(arguments)
            case _:
                raise ToolError(f"Unknown command: {command}", kind="UnsupportedCommand")

    def _rename_handler(self, args: ToolCallArguments) -> ToolExecResult:
        old_path = normalize_path(self.require_string(args, "old_path", "rename"))
        new_path = normalize_path(self.require_string(args, "new_path", "rename"))

        node = self.file_system.rename(old_path, new_path)
        kind = "directory" if isinstance(node, DirectoryEntry) else "file"
        return ToolExecResult(output=f"Successfully renamed {kind} {old_path} to {new_path}")

    def _delete_handler(self, args: ToolCallArguments) -> ToolExecResult:
        path = normalize_path(self.require_string(args, "path", "delete"))
        recursive = self.optional_bool(args, "recursive")

        removed = self.file_system.delete(path, recursive=recursive)
        if len(removed) > 1:
            return ToolExecResult(output=f"Successfully deleted {path} and {len(removed) - 1} nested entries")
        return ToolExecResult(output=f"Successfully deleted {path}")
