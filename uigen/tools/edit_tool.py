# Copyright (c) 2023 Anthropic
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates.
# SPDX-License-Identifier: MIT
#
# This file has been modified by ByteDance Ltd. and/or its affiliates. on 13 June 2025
#
# Original file was released under MIT License, with the full license text
# available at https://github.com/anthropics/anthropic-quickstarts/blob/main/LICENSE
#
# This modified file is released under the same license.

import json
import logging
from typing_extensions import override

from uigen.filesystem.errors import AlreadyExists
from uigen.filesystem.virtual_fs import normalize_path
from uigen.tools.base import ToolCallArguments, ToolError, ToolExecResult, ToolParameter
from uigen.tools.base_file_editor import BaseFileEditorTool

logger = logging.getLogger(__name__)

EditToolSubCommands = [
    "view",
    "create",
    "str_replace",
    "insert",
]
SNIPPET_LINES: int = 4


class TextEditorTool(BaseFileEditorTool):
    """Tool to view, create and surgically edit files in the virtual file system."""

    @override
    def get_name(self) -> str:
        return "editor"

    @override
    def get_description(self) -> str:
        return """Custom editing tool for viewing, creating and editing files in the virtual file system
* State is persistent across command calls and discussions with the user
* If `path` is a file, `view` displays the result of applying `cat -n`. If `path` is a directory, `view` lists its immediate children
* The `create` command cannot be used if the specified `path` already exists !!! If you know that the `path` already exists, edit it with `str_replace` or `insert` instead!
* If a `command` generates a long output, it will be truncated and marked with `<response clipped>`

Notes for using the `str_replace` command:
* The `old_str` parameter should match EXACTLY one or more consecutive lines from the original file. Be mindful of whitespaces!
* If the `old_str` parameter is not unique in the file, the replacement will not be performed. Make sure to include enough context in `old_str` to make it unique, or set `replace_all` to replace every occurrence
* The `new_str` parameter should contain the edited lines that should replace the `old_str`
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        """Get the parameters for the editor tool."""
        return [
            ToolParameter(
                name="command",
                type="string",
                description=f"The commands to run. Allowed options are: {', '.join(EditToolSubCommands)}.",
                required=True,
                enum=EditToolSubCommands,
            ),
            ToolParameter(
                name="file_text",
                type="string",
                description="Required parameter of `create` command, with the content of the file to be created.",
            ),
            ToolParameter(
                name="insert_line",
                type="integer",
                description="Required parameter of `insert` command. The `new_str` will be inserted AFTER the line `insert_line` of `path`. Use 0 to insert at the top of the file.",
            ),
            ToolParameter(
                name="new_str",
                type="string",
                description="Optional parameter of `str_replace` command containing the new string (if not given, no string will be added). Required parameter of `insert` command containing the string to insert.",
            ),
            ToolParameter(
                name="old_str",
                type="string",
                description="Required parameter of `str_replace` command containing the string in `path` to replace.",
            ),
            ToolParameter(
                name="replace_all",
                type="boolean",
                description="Optional parameter of `str_replace` command. When true every occurrence of `old_str` is replaced instead of requiring exactly one.",
            ),
            ToolParameter(
                name="path",
                type="string",
                description="Absolute path to file or directory, e.g. '/App.jsx' or '/components/Button.jsx'.",
                required=True,
            ),
            ToolParameter(
                name="view_range",
                type="array",
                description="Optional parameter of `view` command when `path` points to a file. If none is given, the full file is shown. If provided, the file will be shown in the indicated line number range, e.g. [11, 12] will show lines 11 and 12. Indexing at 1 to start. Setting `[start_line, -1]` shows all lines from `start_line` to the end of the file.",
                items={"type": "integer"},
            ),
        ]

    @override
    async def _execute_operation(self, command: str, arguments: ToolCallArguments) -> ToolExecResult:
        """Execute the text editor operation."""
        path = normalize_path(self.require_string(arguments, "path", command))

        match command:
            case "view":
                return self._view_handler(arguments, path)
            case "create":
                return self._create_handler(arguments, path)
            case "str_replace":
                return self._str_replace_handler(arguments, path)
            case "insert":
                return self._insert_handler(arguments, path)
            case _:
                logger.error(f"Unrecognized command: {command}")
                raise ToolError(
                    f"Unrecognized command {command}. The allowed commands for the {self.name} tool are: {', '.join(EditToolSubCommands)}",
                    kind="UnsupportedCommand",
                )

    def _view_handler(self, arguments: ToolCallArguments, path: str) -> ToolExecResult:
        view_range = arguments.get("view_range")
        if view_range is not None and not (
            isinstance(view_range, list)
            and all(isinstance(i, int) and not isinstance(i, bool) for i in view_range)
        ):
            raise ToolError("Parameter `view_range` should be a list of integers.")

        content = self.file_system.view(path, view_range)
        if self.file_system.is_directory(path):
            return ToolExecResult(output=f"Here's the content of the directory {path}:\n{content}\n")

        init_line = view_range[0] if view_range else 1
        return ToolExecResult(output=self._make_output(content, path, init_line=init_line))

    def _create_handler(self, arguments: ToolCallArguments, path: str) -> ToolExecResult:
        file_text = self.require_string(arguments, "file_text", "create")

        if self.file_system.exists(path):
            raise AlreadyExists(f"File already exists at: {path}.")

        if path.lower().endswith(".json"):
            try:
                json.loads(file_text)
            except json.JSONDecodeError as e:
                logger.debug(f"JSON validation failed: {e}")
                raise ToolError(f"Invalid JSON content: {e}") from e

        self.file_system.write(path, file_text, create=True)
        logger.debug(f"File created successfully at {path}")
        return ToolExecResult(output=f"File created successfully at: {path}")

    def _str_replace_handler(self, arguments: ToolCallArguments, path: str) -> ToolExecResult:
        old_str = self.require_string(arguments, "old_str", "str_replace")
        new_str = arguments.get("new_str")
        if not (new_str is None or isinstance(new_str, str)):
            raise ToolError("Parameter `new_str` should be a string or null for command: str_replace")
        new_str = new_str or ""
        replace_all = self.optional_bool(arguments, "replace_all")

        original = self.file_system.read(path)
        count = self.file_system.replace(
            path, old_str, new_str, expected="all" if replace_all else "exactly_one"
        )
        new_content = self.file_system.read(path)

        # Snippet around the first edit
        replacement_line = original.split(old_str)[0].count("\n")
        start_line = max(0, replacement_line - SNIPPET_LINES)
        end_line = replacement_line + SNIPPET_LINES + new_str.count("\n")
        snippet = "\n".join(new_content.split("\n")[start_line : end_line + 1])

        success_msg = f"The file {path} has been edited"
        success_msg += f" ({count} replacements). " if count > 1 else ". "
        success_msg += self._make_output(snippet, f"a snippet of {path}", start_line + 1)
        success_msg += "Review the changes and make sure they are as expected. Edit the file again if necessary."
        return ToolExecResult(output=success_msg)

    def _insert_handler(self, arguments: ToolCallArguments, path: str) -> ToolExecResult:
        insert_line = arguments.get("insert_line")
        if insert_line is None:
            raise ToolError("Parameter `insert_line` is required for command: insert")
        if isinstance(insert_line, bool) or not isinstance(insert_line, int):
            raise ToolError(
                f"Parameter `insert_line` must be an integer, got: {type(insert_line).__name__}"
            )
        new_str = self.require_string(arguments, "new_str", "insert")

        original_lines = self.file_system.read(path).split("\n")
        self.file_system.insert(path, insert_line, new_str)

        new_str_lines = new_str.split("\n")
        snippet_lines = (
            original_lines[max(0, insert_line - SNIPPET_LINES) : insert_line]
            + new_str_lines
            + original_lines[insert_line : insert_line + SNIPPET_LINES]
        )
        success_msg = f"The file {path} has been edited. "
        success_msg += self._make_output(
            "\n".join(snippet_lines),
            "a snippet of the edited file",
            max(1, insert_line - SNIPPET_LINES + 1),
        )
        success_msg += "Review the changes and make sure they are as expected (correct indentation, no duplicate lines, etc). Edit the file again if necessary."
        return ToolExecResult(output=success_msg)
