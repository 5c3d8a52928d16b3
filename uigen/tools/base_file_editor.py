# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Base class for tools that operate on a VirtualFileSystem."""

import logging
from abc import ABC, abstractmethod
from typing_extensions import override

from uigen.filesystem.errors import FileSystemError
from uigen.filesystem.virtual_fs import VirtualFileSystem
from uigen.tools.base import Tool, ToolCallArguments, ToolError, ToolExecResult
from uigen.tools.utils.formatting_utils import maybe_truncate

logger = logging.getLogger(__name__)


class BaseFileEditorTool(Tool, ABC):
    """Base class for file editing tools with common functionality."""

    def __init__(self, file_system: VirtualFileSystem, model_provider: str | None = None) -> None:
        super().__init__(model_provider)
        self._file_system = file_system

    @property
    def file_system(self) -> VirtualFileSystem:
        return self._file_system

    def require_string(self, arguments: ToolCallArguments, name: str, command: str) -> str:
        """
        Fetch a required string argument for a specific command.

        Raises:
            ToolError: If the argument is missing or not a string.
        """
        value = arguments.get(name)
        if not isinstance(value, str):
            raise ToolError(f"Parameter `{name}` is required and must be a string for command: {command}")
        return value

    def optional_bool(self, arguments: ToolCallArguments, name: str, default: bool = False) -> bool:
        value = arguments.get(name)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise ToolError(f"Parameter `{name}` must be a boolean, got: {type(value).__name__}")
        return value

    def _make_output(self, file_content: str, file_descriptor: str, init_line: int = 1) -> str:
        """Render content the way `cat -n` would, for the model to read back."""
        file_content = maybe_truncate(file_content)
        file_content = "\n".join(
            [f"{i + init_line:6}\t{line}" for i, line in enumerate(file_content.split("\n"))]
        )
        return f"Here's the result of running `cat -n` on {file_descriptor}:\n" + file_content + "\n"

    @abstractmethod
    async def _execute_operation(self, command: str, arguments: ToolCallArguments) -> ToolExecResult:
        """
        Execute the specific operation for this tool.

        Args:
            command: The validated `command` discriminator
            arguments: The tool call arguments

        Returns:
            The result of the operation
        """
        pass

    @override
    async def execute(self, arguments: ToolCallArguments) -> ToolExecResult:
        """
        Execute the tool with common validation and error handling.

        Argument shape is checked before the file system is touched; every
        file system error is turned into an error result instead of propagating.
        """
        try:
            self.validate_arguments(arguments)
            command = str(arguments["command"])
            logger.debug(f"Processing command '{command}' for {self.name}")
            return await self._execute_operation(command, arguments)

        except ToolError as e:
            logger.info(f"Tool error in {self.name}: {e.message}")
            return ToolExecResult(error=e.message, error_kind=e.kind, error_code=-1)
        except FileSystemError as e:
            logger.info(f"File system error in {self.name}: [{e.kind}] {e.message}")
            return ToolExecResult(error=e.message, error_kind=e.kind, error_code=-1)
