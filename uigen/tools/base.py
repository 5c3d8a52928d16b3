# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Base classes shared by all agent tools."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cached_property

logger = logging.getLogger(__name__)

ParamSchemaValue = str | list[str] | bool | dict[str, object]
Property = dict[str, ParamSchemaValue]

ToolCallArguments = dict[str, str | int | float | bool | dict[str, object] | list[object] | None]


class ToolError(Exception):
    """Raised by a tool when its arguments or the operation are invalid."""

    def __init__(self, message: str, kind: str = "InvalidArguments"):
        super().__init__(message)
        self.message: str = message
        self.kind: str = kind


@dataclass
class ToolExecResult:
    """Intermediate result of a tool execution."""

    output: str | None = None
    error: str | None = None
    error_kind: str | None = None
    error_code: int = 0


@dataclass
class ToolResult:
    """Result of a tool call, keyed by the id of the invocation that produced it."""

    call_id: str
    name: str
    success: bool
    result: str | None = None
    error: str | None = None
    error_kind: str | None = None


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    call_id: str
    arguments: ToolCallArguments = field(default_factory=dict)

    def __str__(self) -> str:
        return f"ToolCall(name={self.name}, arguments={self.arguments}, call_id={self.call_id})"


@dataclass
class ToolParameter:
    name: str
    type: str | list[str]
    description: str
    enum: list[str] | None = None
    items: dict[str, object] | None = None
    required: bool = False


class Tool(ABC):
    """Base class for all tools."""

    def __init__(self, model_provider: str | None = None) -> None:
        self._model_provider = model_provider

    @cached_property
    def model_provider(self) -> str | None:
        return self.get_model_provider()

    @cached_property
    def name(self) -> str:
        return self.get_name()

    @cached_property
    def description(self) -> str:
        return self.get_description()

    @cached_property
    def parameters(self) -> list[ToolParameter]:
        return self.get_parameters()

    def get_model_provider(self) -> str | None:
        return self._model_provider

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def get_description(self) -> str:
        pass

    @abstractmethod
    def get_parameters(self) -> list[ToolParameter]:
        pass

    @abstractmethod
    async def execute(self, arguments: ToolCallArguments) -> ToolExecResult:
        pass

    def json_definition(self) -> dict[str, object]:
        """Tool definition in the shape expected by the Messages API."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.get_input_schema(),
        }

    def get_input_schema(self) -> dict[str, object]:
        schema: dict[str, object] = {"type": "object"}
        properties: dict[str, Property] = {}
        required: list[str] = []

        for param in self.parameters:
            param_schema: Property = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = param.enum
            if param.items:
                param_schema["items"] = param.items
            properties[param.name] = param_schema
            if param.required:
                required.append(param.name)

        schema["properties"] = properties
        if required:
            schema["required"] = required
        return schema

    def validate_arguments(self, arguments: ToolCallArguments) -> None:
        """
        Check argument shape against the declared parameters.

        Only presence of required fields, the `enum` of string parameters and
        the basic JSON type of every supplied field are checked; per-command
        requirements are enforced by the tool itself.

        Raises:
            ToolError: If the arguments do not match the schema.
        """
        if not isinstance(arguments, dict):
            raise ToolError(f"Arguments for {self.name} must be an object.")

        for param in self.parameters:
            value = arguments.get(param.name)
            if value is None:
                if param.required:
                    raise ToolError(f"Parameter `{param.name}` is required for the {self.name} tool.")
                continue
            if not _matches_type(value, param.type):
                raise ToolError(
                    f"Parameter `{param.name}` must be of type {param.type}, got {type(value).__name__}."
                )
            if param.enum and value not in param.enum:
                raise ToolError(
                    f"Unrecognized {param.name} {value}. The allowed values for the {self.name} tool are: "
                    f"{', '.join(param.enum)}",
                    kind="UnsupportedCommand",
                )


_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def _matches_type(value: object, expected: str | list[str]) -> bool:
    expected_types = [expected] if isinstance(expected, str) else expected
    for name in expected_types:
        python_types = _JSON_TYPES.get(name)
        if python_types is None:
            return True
        if isinstance(value, bool) and name in ("integer", "number"):
            continue
        if isinstance(value, python_types):
            return True
    return False


class ToolExecutor:
    """Dispatches tool calls to the matching tool, strictly in request order."""

    def __init__(self, tools: list[Tool]):
        self._tools = tools
        self._tool_map: dict[str, Tool] | None = None

    @property
    def tools(self) -> dict[str, Tool]:
        if self._tool_map is None:
            self._tool_map = {tool.name: tool for tool in self._tools}
        return self._tool_map

    def json_definitions(self) -> list[dict[str, object]]:
        return [tool.json_definition() for tool in self._tools]

    async def execute_tool_call(self, tool_call: ToolCall) -> ToolResult:
        """Execute one tool call; never raises."""
        tool = self.tools.get(tool_call.name)
        if tool is None:
            return ToolResult(
                name=tool_call.name,
                success=False,
                error=f"Tool '{tool_call.name}' not found. Available tools: {list(self.tools)}",
                error_kind="UnsupportedCommand",
                call_id=tool_call.call_id,
            )

        try:
            tool_exec_result = await tool.execute(tool_call.arguments)
        except Exception as e:
            logger.error(f"Error executing tool '{tool_call.name}': {e}", exc_info=True)
            return ToolResult(
                name=tool_call.name,
                success=False,
                error=f"Error executing tool '{tool_call.name}': {e}",
                error_kind="InternalError",
                call_id=tool_call.call_id,
            )

        return ToolResult(
            name=tool_call.name,
            success=tool_exec_result.error_code == 0,
            result=tool_exec_result.output,
            error=tool_exec_result.error,
            error_kind=tool_exec_result.error_kind,
            call_id=tool_call.call_id,
        )

    async def sequential_tool_call(self, tool_calls: list[ToolCall]) -> list[ToolResult]:
        """Execute tool calls one after another; later calls see earlier side effects."""
        return [await self.execute_tool_call(call) for call in tool_calls]
