"""Text-generation backends driven by the agent orchestrator."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import anthropic
import httpx
from anthropic import AsyncAnthropic
from typing_extensions import override

from uigen.models.messages import Message, TextPart, ToolCallPart, ToolResultPart
from uigen.tools.base import ToolCall

logger = logging.getLogger(__name__)


class BackendTransportError(Exception):
    """The backend could not be reached or returned something unusable."""

    kind = "BackendTransportError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message: str = message


@dataclass
class BackendRequest:
    system: str
    messages: list[Message]
    tools: list[dict[str, object]]
    max_tokens: int


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCallRequest:
    tool_call: ToolCall


@dataclass
class EndOfTurn:
    output_tokens: int = 0
    stop_reason: str | None = None


BackendEvent = TextDelta | ToolCallRequest | EndOfTurn


class Backend(ABC):
    """
    A text-generation backend.

    `stream_turn` yields answer deltas and complete tool invocations for one
    model turn and always finishes with exactly one `EndOfTurn`.
    """

    name: str = "backend"

    @abstractmethod
    def stream_turn(self, request: BackendRequest) -> AsyncIterator[BackendEvent]:
        pass

    async def aclose(self) -> None:
        return None


def _to_anthropic_blocks(message: Message) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for part in message.content:
        if isinstance(part, TextPart):
            if part.text:
                blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ToolCallPart):
            blocks.append({"type": "tool_use", "id": part.id, "name": part.name, "input": part.arguments})
        elif isinstance(part, ToolResultPart):
            blocks.append(
                {
                    "type": "tool_result",
                    "tool_use_id": part.id,
                    "content": part.as_text(),
                    "is_error": not part.ok,
                }
            )
    return blocks


def to_anthropic_messages(messages: list[Message]) -> tuple[str | None, list[dict[str, Any]]]:
    """
    Convert the conversation to Messages API form.

    System entries are lifted out, tool results travel as user turns, and
    consecutive turns of the same role are merged.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []
    for message in messages:
        if message.role == "system":
            system_parts.append(message.text)
            continue
        role = "assistant" if message.role == "assistant" else "user"
        blocks = _to_anthropic_blocks(message)
        if not blocks:
            continue
        if converted and converted[-1]["role"] == role:
            converted[-1]["content"].extend(blocks)
        else:
            converted.append({"role": role, "content": blocks})
    return ("\n".join(system_parts) or None), converted


class AnthropicBackend(Backend):
    """Streams turns from Anthropic's Messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-haiku-4-5",
        timeout: float = 120.0,
        max_retries: int = 2,
        base_url: str | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": timeout,
            "max_retries": max_retries,
        }
        if base_url:
            client_kwargs["base_url"] = base_url
        self.model = model
        self.client = AsyncAnthropic(**client_kwargs)

    @override
    async def aclose(self) -> None:
        await self.client.close()

    def _build_params(self, request: BackendRequest) -> dict[str, Any]:
        extra_system, messages = to_anthropic_messages(request.messages)
        system = request.system if not extra_system else f"{request.system}\n{extra_system}"
        return {
            "model": self.model,
            "max_tokens": request.max_tokens,
            "system": [
                {"type": "text", "text": system, "cache_control": {"type": "ephemeral"}},
            ],
            "messages": messages,
            "tools": request.tools,
        }

    @override
    async def stream_turn(self, request: BackendRequest) -> AsyncIterator[BackendEvent]:
        params = self._build_params(request)
        try:
            async with self.client.messages.stream(**params) as stream:
                async for event in stream:
                    if event.type == "text":
                        yield TextDelta(text=event.text)
                    elif event.type == "content_block_stop" and event.content_block.type == "tool_use":
                        block = event.content_block
                        if not isinstance(block.input, dict):
                            raise BackendTransportError(
                                f"Tool call {block.id} carried non-object input of type {type(block.input).__name__}"
                            )
                        yield ToolCallRequest(
                            tool_call=ToolCall(name=block.name, call_id=block.id, arguments=dict(block.input))
                        )
                final = await stream.get_final_message()
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}", exc_info=True)
            raise BackendTransportError(f"Anthropic API error: {e}") from e
        except httpx.HTTPError as e:
            # Raised as-is by the SDK when the connection breaks while the stream is read.
            logger.error(f"Anthropic stream transport error: {e!r}", exc_info=True)
            raise BackendTransportError(f"Anthropic stream transport error: {e!r}") from e

        yield EndOfTurn(output_tokens=final.usage.output_tokens, stop_reason=final.stop_reason)

