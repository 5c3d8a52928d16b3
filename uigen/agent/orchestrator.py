"""
The multi-step agent loop.

A run alternates between asking the backend for a turn and applying the tool
calls that turn requested, until the backend answers without tool calls or a
step, token or cancellation limit stops it. Progress is reported as a finite
stream of events that always ends with a single `FinishEvent`.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import StrEnum

from uigen.agent.backend import (
    Backend,
    BackendRequest,
    BackendTransportError,
    EndOfTurn,
    TextDelta,
    ToolCallRequest,
)
from uigen.agent.persistence import PersistenceHook, notify_persistence_hook
from uigen.filesystem.codec import serialize
from uigen.filesystem.virtual_fs import VirtualFileSystem
from uigen.models.events import (
    ErrorEvent,
    FinishEvent,
    FinishReason,
    StepFinishedEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolCallCompletedEvent,
    ToolCallStartedEvent,
)
from uigen.models.messages import Message, MessagePart, TextPart, ToolCallPart, ToolResultPart
from uigen.prompts import get_prompts
from uigen.tools.base import ToolCall, ToolExecutor
from uigen.tools.utils.formatting_utils import describe_tool_call

logger = logging.getLogger(__name__)

BACKEND_FAILURE_MESSAGE = "The assistant is temporarily unavailable. Please try again."


class OrchestratorState(StrEnum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    APPLYING_TOOLS = "applying_tools"
    DONE = "done"
    ABORTED = "aborted"


class AgentOrchestrator:
    """
    Drives one agent run against one VirtualFileSystem.

    An instance is single use: construct it per request together with the file
    system it mutates.
    """

    def __init__(
        self,
        backend: Backend,
        file_system: VirtualFileSystem,
        tool_executor: ToolExecutor,
        system_prompt: str | None = None,
        max_steps: int = 40,
        max_output_tokens: int = 10_000,
        persistence_hook: PersistenceHook | None = None,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        if max_output_tokens < 1:
            raise ValueError("max_output_tokens must be at least 1")

        self.backend = backend
        self.file_system = file_system
        self.tool_executor = tool_executor
        self.system_prompt = system_prompt if system_prompt is not None else get_prompts()["generation"]
        self.max_steps = max_steps
        self.max_output_tokens = max_output_tokens
        self.persistence_hook = persistence_hook

        self.state = OrchestratorState.IDLE
        self.steps = 0
        self.output_tokens = 0
        self._conversation: list[Message] = []
        self._finished = False

    @property
    def messages(self) -> list[Message]:
        """The conversation without the leading system instruction."""
        return list(self._conversation[1:])

    async def run(
        self,
        history: list[Message],
        project_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run the agent loop and stream its events.

        Tool failures are fed back to the model as results. A backend failure
        ends the run with an `ErrorEvent` followed by the terminal event; the
        file system changes made so far are kept either way.
        """
        if self.state is not OrchestratorState.IDLE:
            raise RuntimeError("An AgentOrchestrator drives exactly one run.")

        self._conversation = [Message(role="system", content=self.system_prompt), *history]
        tool_definitions = self.tool_executor.json_definitions()
        reason: FinishReason | None = None
        logger.info(
            f"Starting agent run with backend '{self.backend.name}', "
            f"{len(history)} prior messages, max_steps={self.max_steps}"
        )

        try:
            while reason is None:
                if cancel_event is not None and cancel_event.is_set():
                    reason = "cancelled"
                    break
                if self.steps >= self.max_steps:
                    logger.info(f"Step limit of {self.max_steps} reached")
                    reason = "step_limit"
                    break
                if self.output_tokens >= self.max_output_tokens:
                    reason = "token_budget"
                    break

                self.state = OrchestratorState.AWAITING_MODEL
                self.steps += 1
                request = BackendRequest(
                    system=self.system_prompt,
                    messages=self.messages,
                    tools=tool_definitions,
                    max_tokens=self.max_output_tokens - self.output_tokens,
                )

                text_chunks: list[str] = []
                tool_calls: list[ToolCall] = []
                end_of_turn: EndOfTurn | None = None
                try:
                    async with aclosing(self.backend.stream_turn(request)) as stream:
                        async for event in stream:
                            match event:
                                case TextDelta(text=text):
                                    text_chunks.append(text)
                                    yield TextDeltaEvent(text=text)
                                case ToolCallRequest(tool_call=tool_call):
                                    tool_calls.append(tool_call)
                                case EndOfTurn():
                                    end_of_turn = event
                            if cancel_event is not None and cancel_event.is_set():
                                break
                    if end_of_turn is None and not (cancel_event is not None and cancel_event.is_set()):
                        raise BackendTransportError("Backend stream ended without an end-of-turn marker.")
                except Exception as e:
                    # Anything escaping the backend stream ends the run on the error path.
                    if isinstance(e, BackendTransportError):
                        logger.error(f"Backend failure on step {self.steps}: {e.message}")
                    else:
                        logger.error(f"Unexpected backend failure on step {self.steps}: {e!r}", exc_info=True)
                    self._append_assistant_turn(text_chunks, [])
                    yield ErrorEvent(message=BACKEND_FAILURE_MESSAGE)
                    reason = "error"
                    break

                if end_of_turn is None:
                    # Cancelled mid-stream; unapplied tool calls are dropped.
                    self._append_assistant_turn(text_chunks, [])
                    reason = "cancelled"
                    break

                self.output_tokens += end_of_turn.output_tokens
                self._append_assistant_turn(text_chunks, tool_calls)

                self.state = OrchestratorState.APPLYING_TOOLS
                async for event in self._apply_tool_calls(tool_calls):
                    yield event

                yield StepFinishedEvent(
                    step=self.steps, tool_calls=len(tool_calls), output_tokens=self.output_tokens
                )

                truncated = end_of_turn.stop_reason == "max_tokens"
                if not tool_calls and not truncated:
                    reason = "completed"
                elif truncated or self.output_tokens >= self.max_output_tokens:
                    logger.info(f"Output token budget exhausted after {self.output_tokens} tokens")
                    reason = "token_budget"

            yield await self._finalize(reason, project_id)
        finally:
            if not self._finished:
                # The consumer went away or the task was cancelled before the end.
                await self._finalize("cancelled", project_id)

    def _append_assistant_turn(self, text_chunks: list[str], tool_calls: list[ToolCall]) -> None:
        content: list[MessagePart] = []
        text = "".join(text_chunks)
        if text:
            content.append(TextPart(text=text))
        content.extend(
            ToolCallPart(id=call.call_id, name=call.name, arguments=dict(call.arguments))
            for call in tool_calls
        )
        if content:
            self._conversation.append(Message(role="assistant", content=content))

    async def _apply_tool_calls(self, tool_calls: list[ToolCall]) -> AsyncIterator[StreamEvent]:
        """Apply tool calls one by one, in the order the backend requested them."""
        for tool_call in tool_calls:
            arguments = dict(tool_call.arguments)
            yield ToolCallStartedEvent(
                id=tool_call.call_id,
                name=tool_call.name,
                arguments=arguments,
                label=describe_tool_call(tool_call.name, arguments),
            )
            result = await self.tool_executor.execute_tool_call(tool_call)
            part = ToolResultPart(
                id=result.call_id,
                name=result.name,
                ok=result.success,
                output=result.result,
                error_kind=result.error_kind,
                error=result.error,
            )
            if not result.success:
                logger.info(f"Tool call {tool_call.name} failed: [{result.error_kind}] {result.error}")
            self._conversation.append(Message(role="tool", content=[part]))
            yield ToolCallCompletedEvent(id=tool_call.call_id, name=tool_call.name, result=part)

    async def _finalize(self, reason: FinishReason, project_id: str | None) -> FinishEvent:
        self._finished = True
        status = "done" if reason == "completed" else "aborted"
        self.state = OrchestratorState.DONE if status == "done" else OrchestratorState.ABORTED

        files = serialize(self.file_system)
        messages = self.messages
        await notify_persistence_hook(self.persistence_hook, project_id, messages, files)

        logger.info(
            f"Agent run finished: status={status}, reason={reason}, steps={self.steps}, "
            f"output_tokens={self.output_tokens}"
        )
        return FinishEvent(
            status=status,
            reason=reason,
            steps=self.steps,
            output_tokens=self.output_tokens,
            messages=messages,
            files=files,
        )
