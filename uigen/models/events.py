"""Events streamed to the caller while an agent run progresses."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from uigen.models.messages import Message, ToolResultPart

RunStatus = Literal["done", "aborted"]
FinishReason = Literal["completed", "step_limit", "token_budget", "cancelled", "error"]


class TextDeltaEvent(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    text: str


class ToolCallStartedEvent(BaseModel):
    type: Literal["tool-call-started"] = "tool-call-started"
    id: str
    name: str
    arguments: dict[str, Any]
    label: str


class ToolCallCompletedEvent(BaseModel):
    type: Literal["tool-call-completed"] = "tool-call-completed"
    id: str
    name: str
    result: ToolResultPart


class StepFinishedEvent(BaseModel):
    type: Literal["step-finished"] = "step-finished"
    step: int
    tool_calls: int
    output_tokens: int


class ErrorEvent(BaseModel):
    """A run-level failure. The message is deliberately generic."""

    type: Literal["error"] = "error"
    message: str


class FinishEvent(BaseModel):
    """Terminal event; always the last one of a run."""

    type: Literal["finish"] = "finish"
    status: RunStatus
    reason: FinishReason
    steps: int
    output_tokens: int
    messages: list[Message]
    files: dict[str, dict[str, Any]]


StreamEvent = Annotated[
    TextDeltaEvent
    | ToolCallStartedEvent
    | ToolCallCompletedEvent
    | StepFinishedEvent
    | ErrorEvent
    | FinishEvent,
    Field(discriminator="type"),
]
