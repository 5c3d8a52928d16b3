from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator

Role = Literal["system", "user", "assistant", "tool"]


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    """A tool invocation issued by the assistant."""

    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    """Outcome of one tool invocation, echoed back to the model."""

    type: Literal["tool_result"] = "tool_result"
    id: str
    name: str
    ok: bool
    output: str | None = None
    error_kind: str | None = None
    error: str | None = None

    def as_text(self) -> str:
        if self.ok:
            return self.output or ""
        return f"Error [{self.error_kind}]: {self.error}"


MessagePart = Annotated[TextPart | ToolCallPart | ToolResultPart, Field(discriminator="type")]


class Message(BaseModel):
    """One conversation entry. A plain string `content` becomes a single text part."""

    role: Role
    content: list[MessagePart] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [{"type": "text", "text": value}]
        return value

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content if isinstance(part, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [part for part in self.content if isinstance(part, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [part for part in self.content if isinstance(part, ToolResultPart)]
