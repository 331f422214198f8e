"""ToolCall, ToolResult and ModelReply dataclasses."""

import uuid
from dataclasses import dataclass, field
from enum import Enum


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


@dataclass
class ToolCall:
    """Tool invocation requested by the model."""
    name: str
    args: dict = field(default_factory=dict)
    id: str = field(default_factory=new_call_id)


class ToolErrorKind(str, Enum):
    UNKNOWN_TOOL = "UnknownTool"
    MISSING_ARGUMENT = "MissingArgument"
    INVALID_ARGUMENT = "InvalidArgument"
    TOOL_FAILURE = "ToolFailure"
    TOOL_TIMEOUT = "ToolTimeout"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool invocation. Failures carry an error kind."""
    success: bool
    text: str
    error_kind: ToolErrorKind | None = None

    @classmethod
    def ok(cls, text: str) -> "ToolResult":
        return cls(success=True, text=text)

    @classmethod
    def fail(cls, kind: ToolErrorKind, message: str) -> "ToolResult":
        return cls(success=False, text=message, error_kind=kind)

    @property
    def content(self) -> str:
        """Text appended to the conversation for the model to read."""
        if self.success:
            return self.text
        return f"[{self.error_kind.value}] {self.text}"


@dataclass
class ModelReply:
    """A model response: final text, or tool calls to resolve first."""
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


@dataclass
class ExecutionSettings:
    """Per-request model settings passed to the gateway."""
    model: str
    tool_choice: str = "auto"
    temperature: float = 0.7
    options: dict = field(default_factory=dict)
