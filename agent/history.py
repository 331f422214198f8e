"""Conversation history with explicit rollback."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from agent.response import ToolCall, ToolResult


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Turn:
    """One entry in the conversation. Tool turns remember the call that produced them."""
    role: Role
    content: str
    tool_call_id: str | None = None
    tool_name: str | None = None
    arguments: dict = field(default_factory=dict)
    # Tool turns from the same model reply share a round; request_text is
    # whatever the model said alongside its tool calls.
    round: int | None = None
    request_text: str = ""


class ConversationHistory:
    """
    Ordered log of turns for a single session.

    Turns are only ever appended; the one way to remove them is to cut the
    log back to an earlier length with ``truncate_to_length`` (or
    ``restore`` a ``snapshot``). Tool-call requests are never stored on
    their own, only the Tool turns holding their results, so the log cannot
    hold a request that has no answer.
    """

    def __init__(self, turns: list[Turn] | None = None):
        self._turns: list[Turn] = list(turns or [])

    def append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        return turn

    def add_user(self, content: str) -> Turn:
        return self.append(Turn(role=Role.USER, content=content))

    def add_assistant(self, content: str) -> Turn:
        return self.append(Turn(role=Role.ASSISTANT, content=content))

    def add_tool_result(
        self,
        call: ToolCall,
        result: ToolResult,
        round: int | None = None,
        request_text: str = "",
    ) -> Turn:
        return self.append(Turn(
            role=Role.TOOL,
            content=result.content,
            tool_call_id=call.id,
            tool_name=call.name,
            arguments=dict(call.args),
            round=round,
            request_text=request_text,
        ))

    def snapshot(self) -> int:
        """Return a marker that ``restore`` can roll back to."""
        return len(self._turns)

    def restore(self, snapshot: int) -> int:
        """Drop every turn appended after ``snapshot``. Returns the number removed."""
        return self.truncate_to_length(snapshot)

    def truncate_to_length(self, length: int) -> int:
        if length < 0 or length > len(self._turns):
            raise ValueError(
                f"Cannot truncate history of {len(self._turns)} turns to {length}"
            )
        removed = len(self._turns) - length
        del self._turns[length:]
        return removed

    def to_list(self) -> list[dict]:
        """Plain role/content dicts, e.g. for logging."""
        return [{"role": t.role.value, "content": t.content} for t in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    def __getitem__(self, index):
        return self._turns[index]
