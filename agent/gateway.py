"""Model gateway: the agent's only view of the language model."""

from __future__ import annotations

import json
from typing import Iterable, Protocol

from agent.exceptions import ModelResponseError
from agent.history import ConversationHistory, Role, Turn
from agent.models import OllamaClient
from agent.response import ExecutionSettings, ModelReply, ToolCall, new_call_id
from tools.base_tool import ToolDescriptor


class ModelGateway(Protocol):
    """Answers a conversation with either final text or tool calls."""

    async def complete(
        self,
        history: ConversationHistory,
        tools: Iterable[ToolDescriptor],
        settings: ExecutionSettings,
    ) -> ModelReply:
        ...


class OllamaGateway:
    """ModelGateway backed by Ollama's native function calling."""

    def __init__(self, client: OllamaClient, system_prompt: str = ""):
        self._client = client
        self.system_prompt = system_prompt

    async def complete(
        self,
        history: ConversationHistory,
        tools: Iterable[ToolDescriptor],
        settings: ExecutionSettings,
    ) -> ModelReply:
        tool_schemas = None
        if settings.tool_choice == "auto":
            tool_schemas = [d.to_ollama_schema() for d in tools] or None

        try:
            data = await self._client.chat(
                model=settings.model,
                messages=self.render_messages(history),
                tools=tool_schemas,
                temperature=settings.temperature,
                options=settings.options,
            )
        except ValueError as e:
            raise ModelResponseError(f"Ollama returned invalid JSON: {e}") from e
        return self.parse_reply(data)

    def render_messages(self, history: ConversationHistory) -> list[dict]:
        """
        Convert turns to Ollama chat messages.

        Each round of Tool turns is preceded by one assistant message
        carrying that round's ``tool_calls`` (and any text the model sent
        with them), which is how Ollama expects tool results to be threaded
        back.
        """
        messages: list[dict] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})

        pending: list[Turn] = []
        for turn in history:
            if turn.role is Role.TOOL:
                if pending and pending[-1].round != turn.round:
                    messages.extend(self._render_tool_run(pending))
                    pending = []
                pending.append(turn)
                continue
            if pending:
                messages.extend(self._render_tool_run(pending))
                pending = []
            messages.append({"role": turn.role.value, "content": turn.content})
        if pending:
            messages.extend(self._render_tool_run(pending))
        return messages

    @staticmethod
    def _render_tool_run(turns: list[Turn]) -> list[dict]:
        messages = [{
            "role": "assistant",
            "content": turns[0].request_text,
            "tool_calls": [
                {"function": {"name": t.tool_name, "arguments": dict(t.arguments)}}
                for t in turns
            ],
        }]
        for t in turns:
            messages.append({"role": "tool", "content": t.content, "tool_name": t.tool_name})
        return messages

    @staticmethod
    def parse_reply(data: object) -> ModelReply:
        """Interpret an /api/chat response body."""
        if not isinstance(data, dict) or not isinstance(data.get("message"), dict):
            raise ModelResponseError(f"Ollama reply has no message: {data!r}")
        message = data["message"]

        content = message.get("content") or ""
        if not isinstance(content, str):
            raise ModelResponseError("Ollama reply content is not text")

        tool_calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") if isinstance(raw, dict) else None
            if not isinstance(function, dict) or not function.get("name"):
                raise ModelResponseError(f"Malformed tool call in Ollama reply: {raw!r}")

            args = function.get("arguments") or {}
            if isinstance(args, str):
                try:
                    args = json.loads(args) if args.strip() else {}
                except json.JSONDecodeError as e:
                    raise ModelResponseError(
                        f"Tool call '{function['name']}' has unparseable arguments: {e}"
                    ) from e
            if not isinstance(args, dict):
                raise ModelResponseError(
                    f"Tool call '{function['name']}' arguments must be an object"
                )

            tool_calls.append(ToolCall(
                name=str(function["name"]).strip(),
                args=args,
                id=raw.get("id") or new_call_id(),
            ))

        return ModelReply(content=content, tool_calls=tool_calls)
