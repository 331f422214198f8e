"""Agent class: the function-calling loop around the model gateway."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable

from agent.config import AgentConfig
from agent.exceptions import MaxToolRoundsError, ModelGatewayError
from agent.gateway import ModelGateway
from agent.history import ConversationHistory
from agent.logs import build_logger
from agent.response import ExecutionSettings, ModelReply, ToolCall, ToolResult
from agent.telemetry import Telemetry
from tools.tool_registry import ToolRegistry


EXIT_COMMAND = "exit"


class AgentState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    MODEL_REQUESTED = "model_requested"
    TOOL_DISPATCH = "tool_dispatch"
    RESPONDED = "responded"
    CLOSED = "closed"


def is_exit_input(text: str | None) -> bool:
    """Blank input, EOF (None) or the exit command end the session."""
    if text is None or not text.strip():
        return True
    return text.lower() == EXIT_COMMAND


class Agent:
    """
    Drives one conversation: user turn → model → tool rounds → answer.

    The history is the only state carried between model calls. If the
    model call fails (or the turn is cancelled) the history is rolled back
    so the failed turn never reaches later requests.
    """

    def __init__(
        self,
        config: AgentConfig,
        gateway: ModelGateway,
        registry: ToolRegistry,
        history: ConversationHistory | None = None,
        telemetry: Telemetry | None = None,
        on_tool_result: Callable[[ToolCall, ToolResult], None] | None = None,
    ):
        self.config = config
        self.gateway = gateway
        self.registry = registry
        self.history = history if history is not None else ConversationHistory()
        self.telemetry = telemetry
        self.on_tool_result = on_tool_result
        self.state = AgentState.AWAITING_INPUT
        self._checkpoint = len(self.history)
        self._logger = build_logger(f"agent.{id(self)}", config.log_dir, "agent.log")

    # ── Session loop ─────────────────────────────────────────────────

    async def run(
        self,
        read_input: Callable[[], Awaitable[str | None]],
        emit: Callable[[str], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        """Read user input until the exit sentinel, answering each message."""
        self.state = AgentState.AWAITING_INPUT
        while True:
            user_input = await read_input()
            if is_exit_input(user_input):
                self.close()
                return

            try:
                answer = await self.respond(user_input)
            except ModelGatewayError as e:
                if on_error:
                    on_error(e)
                continue

            emit(answer)
            self.state = AgentState.AWAITING_INPUT

    def close(self) -> None:
        self.state = AgentState.CLOSED
        if self.telemetry:
            self.telemetry.finalize()

    # ── One user turn ────────────────────────────────────────────────

    async def respond(self, user_message: str) -> str:
        """
        Answer one user message, resolving any tool calls the model makes.

        Raises ModelGatewayError (after rolling the history back) when the
        model cannot be reached or keeps asking for tools past
        ``max_tool_rounds``.
        """
        if self.state is AgentState.CLOSED:
            raise RuntimeError("Session is closed")

        turn_start = self.history.snapshot()
        self._checkpoint = turn_start
        self.history.add_user(user_message)
        if self.telemetry:
            self.telemetry.record_user_turn()

        try:
            answer = await self._run_rounds()
        except asyncio.CancelledError:
            self._rollback(turn_start, "cancelled")
            self.state = AgentState.AWAITING_INPUT
            raise
        except Exception as e:
            self._rollback(turn_start, str(e))
            self.state = AgentState.AWAITING_INPUT
            if isinstance(e, ModelGatewayError):
                raise
            raise ModelGatewayError(str(e)) from e

        self.history.add_assistant(answer)
        self.state = AgentState.RESPONDED
        return answer

    async def _run_rounds(self) -> str:
        max_rounds = self.config.max_tool_rounds
        rounds = 0
        while True:
            forced = rounds >= max_rounds
            reply = await self._request_model(
                rounds, "none" if forced else self.config.tool_choice
            )
            if reply.is_final:
                return reply.content
            if forced:
                raise MaxToolRoundsError(
                    f"Model still requested tools after {max_rounds} round(s)"
                )

            rounds += 1
            await self._dispatch(reply, rounds)
            self._checkpoint = self.history.snapshot()

    async def _request_model(self, round_no: int, tool_choice: str) -> ModelReply:
        self.state = AgentState.MODEL_REQUESTED
        settings = self.execution_settings(tool_choice)
        started = time.monotonic()
        try:
            reply = await self.gateway.complete(self.history, self.registry.list(), settings)
        except Exception as e:
            self._logger.warning("Model call failed in round %d: %s", round_no, e)
            if self.telemetry:
                self.telemetry.record_llm_call(
                    model=settings.model,
                    round=round_no,
                    tool_calls=0,
                    latency_ms=(time.monotonic() - started) * 1000,
                    error=str(e),
                )
            raise

        if self.telemetry:
            self.telemetry.record_llm_call(
                model=settings.model,
                round=round_no,
                tool_calls=len(reply.tool_calls),
                latency_ms=(time.monotonic() - started) * 1000,
            )
        return reply

    async def _dispatch(self, reply: ModelReply, round_no: int) -> None:
        """Run one round of tool calls; turns are appended in request order."""
        calls = reply.tool_calls
        self.state = AgentState.TOOL_DISPATCH
        self._logger.info(
            "Round %d: dispatching %s", round_no, ", ".join(c.name for c in calls)
        )
        started = time.monotonic()

        if self.config.tool_execution.parallel and len(calls) > 1:
            results = await asyncio.gather(*(self.registry.invoke(c) for c in calls))
        else:
            results = []
            for call in calls:
                results.append(await self.registry.invoke(call))

        for call, result in zip(calls, results):
            self.history.add_tool_result(
                call, result, round=round_no, request_text=reply.content
            )
            if self.on_tool_result:
                self.on_tool_result(call, result)

        if self.telemetry:
            self.telemetry.record_round(
                round=round_no,
                tool_names=[c.name for c in calls],
                duration_ms=(time.monotonic() - started) * 1000,
            )

    def execution_settings(self, tool_choice: str | None = None) -> ExecutionSettings:
        chat_model = self.config.chat_model
        return ExecutionSettings(
            model=chat_model.model_name,
            tool_choice=tool_choice or self.config.tool_choice,
            temperature=chat_model.temperature,
            options=dict(chat_model.options),
        )

    # ── History management ───────────────────────────────────────────

    def _rollback(self, turn_start: int, reason: str) -> None:
        """Restore the last consistent history for the configured scope."""
        if self.config.history.rollback_scope == "round":
            target = self._checkpoint
        else:
            target = turn_start
        target = min(target, len(self.history))
        removed = self.history.restore(target)
        self._checkpoint = target
        self._logger.warning("Rolled back %d turn(s): %s", removed, reason)
        if self.telemetry:
            self.telemetry.record_rollback(removed_turns=removed, reason=reason)
