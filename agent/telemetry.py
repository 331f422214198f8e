"""Telemetry and metrics logging for agent sessions."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
import json
import os
import threading
import time
from typing import Any

from agent.config import TelemetryConfig


@dataclass
class LLMCallMetric:
    """Metrics for a single model call."""
    model: str
    round: int
    tool_calls: int
    latency_ms: float
    error: str | None = None


@dataclass
class ToolCallMetric:
    """Metrics for a single tool call."""
    tool_name: str
    args: dict
    duration_ms: float
    success: bool
    error_kind: str | None = None


@dataclass
class ToolRoundMetric:
    """Metrics for one dispatch round within a user turn."""
    round: int
    tool_names: list[str]
    duration_ms: float


@dataclass
class RollbackMetric:
    """A history rollback after a failed model call."""
    removed_turns: int
    reason: str


@dataclass
class SessionMetrics:
    """Session-level metrics summary."""
    session_id: str
    user_turns: int
    tool_rounds: int
    tool_calls: list[ToolCallMetric]
    llm_calls: list[LLMCallMetric]
    rollbacks: int
    total_duration_ms: float


class Telemetry:
    """Capture structured telemetry for a session."""

    def __init__(self, config: TelemetryConfig, session_id: str):
        self.config = config
        self.session_id = session_id
        self._lock = threading.Lock()
        self._start_time = time.monotonic()
        self._llm_calls: list[LLMCallMetric] = []
        self._tool_calls: list[ToolCallMetric] = []
        self._rounds: list[ToolRoundMetric] = []
        self._rollbacks: list[RollbackMetric] = []
        self._user_turns = 0
        self._log_path: str | None = None

        if self.config.enabled:
            os.makedirs(self.config.log_dir, exist_ok=True)
            self._log_path = os.path.join(self.config.log_dir, f"{session_id}.jsonl")

    def record_user_turn(self) -> None:
        if not self.config.enabled:
            return
        self._user_turns += 1

    def record_llm_call(
        self,
        model: str,
        round: int,
        tool_calls: int,
        latency_ms: float,
        error: str | None = None,
    ) -> None:
        """Record a model call metric."""
        if not self.config.enabled:
            return
        metric = LLMCallMetric(
            model=model,
            round=round,
            tool_calls=tool_calls,
            latency_ms=latency_ms,
            error=error,
        )
        self._llm_calls.append(metric)
        self._log_event("llm_call", asdict(metric))

    def record_tool_call(
        self,
        tool_name: str,
        args: dict,
        duration_ms: float,
        success: bool,
        error_kind: str | None = None,
    ) -> None:
        """Record a tool call metric."""
        if not self.config.enabled:
            return
        metric = ToolCallMetric(
            tool_name=tool_name,
            args=args,
            duration_ms=duration_ms,
            success=success,
            error_kind=error_kind,
        )
        self._tool_calls.append(metric)
        self._log_event("tool_call", asdict(metric))

    def record_round(self, round: int, tool_names: list[str], duration_ms: float) -> None:
        """Record a tool dispatch round."""
        if not self.config.enabled:
            return
        metric = ToolRoundMetric(round=round, tool_names=list(tool_names), duration_ms=duration_ms)
        self._rounds.append(metric)
        self._log_event("tool_round", asdict(metric))

    def record_rollback(self, removed_turns: int, reason: str) -> None:
        """Record a history rollback."""
        if not self.config.enabled:
            return
        metric = RollbackMetric(removed_turns=removed_turns, reason=reason)
        self._rollbacks.append(metric)
        self._log_event("rollback", asdict(metric))

    def finalize(self) -> None:
        """Write the session summary."""
        if not self.config.enabled:
            return
        self._log_event("session_summary", self.summary_dict())

    def summary(self) -> SessionMetrics:
        """Return a session-level metrics summary."""
        total_duration_ms = (time.monotonic() - self._start_time) * 1000
        return SessionMetrics(
            session_id=self.session_id,
            user_turns=self._user_turns,
            tool_rounds=len(self._rounds),
            tool_calls=list(self._tool_calls),
            llm_calls=list(self._llm_calls),
            rollbacks=len(self._rollbacks),
            total_duration_ms=total_duration_ms,
        )

    def summary_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable summary."""
        summary = self.summary()
        return {
            "session_id": summary.session_id,
            "user_turns": summary.user_turns,
            "tool_rounds": summary.tool_rounds,
            "tool_calls": [asdict(m) for m in summary.tool_calls],
            "llm_calls": [asdict(m) for m in summary.llm_calls],
            "rollbacks": summary.rollbacks,
            "total_duration_ms": summary.total_duration_ms,
        }

    def _log_event(self, event_type: str, payload: dict[str, Any]) -> None:
        if not self.config.enabled or not self._log_path:
            return
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": event_type,
            **payload,
        }
        line = json.dumps(record, default=str)
        with self._lock:
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
