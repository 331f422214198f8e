"""Tool registration and dispatch."""

from __future__ import annotations

import asyncio
import inspect
import json
import time
from typing import TYPE_CHECKING, Any, Callable, Iterator

from agent.exceptions import DuplicateToolNameError, ToolDescriptorError
from agent.logs import build_logger
from agent.response import ToolCall, ToolErrorKind, ToolResult
from tools.base_tool import PARAMETER_TYPES, Tool, ToolDescriptor, ToolParameter

if TYPE_CHECKING:
    from agent.telemetry import Telemetry


class ArgumentError(Exception):
    """Raised while binding call arguments to a descriptor."""

    def __init__(self, kind: ToolErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class _DeadlineExceeded(Exception):
    """The registry's own per-tool timeout fired."""


async def _wait_with_deadline(awaitable, timeout: float):
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    Unlike ``asyncio.wait_for`` this keeps a TimeoutError raised inside the
    tool (an HTTP client timeout, say) apart from the registry's deadline:
    the former propagates unchanged, only the latter raises
    ``_DeadlineExceeded``.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise _DeadlineExceeded()


class ToolListing:
    """Restartable view over registered descriptors, in registration order."""

    def __init__(self, entries: dict[str, tuple[ToolDescriptor, Callable]]):
        self._entries = entries

    def __iter__(self) -> Iterator[ToolDescriptor]:
        for descriptor, _ in self._entries.values():
            yield descriptor

    def __len__(self) -> int:
        return len(self._entries)


class ToolRegistry:
    """
    Holds the tools the model may call and dispatches calls to them.

    ``invoke`` never raises for a bad call or a broken tool: every problem
    comes back as a failed ``ToolResult`` so the model can read it and the
    conversation can go on.
    """

    def __init__(
        self,
        log_dir: str = "data/logs",
        default_timeout: float | None = None,
        timeouts: dict[str, float] | None = None,
        telemetry: "Telemetry | None" = None,
    ):
        self._entries: dict[str, tuple[ToolDescriptor, Callable]] = {}
        self.default_timeout = default_timeout
        self.timeouts = dict(timeouts or {})
        self.telemetry = telemetry
        self._logger = build_logger(f"tool_registry.{id(self)}", log_dir, "tool_registry.log")

    # ── Registration ─────────────────────────────────────────────────

    def register(self, descriptor: ToolDescriptor, function: Callable[..., Any]) -> None:
        """Register ``function`` under ``descriptor.name``."""
        self._validate_descriptor(descriptor)
        if not callable(function):
            raise ToolDescriptorError(f"Tool '{descriptor.name}' function is not callable")
        if descriptor.name in self._entries:
            raise DuplicateToolNameError(descriptor.name)
        self._entries[descriptor.name] = (descriptor, function)

    def register_tool(self, tool: Tool) -> None:
        self.register(tool.descriptor(), tool.execute)

    @staticmethod
    def _validate_descriptor(descriptor: ToolDescriptor) -> None:
        name = descriptor.name
        if not isinstance(name, str) or not name.strip() or any(c.isspace() for c in name):
            raise ToolDescriptorError(f"Invalid tool name: {name!r}")
        if not isinstance(descriptor.description, str):
            raise ToolDescriptorError(f"Tool '{name}' description must be a string")

        seen: set[str] = set()
        for param in descriptor.parameters:
            if not isinstance(param, ToolParameter) or not param.name:
                raise ToolDescriptorError(f"Tool '{name}' has an invalid parameter: {param!r}")
            if param.name in seen:
                raise ToolDescriptorError(f"Tool '{name}' declares '{param.name}' twice")
            if param.type not in PARAMETER_TYPES:
                raise ToolDescriptorError(
                    f"Tool '{name}' parameter '{param.name}' has unknown type '{param.type}'"
                )
            if param.required and param.default is not None:
                raise ToolDescriptorError(
                    f"Tool '{name}' parameter '{param.name}' is required but has a default"
                )
            seen.add(param.name)

    # ── Lookup ───────────────────────────────────────────────────────

    def list(self) -> ToolListing:
        return ToolListing(self._entries)

    @property
    def tool_names(self) -> list[str]:
        """Registered tool names in registration order."""
        return list(self._entries)

    def to_ollama_tools(self) -> list[dict]:
        return [d.to_ollama_schema() for d in self.list()]

    def get_tool_descriptions(self) -> str:
        """Listing of registered tools grouped by plugin."""
        groups: dict[str, list[ToolDescriptor]] = {}
        for descriptor in self.list():
            groups.setdefault(descriptor.plugin or "General", []).append(descriptor)

        lines = []
        for plugin, descriptors in groups.items():
            lines.append(f"Plugin: {plugin}")
            for d in descriptors:
                lines.append(f"  - {d.name}: {d.description}")
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ── Dispatch ─────────────────────────────────────────────────────

    async def invoke(self, call: ToolCall) -> ToolResult:
        """Resolve, validate and run a tool call."""
        started = time.monotonic()
        result = await self._invoke(call)
        duration_ms = (time.monotonic() - started) * 1000

        if result.success:
            self._logger.info("Tool '%s' succeeded in %.1f ms", call.name, duration_ms)
        else:
            self._logger.warning(
                "Tool '%s' failed (%s): %s", call.name, result.error_kind.value, result.text
            )
        if self.telemetry:
            self.telemetry.record_tool_call(
                tool_name=call.name,
                args=call.args,
                duration_ms=duration_ms,
                success=result.success,
                error_kind=result.error_kind.value if result.error_kind else None,
            )
        return result

    async def _invoke(self, call: ToolCall) -> ToolResult:
        entry = self._entries.get(call.name)
        if entry is None:
            available = ", ".join(self.tool_names) or "none"
            return ToolResult.fail(
                ToolErrorKind.UNKNOWN_TOOL,
                f"Unknown tool '{call.name}'. Available tools: {available}",
            )
        descriptor, function = entry

        try:
            kwargs = self.bind_arguments(descriptor, call.args)
        except ArgumentError as e:
            return ToolResult.fail(e.kind, str(e))

        timeout = self._timeout_for(descriptor.name)
        try:
            outcome = function(**kwargs)
            if inspect.isawaitable(outcome):
                if timeout:
                    outcome = await _wait_with_deadline(outcome, timeout)
                else:
                    outcome = await outcome
        except _DeadlineExceeded:
            return ToolResult.fail(
                ToolErrorKind.TOOL_TIMEOUT,
                f"Tool '{descriptor.name}' timed out after {timeout}s",
            )
        except Exception as e:
            self._logger.exception("Tool '%s' raised", descriptor.name)
            return ToolResult.fail(
                ToolErrorKind.TOOL_FAILURE,
                f"Tool '{descriptor.name}' error: {e}",
            )

        if outcome is None:
            return ToolResult.ok("")
        return ToolResult.ok(outcome if isinstance(outcome, str) else str(outcome))

    def bind_arguments(self, descriptor: ToolDescriptor, args: dict | None) -> dict[str, Any]:
        """Check ``args`` against the declared parameters and coerce their values."""
        supplied = dict(args or {})
        bound: dict[str, Any] = {}

        for param in descriptor.parameters:
            value = supplied.pop(param.name, None)
            if value is None:
                if param.required:
                    raise ArgumentError(
                        ToolErrorKind.MISSING_ARGUMENT,
                        f"Tool '{descriptor.name}' requires argument '{param.name}'",
                    )
                bound[param.name] = param.default
                continue
            try:
                bound[param.name] = coerce_value(param.type, value)
            except (TypeError, ValueError) as e:
                raise ArgumentError(
                    ToolErrorKind.INVALID_ARGUMENT,
                    f"Tool '{descriptor.name}' argument '{param.name}': {e}",
                )

        if supplied:
            self._logger.info(
                "Dropping undeclared arguments for '%s': %s",
                descriptor.name, ", ".join(sorted(supplied)),
            )
        return bound

    def _timeout_for(self, name: str) -> float | None:
        timeout = self.timeouts.get(name, self.default_timeout)
        return timeout if timeout and timeout > 0 else None


def coerce_value(type_name: str, value: Any) -> Any:
    """Coerce a model-supplied value to a declared parameter type."""
    if type_name == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        raise ValueError(f"expected a boolean, got {value!r}")

    if type_name == "integer":
        if isinstance(value, bool):
            raise ValueError(f"expected an integer, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                raise ValueError(f"expected an integer, got {value!r}")
        raise ValueError(f"expected an integer, got {value!r}")

    if type_name == "number":
        if isinstance(value, bool):
            raise ValueError(f"expected a number, got {value!r}")
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValueError(f"expected a number, got {value!r}")
        raise ValueError(f"expected a number, got {value!r}")

    # string
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    raise ValueError(f"expected a string, got {value!r}")
