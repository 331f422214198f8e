"""AgentContext: wires one session's collaborators together."""

from __future__ import annotations

import uuid
from typing import Callable

from agent.agent import Agent
from agent.config import AgentConfig
from agent.gateway import ModelGateway, OllamaGateway
from agent.models import OllamaClient
from agent.response import ToolCall, ToolResult
from agent.telemetry import Telemetry
from tools.text_tools import text_tools
from tools.todo_tools import TodoApiClient, todo_tools
from tools.tool_registry import ToolRegistry


def build_registry(
    config: AgentConfig,
    todo_client: TodoApiClient,
    telemetry: Telemetry | None = None,
) -> ToolRegistry:
    """Register the built-in text and todo tools. Duplicate names raise."""
    registry = ToolRegistry(
        log_dir=config.log_dir,
        default_timeout=config.tool_execution.default_timeout,
        timeouts=config.tool_execution.timeouts,
        telemetry=telemetry,
    )
    for tool in text_tools() + todo_tools(todo_client):
        registry.register_tool(tool)
    return registry


class AgentContext:
    """
    A conversational session. One per CLI run.

    Owns the history (through the agent), the todo client and the tool
    registry; nothing here is shared with other sessions.
    """

    def __init__(
        self,
        config: AgentConfig,
        session_id: str | None = None,
        gateway: ModelGateway | None = None,
        todo_client: TodoApiClient | None = None,
        on_tool_result: Callable[[ToolCall, ToolResult], None] | None = None,
    ):
        self.id: str = session_id or uuid.uuid4().hex[:12]
        self.config = config
        self.telemetry = Telemetry(config.telemetry, self.id)
        self.ollama = OllamaClient(
            base_url=config.chat_model.base_url,
            connect_timeout=config.ollama.connect_timeout,
            read_timeout=config.ollama.read_timeout,
            max_retries=config.ollama.max_retries,
        )
        self.todo_client = todo_client or TodoApiClient(
            base_url=config.todo_api.base_url,
            timeout=config.todo_api.timeout,
            log_dir=config.log_dir,
        )
        self.registry = build_registry(config, self.todo_client, self.telemetry)
        self.gateway = gateway or OllamaGateway(self.ollama, system_prompt=config.system_prompt)
        self.agent = Agent(
            config=config,
            gateway=self.gateway,
            registry=self.registry,
            telemetry=self.telemetry,
            on_tool_result=on_tool_result,
        )
