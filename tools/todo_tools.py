"""Todo API tools: CRUD over the remote lists/tasks REST service."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import aiohttp

from agent.logs import build_logger
from tools.base_tool import Tool, ToolParameter


@dataclass
class ApiResponse:
    """Raw HTTP response from the todo service."""
    status: int
    reason: str
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def describe(self) -> str:
        """Status line and body, forwarded to the model verbatim."""
        status = f"{self.status} {self.reason}".strip()
        return f"Status: {status}\n\n{self.body}"


class TodoApiClient:
    """Thin async client for the todo REST service. One per session, injected into tools."""

    def __init__(self, base_url: str = "http://localhost:5125", timeout: float = 30.0,
                 log_dir: str = "data/logs"):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._logger = build_logger(f"todo_api.{id(self)}", log_dir, "todo_api.log")

    async def request(self, method: str, path: str, json_body: Any = None) -> ApiResponse:
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url, json=json_body) as resp:
                body = await resp.text()
                self._logger.info("%s %s -> %d", method, path, resp.status)
                return ApiResponse(status=resp.status, reason=resp.reason or "", body=body)

    async def get(self, path: str) -> ApiResponse:
        return await self.request("GET", path)

    async def post(self, path: str, json_body: Any) -> ApiResponse:
        return await self.request("POST", path, json_body)

    async def put(self, path: str, json_body: Any) -> ApiResponse:
        return await self.request("PUT", path, json_body)

    async def delete(self, path: str) -> ApiResponse:
        return await self.request("DELETE", path)


_ID = ToolParameter("id", "string", "Identifier of the item")


def _optional(name: str, type_name: str, description: str) -> ToolParameter:
    return ToolParameter(name, type_name, description, required=False)


class TodoTool(Tool):
    """Base for tools that talk to the todo service."""

    plugin = "API"

    def __init__(self, client: TodoApiClient):
        self.client = client

    async def _update(self, kind: str, item_id: str, path: str, changes: dict[str, Any]) -> str:
        """Fetch a resource, overlay the supplied fields and PUT it back."""
        current = await self.client.get(path)
        if not current.ok:
            return f"Failed to get {kind} {item_id}: {current.status}"

        try:
            existing = json.loads(current.body)
        except json.JSONDecodeError:
            existing = None
        if not isinstance(existing, dict):
            return f"Failed to deserialize {kind} data."

        existing.update({k: v for k, v in changes.items() if v is not None})
        response = await self.client.put(path, existing)
        return response.describe()


class GetAllListsTool(TodoTool):
    name = "get_all_lists"
    description = "Get all todo lists from the API."

    async def execute(self, **kwargs) -> str:
        return (await self.client.get("/lists")).describe()


class GetListByIdTool(TodoTool):
    name = "get_list_by_id"
    description = "Get a specific list by its ID."
    parameters = (_ID,)

    async def execute(self, id: str, **kwargs) -> str:
        return (await self.client.get(f"/lists/{id}")).describe()


class GetAllTasksTool(TodoTool):
    name = "get_all_tasks"
    description = "Get all tasks from the API."

    async def execute(self, **kwargs) -> str:
        return (await self.client.get("/tasks")).describe()


class GetTaskByIdTool(TodoTool):
    name = "get_task_by_id"
    description = "Get a specific task by its ID."
    parameters = (_ID,)

    async def execute(self, id: str, **kwargs) -> str:
        return (await self.client.get(f"/tasks/{id}")).describe()


class CreateListTool(TodoTool):
    name = "create_list"
    description = "Create a new list with name and description."
    parameters = (
        ToolParameter("name", "string", "Name of the list"),
        ToolParameter("description", "string", "Description of the list"),
    )

    async def execute(self, name: str, description: str, **kwargs) -> str:
        body = {"name": name, "description": description}
        return (await self.client.post("/lists", body)).describe()


class CreateTaskTool(TodoTool):
    name = "create_task"
    description = (
        "Create a new task with title, description, due date, completion flag "
        "and the ID of the list it belongs to."
    )
    parameters = (
        ToolParameter("title", "string", "Task title"),
        ToolParameter("description", "string", "Task description"),
        ToolParameter("due_date", "string", "Due date, e.g. 2025-01-31"),
        ToolParameter("is_complete", "boolean", "Whether the task is already done"),
        ToolParameter("todo_list_id", "integer", "ID of the list the task belongs to"),
    )

    async def execute(
        self,
        title: str,
        description: str,
        due_date: str,
        is_complete: bool,
        todo_list_id: int,
        **kwargs,
    ) -> str:
        body = {
            "title": title,
            "description": description,
            "dueDate": due_date,
            "isComplete": is_complete,
            "todoListId": todo_list_id,
        }
        return (await self.client.post("/tasks", body)).describe()


class UpdateListTool(TodoTool):
    name = "update_list"
    description = "Update a list by ID with optional fields."
    parameters = (
        _ID,
        _optional("name", "string", "New list name"),
        _optional("description", "string", "New list description"),
    )

    async def execute(
        self,
        id: str,
        name: str | None = None,
        description: str | None = None,
        **kwargs,
    ) -> str:
        return await self._update(
            "list", id, f"/lists/{id}", {"name": name, "description": description}
        )


class UpdateTaskTool(TodoTool):
    name = "update_task"
    description = "Update a task by ID with optional fields."
    parameters = (
        _ID,
        _optional("title", "string", "New task title"),
        _optional("description", "string", "New task description"),
        _optional("due_date", "string", "New due date"),
        _optional("is_complete", "boolean", "New completion flag"),
        _optional("todo_list_id", "integer", "Move the task to another list"),
    )

    async def execute(
        self,
        id: str,
        title: str | None = None,
        description: str | None = None,
        due_date: str | None = None,
        is_complete: bool | None = None,
        todo_list_id: int | None = None,
        **kwargs,
    ) -> str:
        return await self._update("task", id, f"/tasks/{id}", {
            "title": title,
            "description": description,
            "dueDate": due_date,
            "isComplete": is_complete,
            "todoListId": todo_list_id,
        })


class DeleteTaskTool(TodoTool):
    name = "delete_task"
    description = "Delete a task by ID."
    parameters = (_ID,)

    async def execute(self, id: str, **kwargs) -> str:
        return (await self.client.delete(f"/tasks/{id}")).describe()


class DeleteListTool(TodoTool):
    name = "delete_list"
    description = "Delete a list by ID."
    parameters = (_ID,)

    async def execute(self, id: str, **kwargs) -> str:
        return (await self.client.delete(f"/lists/{id}")).describe()


def todo_tools(client: TodoApiClient) -> list[Tool]:
    """All todo tools sharing one client, in listing order."""
    return [
        cls(client)
        for cls in (
            GetAllListsTool,
            GetListByIdTool,
            GetAllTasksTool,
            GetTaskByIdTool,
            CreateListTool,
            CreateTaskTool,
            UpdateListTool,
            UpdateTaskTool,
            DeleteTaskTool,
            DeleteListTool,
        )
    ]
