"""Tool descriptors and the abstract base class for all tools."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


PARAMETER_TYPES = ("string", "integer", "number", "boolean")


@dataclass(frozen=True)
class ToolParameter:
    """A declared tool argument."""
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True
    default: Any = None

    def to_schema(self) -> dict:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if not self.required and self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass(frozen=True)
class ToolDescriptor:
    """What the model is told about a tool."""
    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = field(default_factory=tuple)
    plugin: str = ""

    @property
    def required_args(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]

    def to_ollama_schema(self) -> dict:
        """Render as an Ollama ``tools`` entry (JSON-schema function)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_schema() for p in self.parameters},
                    "required": self.required_args,
                },
            },
        }


class Tool(ABC):
    """Base class for all agent tools. Subclass this to create new tools."""

    name: str = ""
    description: str = ""
    plugin: str = ""
    parameters: tuple[ToolParameter, ...] = ()

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=tuple(self.parameters),
            plugin=self.plugin,
        )

    @abstractmethod
    async def execute(self, **kwargs) -> str:
        """Execute the tool. Must be implemented by subclasses."""
        ...
