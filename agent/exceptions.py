"""Custom exceptions for the Ollama tool agent."""


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class ToolRegistrationError(Exception):
    """Raised when a tool cannot be registered. Fatal at startup."""
    pass


class DuplicateToolNameError(ToolRegistrationError):
    """Raised when a tool name is registered twice."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is already registered")
        self.name = name


class ToolDescriptorError(ToolRegistrationError):
    """Raised when a tool descriptor is malformed."""
    pass


class ModelGatewayError(Exception):
    """Base class for failures talking to the language model."""
    pass


class OllamaConnectionError(ModelGatewayError):
    """Raised when unable to connect to the Ollama server."""
    pass


class OllamaModelError(ModelGatewayError):
    """Raised when the requested model is not available."""
    pass


class ModelResponseError(ModelGatewayError):
    """Raised when the model returns a reply that cannot be interpreted."""
    pass


class MaxToolRoundsError(ModelGatewayError):
    """Raised when the model keeps requesting tools past the round limit."""
    pass
