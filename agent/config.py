"""Configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from agent.exceptions import ConfigError


TOOL_CHOICES = ("auto", "none")
ROLLBACK_SCOPES = ("turn", "round")


@dataclass
class ModelConfig:
    """Configuration for the Ollama chat model."""
    model_name: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    temperature: float = 0.7
    options: dict = field(default_factory=dict)


@dataclass
class OllamaSettings:
    """Configuration for Ollama connectivity and retries."""
    connect_timeout: float = 5.0
    read_timeout: float = 120.0
    max_retries: int = 3
    health_check_on_start: bool = True


@dataclass
class TodoApiConfig:
    """Configuration for the remote todo REST service."""
    base_url: str = "http://localhost:5125"
    timeout: float = 30.0


@dataclass
class ToolExecutionConfig:
    """Configuration for tool execution behavior."""
    default_timeout: float = 30.0
    timeouts: dict[str, float] = field(default_factory=dict)
    parallel: bool = False


@dataclass
class HistoryConfig:
    """Configuration for conversation history handling."""
    rollback_scope: str = "turn"


@dataclass
class TelemetryConfig:
    """Configuration for telemetry and metrics logging."""
    enabled: bool = False
    log_dir: str = "./data/metrics"


@dataclass
class AgentConfig:
    """Complete agent configuration."""
    chat_model: ModelConfig = field(default_factory=ModelConfig)
    ollama: OllamaSettings = field(default_factory=OllamaSettings)
    todo_api: TodoApiConfig = field(default_factory=TodoApiConfig)
    tool_execution: ToolExecutionConfig = field(default_factory=ToolExecutionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    tool_choice: str = "auto"
    max_tool_rounds: int = 8
    system_prompt: str = ""
    data_dir: str = "data"
    log_dir: str = "data/logs"


def load_config(config_path: str = "config.json") -> AgentConfig:
    """Load configuration from JSON file with defaults."""
    if not os.path.exists(config_path):
        config = AgentConfig()
        _apply_env_overrides(config)
        return config

    try:
        with open(config_path, "r") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise ConfigError(f"Failed to load config from {config_path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")

    data_dir = raw.get("data_dir", "data")
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigError("data_dir must be a non-empty string")

    chat_model = _load_model_settings(_section(raw, "chat_model"))
    ollama = _load_ollama_settings(_section(raw, "ollama"))
    todo_api = _load_todo_api_settings(_section(raw, "todo_api"))
    tool_execution = _load_tool_execution_settings(_section(raw, "tool_execution"))
    history = _load_history_settings(_section(raw, "history"))
    telemetry = _load_telemetry_settings(_section(raw, "telemetry"), data_dir)

    tool_choice = raw.get("tool_choice", "auto")
    if tool_choice not in TOOL_CHOICES:
        raise ConfigError(f"tool_choice must be one of {', '.join(TOOL_CHOICES)}")

    max_tool_rounds = _coerce_int(raw.get("max_tool_rounds", 8), "max_tool_rounds", 1)

    system_prompt = raw.get("system_prompt", "")
    if not isinstance(system_prompt, str):
        raise ConfigError("system_prompt must be a string")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "logs"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("log_dir must be a non-empty string")

    # Ensure data directories exist
    for d in [data_dir, log_dir]:
        os.makedirs(d, exist_ok=True)

    config = AgentConfig(
        chat_model=chat_model,
        ollama=ollama,
        todo_api=todo_api,
        tool_execution=tool_execution,
        history=history,
        telemetry=telemetry,
        tool_choice=tool_choice,
        max_tool_rounds=max_tool_rounds,
        system_prompt=system_prompt,
        data_dir=data_dir,
        log_dir=log_dir,
    )
    _apply_env_overrides(config)
    return config


def _apply_env_overrides(config: AgentConfig) -> None:
    """Let deployment environments point at other Ollama/todo hosts."""
    env_base_url = os.getenv("OLLAMA_BASE_URL")
    if env_base_url:
        config.chat_model.base_url = env_base_url
    env_todo_url = os.getenv("TODO_API_BASE_URL")
    if env_todo_url:
        config.todo_api.base_url = env_todo_url


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be an object")
    return value


def _load_model_settings(raw: dict) -> ModelConfig:
    """Parse and validate chat model settings."""
    model_name = raw.get("model_name", "llama3.1:8b")
    if not isinstance(model_name, str) or not model_name.strip():
        raise ConfigError("chat_model.model_name must be a non-empty string")

    base_url = raw.get("base_url", "http://localhost:11434")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("chat_model.base_url must be a non-empty string")

    temperature = _coerce_float(raw.get("temperature", 0.7), "chat_model.temperature", 0.0)

    options = raw.get("options", {})
    if options is None:
        options = {}
    if not isinstance(options, dict):
        raise ConfigError("chat_model.options must be an object")

    return ModelConfig(
        model_name=model_name.strip(),
        base_url=base_url.strip(),
        temperature=temperature,
        options=options,
    )


def _load_ollama_settings(raw: dict) -> OllamaSettings:
    """Parse and validate Ollama settings from config."""
    connect_timeout = _coerce_float(raw.get("connect_timeout", 5.0), "ollama.connect_timeout", 0.1)
    read_timeout = _coerce_float(raw.get("read_timeout", 120.0), "ollama.read_timeout", 0.1)
    max_retries = _coerce_int(raw.get("max_retries", 3), "ollama.max_retries", 1)

    health_check_on_start = raw.get("health_check_on_start", True)
    if not isinstance(health_check_on_start, bool):
        raise ConfigError("ollama.health_check_on_start must be a boolean")

    return OllamaSettings(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        max_retries=max_retries,
        health_check_on_start=health_check_on_start,
    )


def _load_todo_api_settings(raw: dict) -> TodoApiConfig:
    """Parse and validate todo API settings."""
    base_url = raw.get("base_url", "http://localhost:5125")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("todo_api.base_url must be a non-empty string")

    timeout = _coerce_float(raw.get("timeout", 30.0), "todo_api.timeout", 0.1)

    return TodoApiConfig(base_url=base_url.strip(), timeout=timeout)


def _load_tool_execution_settings(raw: dict) -> ToolExecutionConfig:
    """Parse and validate tool execution settings."""
    default_timeout = _coerce_float(
        raw.get("default_timeout", 30.0),
        "tool_execution.default_timeout",
        0.0,
    )

    timeouts_raw = raw.get("timeouts", {})
    if timeouts_raw is None:
        timeouts_raw = {}
    if not isinstance(timeouts_raw, dict):
        raise ConfigError("tool_execution.timeouts must be an object")

    timeouts: dict[str, float] = {}
    for key, value in timeouts_raw.items():
        if not isinstance(key, str):
            raise ConfigError("tool_execution.timeouts keys must be strings")
        timeouts[key] = _coerce_float(value, f"tool_execution.timeouts.{key}", 0.1)

    parallel = raw.get("parallel", False)
    if not isinstance(parallel, bool):
        raise ConfigError("tool_execution.parallel must be a boolean")

    return ToolExecutionConfig(
        default_timeout=default_timeout,
        timeouts=timeouts,
        parallel=parallel,
    )


def _load_history_settings(raw: dict) -> HistoryConfig:
    """Parse and validate history settings."""
    rollback_scope = raw.get("rollback_scope", "turn")
    if rollback_scope not in ROLLBACK_SCOPES:
        raise ConfigError(
            f"history.rollback_scope must be one of {', '.join(ROLLBACK_SCOPES)}"
        )
    return HistoryConfig(rollback_scope=rollback_scope)


def _load_telemetry_settings(raw: dict, data_dir: str) -> TelemetryConfig:
    """Parse and validate telemetry settings."""
    enabled = raw.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigError("telemetry.enabled must be a boolean")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "metrics"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("telemetry.log_dir must be a non-empty string")

    return TelemetryConfig(enabled=enabled, log_dir=log_dir)


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value
