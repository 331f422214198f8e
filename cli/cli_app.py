"""Interactive CLI for the Ollama tool agent."""

from agent.agent_context import AgentContext
from agent.config import AgentConfig
from agent.exceptions import ToolRegistrationError
from agent.response import ToolCall, ToolResult


# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"


class CLIApp:
    """Interactive REPL: one line per turn, blank line or 'exit' to quit."""

    def __init__(self, config: AgentConfig):
        self.config = config
        self.context: AgentContext | None = None

    async def run(self) -> int:
        """Main REPL loop. Returns the process exit code."""
        self._print_banner()

        try:
            self.context = AgentContext(self.config, on_tool_result=self._print_tool_result)
        except ToolRegistrationError as e:
            print(f"{RED}[Error] Tool registration failed: {e}{RESET}")
            return 1

        self._print_tools()

        if not await self._preflight_ollama():
            return 1

        print(f"\n{DIM}Type your messages. Type 'exit' or an empty line to quit.{RESET}\n")
        await self.context.agent.run(
            read_input=self._read_input,
            emit=self._print_answer,
            on_error=self._print_error,
        )
        print(f"{DIM}Goodbye!{RESET}")
        return 0

    async def _read_input(self) -> str | None:
        try:
            return input(f"{BOLD}You:{RESET} ")
        except EOFError:
            print()
            return None

    def _print_answer(self, answer: str) -> None:
        print(f"\n{BOLD}{GREEN}Ollama:{RESET} {answer}\n")

    def _print_error(self, error: Exception) -> None:
        print(f"{RED}[Chat error: {error}]{RESET}")
        cause = error.__cause__
        if cause is not None:
            print(f"{DIM}Details: {cause}{RESET}")

    def _print_tool_result(self, call: ToolCall, result: ToolResult) -> None:
        color = DIM if result.success else YELLOW
        marker = "ok" if result.success else result.error_kind.value
        print(f"{color}[Tool {call.name}: {marker}]{RESET}")

    def _print_banner(self):
        print(f"""
{BOLD}{CYAN}╔══════════════════════════════════════╗
║        Ollama Tool Agent v0.1.0      ║
║   Function calling with local LLMs   ║
╚══════════════════════════════════════╝{RESET}
{DIM}Chat model: {self.config.chat_model.model_name}
Ollama: {self.config.chat_model.base_url}
Todo API: {self.config.todo_api.base_url}{RESET}
""")

    def _print_tools(self):
        print(f"{BOLD}Registered functions:{RESET}")
        print(self.context.registry.get_tool_descriptions())

    async def _preflight_ollama(self) -> bool:
        """Check Ollama connectivity and model availability before starting."""
        client = self.context.ollama
        base_url = self.config.chat_model.base_url

        if self.config.ollama.health_check_on_start:
            healthy = await client.health_check()
            if not healthy:
                print(f"{RED}[Error] Cannot connect to Ollama at {base_url}{RESET}")
                print(f"{DIM}Make sure Ollama is running: ollama serve{RESET}")
                return False

        try:
            models = await client.list_models()
        except Exception as e:
            print(f"{RED}[Error] {e}{RESET}")
            return False

        model_names = [m.get("name", "?") for m in models]
        print(f"{DIM}Available models: {', '.join(model_names) if model_names else 'none'}{RESET}")

        missing = client.filter_missing_models([self.config.chat_model.model_name], model_names)
        if missing:
            print(f"{RED}[Error] Missing models at {base_url}: {', '.join(missing)}{RESET}")
            print(f"{DIM}Pull with: ollama pull <model>{RESET}")
            return False

        return True
