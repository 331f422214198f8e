import asyncio
import tempfile
import unittest

from agent.exceptions import DuplicateToolNameError, ToolDescriptorError
from agent.response import ToolCall, ToolErrorKind
from tools.base_tool import Tool, ToolDescriptor, ToolParameter
from tools.tool_registry import ToolRegistry, coerce_value


class EchoTool(Tool):
    name = "echo"
    description = "Echoes its arguments."
    plugin = "Test"
    parameters = (
        ToolParameter("text", "string", "Text to echo"),
        ToolParameter("times", "integer", "Repeat count", required=False, default=1),
        ToolParameter("shout", "boolean", "Uppercase", required=False, default=False),
    )
    calls = 0

    async def execute(self, text: str, times: int = 1, shout: bool = False, **kwargs) -> str:
        EchoTool.calls += 1
        out = " ".join([text] * times)
        return out.upper() if shout else out


class BrokenTool(Tool):
    name = "broken"
    description = "Always fails."

    async def execute(self, **kwargs) -> str:
        raise RuntimeError("boom")


class SlowTool(Tool):
    name = "slow"
    description = "Sleeps."

    async def execute(self, **kwargs) -> str:
        await asyncio.sleep(1)
        return "late"


class HttpTimeoutTool(Tool):
    name = "http_timeout"
    description = "Fails the way an HTTP client timeout does."

    async def execute(self, **kwargs) -> str:
        raise asyncio.TimeoutError()


class TestToolRegistry(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.registry = ToolRegistry(log_dir=self._tmpdir.name)
        self.registry.register_tool(EchoTool())
        self.registry.register_tool(BrokenTool())
        EchoTool.calls = 0

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_duplicate_registration_keeps_first(self):
        other = ToolDescriptor(name="echo", description="imposter")
        with self.assertRaises(DuplicateToolNameError):
            self.registry.register(other, lambda: "x")

        self.assertEqual(next(iter(self.registry.list())).description, "Echoes its arguments.")
        self.assertEqual(len(self.registry), 2)

    def test_malformed_descriptors_rejected(self):
        bad = [
            ToolDescriptor(name="", description="empty"),
            ToolDescriptor(name="two words", description="space"),
            ToolDescriptor(name="t", description="", parameters=(
                ToolParameter("a"), ToolParameter("a"),
            )),
            ToolDescriptor(name="t", description="", parameters=(
                ToolParameter("a", type="date"),
            )),
            ToolDescriptor(name="t", description="", parameters=(
                ToolParameter("a", required=True, default="x"),
            )),
        ]
        for descriptor in bad:
            with self.subTest(descriptor=descriptor):
                with self.assertRaises(ToolDescriptorError):
                    self.registry.register(descriptor, lambda **kw: "")
        self.assertNotIn("t", self.registry)

    def test_list_is_ordered_and_restartable(self):
        listing = self.registry.list()
        self.assertEqual([d.name for d in listing], ["echo", "broken"])
        self.assertEqual([d.name for d in listing], ["echo", "broken"])
        self.assertEqual(len(listing), 2)

    def test_ollama_schema(self):
        schema = self.registry.to_ollama_tools()[0]
        self.assertEqual(schema["type"], "function")
        function = schema["function"]
        self.assertEqual(function["name"], "echo")
        self.assertEqual(function["parameters"]["required"], ["text"])
        self.assertEqual(function["parameters"]["properties"]["times"]["type"], "integer")
        self.assertEqual(function["parameters"]["properties"]["times"]["default"], 1)

    def test_tool_descriptions_grouped_by_plugin(self):
        listing = self.registry.get_tool_descriptions()
        self.assertIn("Plugin: Test\n  - echo: Echoes its arguments.", listing)
        self.assertIn("Plugin: General\n  - broken: Always fails.", listing)

    async def test_invoke_success_with_defaults(self):
        result = await self.registry.invoke(ToolCall(name="echo", args={"text": "hi"}))
        self.assertTrue(result.success)
        self.assertEqual(result.text, "hi")
        self.assertIsNone(result.error_kind)

    async def test_invoke_coerces_strings(self):
        call = ToolCall(name="echo", args={"text": "hi", "times": "2", "shout": "true"})
        result = await self.registry.invoke(call)
        self.assertEqual(result.text, "HI HI")

    async def test_unknown_tool_never_executes(self):
        result = await self.registry.invoke(ToolCall(name="nope", args={"text": "hi"}))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ToolErrorKind.UNKNOWN_TOOL)
        self.assertIn("echo, broken", result.text)
        self.assertEqual(EchoTool.calls, 0)

    async def test_missing_argument(self):
        result = await self.registry.invoke(ToolCall(name="echo", args={"times": 2}))
        self.assertEqual(result.error_kind, ToolErrorKind.MISSING_ARGUMENT)
        self.assertTrue(result.content.startswith("[MissingArgument]"))
        self.assertEqual(EchoTool.calls, 0)

    async def test_invalid_boolean(self):
        call = ToolCall(name="echo", args={"text": "hi", "shout": "loudly"})
        result = await self.registry.invoke(call)
        self.assertEqual(result.error_kind, ToolErrorKind.INVALID_ARGUMENT)
        self.assertIn("shout", result.text)
        self.assertEqual(EchoTool.calls, 0)

    async def test_tool_exception_becomes_failure(self):
        result = await self.registry.invoke(ToolCall(name="broken"))
        self.assertFalse(result.success)
        self.assertEqual(result.error_kind, ToolErrorKind.TOOL_FAILURE)
        self.assertIn("boom", result.text)

    async def test_timeout(self):
        self.registry.register_tool(SlowTool())
        self.registry.timeouts["slow"] = 0.01
        result = await self.registry.invoke(ToolCall(name="slow"))
        self.assertEqual(result.error_kind, ToolErrorKind.TOOL_TIMEOUT)

    async def test_internal_timeout_is_tool_failure(self):
        self.registry.register_tool(HttpTimeoutTool())
        for default_timeout in (30.0, 0):
            with self.subTest(default_timeout=default_timeout):
                self.registry.default_timeout = default_timeout
                result = await self.registry.invoke(ToolCall(name="http_timeout"))
                self.assertEqual(result.error_kind, ToolErrorKind.TOOL_FAILURE)
                self.assertNotIn("timed out after", result.text)

    async def test_yes_is_not_a_boolean(self):
        call = ToolCall(name="echo", args={"text": "hi", "shout": "yes"})
        result = await self.registry.invoke(call)
        self.assertEqual(result.error_kind, ToolErrorKind.INVALID_ARGUMENT)
        self.assertEqual(EchoTool.calls, 0)

    async def test_sync_function_and_extra_args(self):
        descriptor = ToolDescriptor(
            name="add",
            description="Adds numbers.",
            parameters=(ToolParameter("a", "number"), ToolParameter("b", "number")),
        )
        self.registry.register(descriptor, lambda a, b: a + b)
        result = await self.registry.invoke(
            ToolCall(name="add", args={"a": "1.5", "b": 2, "c": "ignored"})
        )
        self.assertTrue(result.success)
        self.assertEqual(result.text, "3.5")

    async def test_invoke_is_deterministic(self):
        call = ToolCall(name="echo", args={"text": "x", "times": 3})
        first = await self.registry.invoke(call)
        second = await self.registry.invoke(call)
        self.assertEqual(first, second)


class TestCoerceValue(unittest.TestCase):
    def test_booleans(self):
        self.assertIs(coerce_value("boolean", "False"), False)
        self.assertIs(coerce_value("boolean", " TRUE "), True)
        self.assertIs(coerce_value("boolean", True), True)
        for value in ("maybe", "yes", "no", "1", "0", 1, 0, 2):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    coerce_value("boolean", value)

    def test_integers(self):
        self.assertEqual(coerce_value("integer", "42"), 42)
        self.assertEqual(coerce_value("integer", 3.0), 3)
        with self.assertRaises(ValueError):
            coerce_value("integer", "4.5")
        with self.assertRaises(ValueError):
            coerce_value("integer", True)

    def test_strings(self):
        self.assertEqual(coerce_value("string", 7), "7")
        self.assertEqual(coerce_value("string", True), "true")
        self.assertEqual(coerce_value("string", {"a": 1}), '{"a": 1}')
