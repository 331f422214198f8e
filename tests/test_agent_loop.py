import asyncio
import tempfile
import unittest
from pathlib import Path

from agent.agent import Agent, AgentState, is_exit_input
from agent.config import AgentConfig, HistoryConfig, ToolExecutionConfig
from agent.exceptions import MaxToolRoundsError, ModelGatewayError, OllamaConnectionError
from agent.gateway import OllamaGateway
from agent.history import Role
from agent.models import OllamaClient
from agent.response import ModelReply, ToolCall
from tools.base_tool import Tool, ToolParameter
from tools.tool_registry import ToolRegistry


class ScriptedGateway:
    """Returns queued replies (or raises queued exceptions) in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, history, tools, settings):
        self.calls.append({
            "history": [(t.role, t.content) for t in history],
            "tools": [d.name for d in tools],
            "tool_choice": settings.tool_choice,
        })
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class CreateTaskTool(Tool):
    name = "create_task"
    description = "Create a task."
    parameters = (
        ToolParameter("title", "string"),
        ToolParameter("is_complete", "boolean", required=False, default=False),
    )

    def __init__(self):
        self.created = []

    async def execute(self, title: str, is_complete: bool = False, **kwargs) -> str:
        self.created.append(title)
        return f"Status: 201 Created\n\n{{\"title\": \"{title}\"}}"


class GetTaskByIdTool(Tool):
    name = "get_task_by_id"
    description = "Get a task."
    parameters = (ToolParameter("id", "string"),)

    async def execute(self, id: str, **kwargs) -> str:
        return f"Status: 200 OK\n\n{{\"id\": {id}}}"


class OrderedSleepTool(Tool):
    name = "sleepy"
    description = "Sleeps for the given delay and returns its label."
    parameters = (ToolParameter("label", "string"), ToolParameter("delay", "number"))

    async def execute(self, label: str, delay: float, **kwargs) -> str:
        await asyncio.sleep(delay)
        return label


def tool_reply(*calls: ToolCall) -> ModelReply:
    return ModelReply(content="", tool_calls=list(calls))


class TestAgentLoop(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.log_dir = str(Path(self._tmpdir.name) / "logs")

    def tearDown(self):
        self._tmpdir.cleanup()

    def _make_agent(self, replies, **config_overrides):
        config = AgentConfig(log_dir=self.log_dir, **config_overrides)
        registry = ToolRegistry(log_dir=self.log_dir)
        self.create_tool = CreateTaskTool()
        registry.register_tool(self.create_tool)
        registry.register_tool(GetTaskByIdTool())
        registry.register_tool(OrderedSleepTool())
        gateway = ScriptedGateway(replies)
        return Agent(config=config, gateway=gateway, registry=registry), gateway

    async def test_plain_answer_adds_two_turns(self):
        agent, gateway = self._make_agent([ModelReply(content="hi there")])

        answer = await agent.respond("hello")

        self.assertEqual(answer, "hi there")
        self.assertEqual(
            [(t.role, t.content) for t in agent.history],
            [(Role.USER, "hello"), (Role.ASSISTANT, "hi there")],
        )
        self.assertEqual(len(gateway.calls), 1)
        self.assertEqual(gateway.calls[0]["tools"], ["create_task", "get_task_by_id", "sleepy"])
        self.assertEqual(self.create_tool.created, [])
        self.assertEqual(agent.state, AgentState.RESPONDED)

    async def test_tool_round_then_answer(self):
        agent, gateway = self._make_agent([
            tool_reply(ToolCall(name="create_task", args={"title": "X", "is_complete": "false"})),
            ModelReply(content="Done"),
        ])

        answer = await agent.respond("create a task called X")

        self.assertEqual(answer, "Done")
        self.assertEqual([t.role for t in agent.history], [Role.USER, Role.TOOL, Role.ASSISTANT])
        self.assertIn("201 Created", agent.history[1].content)
        self.assertEqual(self.create_tool.created, ["X"])
        # second model call saw the tool result
        self.assertEqual(gateway.calls[1]["history"][1][0], Role.TOOL)

    async def test_turn_count_across_rounds(self):
        agent, _ = self._make_agent([
            tool_reply(
                ToolCall(name="get_task_by_id", args={"id": "1"}),
                ToolCall(name="get_task_by_id", args={"id": "2"}),
            ),
            tool_reply(ToolCall(name="create_task", args={"title": "Y"})),
            ModelReply(content="All done"),
        ])
        before = len(agent.history)

        await agent.respond("do several things")

        self.assertEqual(len(agent.history), before + 1 + 3 + 1)

    async def test_rounds_render_as_separate_requests(self):
        agent, _ = self._make_agent([
            ModelReply(content="Checking first.", tool_calls=[
                ToolCall(name="get_task_by_id", args={"id": "1"}),
            ]),
            tool_reply(ToolCall(name="create_task", args={"title": "Y"})),
            ModelReply(content="done"),
        ])

        await agent.respond("do two things")

        self.assertEqual([t.round for t in agent.history], [None, 1, 2, None])
        messages = OllamaGateway(OllamaClient()).render_messages(agent.history)
        requests = [m for m in messages if m.get("tool_calls")]
        self.assertEqual(len(requests), 2)
        self.assertEqual(requests[0]["content"], "Checking first.")

    async def test_gateway_failure_on_second_call_rolls_back_turn(self):
        agent, _ = self._make_agent([
            ModelReply(content="earlier answer"),
            tool_reply(ToolCall(name="create_task", args={"title": "X"})),
            OllamaConnectionError("connection refused"),
            ModelReply(content="recovered"),
        ])
        await agent.respond("first")
        before = len(agent.history)

        with self.assertRaises(ModelGatewayError):
            await agent.respond("create a task called X")

        self.assertEqual(len(agent.history), before)
        self.assertEqual(agent.state, AgentState.AWAITING_INPUT)

        answer = await agent.respond("try again")
        self.assertEqual(answer, "recovered")
        self.assertEqual(len(agent.history), before + 2)

    async def test_round_scope_keeps_completed_rounds(self):
        agent, _ = self._make_agent(
            [
                tool_reply(ToolCall(name="create_task", args={"title": "X"})),
                OllamaConnectionError("connection refused"),
            ],
            history=HistoryConfig(rollback_scope="round"),
        )

        with self.assertRaises(ModelGatewayError):
            await agent.respond("create a task called X")

        self.assertEqual([t.role for t in agent.history], [Role.USER, Role.TOOL])

    async def test_round_scope_first_call_failure_removes_user_turn(self):
        agent, _ = self._make_agent(
            [OllamaConnectionError("down")],
            history=HistoryConfig(rollback_scope="round"),
        )
        with self.assertRaises(ModelGatewayError):
            await agent.respond("hello")
        self.assertEqual(len(agent.history), 0)

    async def test_unexpected_gateway_exception_is_wrapped(self):
        agent, _ = self._make_agent([KeyError("message")])
        with self.assertRaises(ModelGatewayError) as ctx:
            await agent.respond("hello")
        self.assertIsInstance(ctx.exception.__cause__, KeyError)
        self.assertEqual(len(agent.history), 0)

    async def test_missing_argument_becomes_tool_turn(self):
        agent, _ = self._make_agent([
            tool_reply(ToolCall(name="get_task_by_id", args={})),
            ModelReply(content="Which task?"),
        ])

        answer = await agent.respond("show me the task")

        self.assertEqual(answer, "Which task?")
        tool_turn = agent.history[1]
        self.assertEqual(tool_turn.role, Role.TOOL)
        self.assertTrue(tool_turn.content.startswith("[MissingArgument]"))

    async def test_unknown_tool_becomes_tool_turn(self):
        agent, _ = self._make_agent([
            tool_reply(ToolCall(name="launch_rocket")),
            ModelReply(content="I can't do that"),
        ])
        await agent.respond("launch")
        self.assertTrue(agent.history[1].content.startswith("[UnknownTool]"))

    async def test_round_limit_forces_final_answer(self):
        call = ToolCall(name="get_task_by_id", args={"id": "1"})
        agent, gateway = self._make_agent(
            [tool_reply(call), tool_reply(call), ModelReply(content="final")],
            max_tool_rounds=2,
        )

        answer = await agent.respond("loop")

        self.assertEqual(answer, "final")
        self.assertEqual([c["tool_choice"] for c in gateway.calls], ["auto", "auto", "none"])
        self.assertEqual(len(agent.history), 4)

    async def test_round_limit_exceeded_rolls_back(self):
        call = ToolCall(name="get_task_by_id", args={"id": "1"})
        agent, _ = self._make_agent(
            [tool_reply(call), tool_reply(call)],
            max_tool_rounds=1,
        )
        with self.assertRaises(MaxToolRoundsError):
            await agent.respond("loop")
        self.assertEqual(len(agent.history), 0)

    async def test_parallel_dispatch_keeps_request_order(self):
        agent, _ = self._make_agent(
            [
                tool_reply(
                    ToolCall(name="sleepy", args={"label": "slow", "delay": 0.05}),
                    ToolCall(name="sleepy", args={"label": "fast", "delay": 0}),
                ),
                ModelReply(content="ok"),
            ],
            tool_execution=ToolExecutionConfig(parallel=True),
        )
        await agent.respond("go")
        self.assertEqual([agent.history[1].content, agent.history[2].content], ["slow", "fast"])

    async def test_cancellation_rolls_back(self):
        started = asyncio.Event()

        class HangingGateway:
            async def complete(self, history, tools, settings):
                started.set()
                await asyncio.sleep(10)

        agent, _ = self._make_agent([])
        agent.gateway = HangingGateway()

        task = asyncio.create_task(agent.respond("hello"))
        await started.wait()
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertEqual(len(agent.history), 0)

    async def test_run_session_until_exit(self):
        agent, _ = self._make_agent([
            ModelReply(content="one"),
            OllamaConnectionError("down"),
            ModelReply(content="three"),
        ])
        inputs = iter(["first", "second", "third", "EXIT", "never read"])
        emitted, errors = [], []

        async def read_input():
            return next(inputs)

        await agent.run(read_input, emitted.append, errors.append)

        self.assertEqual(emitted, ["one", "three"])
        self.assertEqual(len(errors), 1)
        self.assertEqual(agent.state, AgentState.CLOSED)
        self.assertEqual(len(agent.history), 4)
        self.assertEqual(next(inputs), "never read")

    async def test_closed_agent_rejects_input(self):
        agent, _ = self._make_agent([])
        agent.close()
        with self.assertRaises(RuntimeError):
            await agent.respond("hello")


class TestExitInput(unittest.TestCase):
    def test_exit_sentinels(self):
        for text in (None, "", "   ", "exit", "Exit", "EXIT"):
            with self.subTest(text=text):
                self.assertTrue(is_exit_input(text))

    def test_regular_input(self):
        for text in ("hello", "exit now", "quit", " exit ", "exit\n"):
            with self.subTest(text=text):
                self.assertFalse(is_exit_input(text))
