"""Unit tests for ``run_workflow()`` traversal.

Graphs are built in memory and executed against fake collaborators.
"""

from __future__ import annotations

import pytest
from entities.shared.chat_client import ConfigurationError, ModelDefaults
from entities.shared.expression import ExpressionError
from entities.workflow.engine import coerce_condition, run_workflow, step_budget
from entities.workflow.executor import NodeExecutor
from models import Termination
from tests.conftest import (
    FakeChatService,
    FakeSqlExecutor,
    RecordingSink,
    make_clients,
    make_graph,
)

# ── Linear graphs ────────────────────────────────────────────────────


class TestLinearTraversal:
    """Nodes run in edge order and thread their outputs forward."""

    async def test_each_input_is_previous_output(self) -> None:
        chat = FakeChatService(reply="summary")
        executor = NodeExecutor(make_clients(chat=chat))
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "l", "type": "llm", "data": {"userPrompt": "Summarize {{input}}"}},
                {"id": "o", "type": "output"},
            ],
            [("s", "l"), ("l", "o")],
            initial_input="hello",
        )

        result = await run_workflow(graph, executor)

        assert [entry.node_id for entry in result.trace] == ["s", "l", "o"]
        assert result.trace[0].input == "hello"
        assert result.trace[1].input == result.trace[0].output == "hello"
        assert result.trace[2].input == result.trace[1].output == "summary"
        assert result.output == "summary"
        assert result.termination is Termination.OUTPUT
        assert chat.calls[0][2] == "Summarize hello"

    async def test_db_query_result_reaches_output(self) -> None:
        sql = FakeSqlExecutor(rows=[{"id": 1}])
        executor = NodeExecutor(make_clients(sql=sql))
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "q", "type": "dbQuery", "data": {"sqlQuery": "SELECT 1 AS id"}},
                {"id": "o", "type": "output"},
            ],
            [("s", "q"), ("q", "o")],
        )

        result = await run_workflow(graph, executor)

        assert [(entry.node_id, entry.kind) for entry in result.trace] == [
            ("s", "start"),
            ("q", "dbQuery"),
            ("o", "output"),
        ]
        assert result.output == result.context.per_node["q"]
        assert result.output["rows"] == [{"id": 1}]
        assert result.context.output == result.output

    async def test_context_records_every_node(self, executor: NodeExecutor) -> None:
        graph = make_graph(
            [{"id": "s", "type": "start"}, {"id": "o", "type": "output"}],
            [("s", "o")],
            initial_input="x",
        )

        result = await run_workflow(graph, executor)
        assert result.context.to_dict() == {"input": "x", "s": "x", "o": "x", "output": "x"}

    async def test_per_node_values_usable_downstream(self) -> None:
        chat = FakeChatService(reply="B")
        executor = NodeExecutor(make_clients(chat=chat))
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "first", "type": "llm", "data": {"userPrompt": "one"}},
                {"id": "second", "type": "llm", "data": {"userPrompt": "{{s}} then {{first}}"}},
            ],
            [("s", "first"), ("first", "second")],
            initial_input="A",
        )

        await run_workflow(graph, executor)
        assert chat.calls[1][2] == "A then B"


# ── Condition branching ──────────────────────────────────────────────


def _branch_graph(initial_input: str, expression: str = "{{input}} == 'go'"):
    return make_graph(
        [
            {"id": "s", "type": "start"},
            {"id": "c", "type": "condition", "data": {"expression": expression}},
            {"id": "node_a", "type": "output"},
            {"id": "node_b", "type": "output"},
        ],
        [("s", "c"), ("c", "node_a"), ("c", "node_b")],
        initial_input=initial_input,
    )


class TestConditionBranching:
    """First edge is the true branch, second the false branch."""

    async def test_true_takes_first_edge(self, executor: NodeExecutor) -> None:
        result = await run_workflow(_branch_graph("go"), executor)
        assert result.trace[-1].node_id == "node_a"

    async def test_false_takes_second_edge(self, executor: NodeExecutor) -> None:
        result = await run_workflow(_branch_graph("stop"), executor)
        assert result.trace[-1].node_id == "node_b"

    async def test_output_after_condition_receives_condition_value(self, executor: NodeExecutor) -> None:
        result = await run_workflow(_branch_graph("go"), executor)
        assert result.output is True

    async def test_single_edge_serves_both_branches(self, executor: NodeExecutor) -> None:
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "c", "type": "condition", "data": {"expression": "1 > 2"}},
                {"id": "o", "type": "output"},
            ],
            [("s", "c"), ("c", "o")],
        )

        result = await run_workflow(graph, executor)
        assert result.trace[-1].node_id == "o"

    async def test_expression_error_aborts_run(self, executor: NodeExecutor) -> None:
        with pytest.raises(ExpressionError):
            await run_workflow(_branch_graph("go", expression="{{input}} =="), executor)


class TestCoerceCondition:
    """Boolean interpretation of condition outputs."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, True),
            (False, False),
            ("true", True),
            (" FALSE ", False),
            ("yes", True),
            ("   ", False),
            ("", False),
            (1, True),
            (0, False),
            (0.5, True),
            (0.0, False),
            (None, False),
            ({"a": 1}, False),
            ([1], False),
        ],
    )
    def test_coercion(self, value: object, expected: bool) -> None:
        assert coerce_condition(value) is expected


# ── Termination ──────────────────────────────────────────────────────


class TestTermination:
    """Every run stops with an explicit reason and never raises for shape."""

    def test_step_budget(self) -> None:
        assert step_budget(0) == 1
        assert step_budget(3) == 6

    async def test_cycle_hits_step_budget(self) -> None:
        chat = FakeChatService(reply="again")
        executor = NodeExecutor(make_clients(chat=chat))
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "a", "type": "llm", "data": {"userPrompt": "{{input}}"}},
                {"id": "b", "type": "llm", "data": {"userPrompt": "{{input}}"}},
            ],
            [("s", "a"), ("a", "b"), ("b", "a")],
        )

        result = await run_workflow(graph, executor)

        assert len(result.trace) == step_budget(3)
        assert result.termination is Termination.STEP_BUDGET
        assert result.output == "again"

    async def test_no_outgoing_edge_is_dead_end(self, executor: NodeExecutor) -> None:
        graph = make_graph([{"id": "s", "type": "start"}], [], initial_input="only")

        result = await run_workflow(graph, executor)
        assert result.termination is Termination.DEAD_END
        assert result.output == "only"
        assert result.context.output is None

    async def test_unknown_target_is_dead_end(self, executor: NodeExecutor) -> None:
        graph = make_graph([{"id": "s", "type": "start"}], [("s", "ghost")], initial_input="x")

        result = await run_workflow(graph, executor)
        assert result.termination is Termination.DEAD_END
        assert len(result.trace) == 1

    async def test_empty_graph(self, executor: NodeExecutor) -> None:
        result = await run_workflow(make_graph([], []), executor)
        assert result.trace == []
        assert result.output is None
        assert result.termination is Termination.DEAD_END

    async def test_cancellation_checked_before_each_step(self, executor: NodeExecutor) -> None:
        checks = 0

        async def is_cancelled() -> bool:
            nonlocal checks
            checks += 1
            return checks > 1

        graph = make_graph(
            [{"id": "s", "type": "start"}, {"id": "o", "type": "output"}],
            [("s", "o")],
            initial_input="x",
        )

        result = await run_workflow(graph, executor, is_cancelled=is_cancelled)
        assert [entry.node_id for entry in result.trace] == ["s"]
        assert result.termination is Termination.CANCELLED

    async def test_unsupported_kind_continues(self, executor: NodeExecutor) -> None:
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "m", "type": "emailer"},
                {"id": "o", "type": "output"},
            ],
            [("s", "m"), ("m", "o")],
        )

        result = await run_workflow(graph, executor)
        assert result.termination is Termination.OUTPUT
        assert result.output == {"error": "Unsupported node type: emailer", "nodeId": "m"}

    async def test_configuration_error_aborts_run(self) -> None:
        executor = NodeExecutor(make_clients(model_defaults=ModelDefaults()))
        graph = make_graph(
            [{"id": "s", "type": "start"}, {"id": "l", "type": "llm"}],
            [("s", "l")],
        )

        with pytest.raises(ConfigurationError):
            await run_workflow(graph, executor)


# ── Sink notifications ───────────────────────────────────────────────


class TestSinkNotifications:
    """The same loop drives streaming through the sink."""

    async def test_streaming_sink_receives_deltas_between_traces(self, recording_sink: RecordingSink) -> None:
        chat = FakeChatService(fragments=["a", "b", "c"])
        executor = NodeExecutor(make_clients(chat=chat))
        graph = make_graph(
            [
                {"id": "s", "type": "start"},
                {"id": "l", "type": "llm", "data": {"userPrompt": "x"}},
                {"id": "o", "type": "output"},
            ],
            [("s", "l"), ("l", "o")],
        )

        result = await run_workflow(graph, executor, sink=recording_sink)

        assert recording_sink.events == [
            ("start", None),
            ("trace", "s"),
            ("finished", "s"),
            ("trace", "l"),
            ("delta", "a"),
            ("delta", "b"),
            ("delta", "c"),
            ("finished", "l"),
            ("trace", "o"),
            ("finished", "o"),
            ("end", "abc"),
        ]
        assert result.output == "abc"
        assert chat.calls == []

    async def test_buffered_sink_uses_complete(self) -> None:
        chat = FakeChatService(reply="full")
        executor = NodeExecutor(make_clients(chat=chat))
        sink = RecordingSink(streams_deltas=False)
        graph = make_graph([{"id": "l", "type": "llm", "data": {"userPrompt": "x"}}], [])

        result = await run_workflow(graph, executor, sink=sink)

        assert result.output == "full"
        assert "delta" not in sink.names()
        assert chat.stream_calls == []
