"""
Traversal engine for submitted workflow graphs.

A single bounded loop drives both buffered and streaming execution; the
difference lives entirely in the sink passed to ``run_workflow()``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from entities.shared.protocols import DeltaCallback, WorkflowSink
from models import (
    ExecutionContext,
    NodeKind,
    Termination,
    TraceEntry,
    WorkflowGraph,
    WorkflowNode,
    WorkflowResult,
)

from .executor import NodeExecutor
from .graph import GraphIndex, build_graph_index
from .sinks import NoOpSink

logger = logging.getLogger(__name__)

CancellationCheck = Callable[[], Awaitable[bool]]


def step_budget(node_count: int) -> int:
    """Maximum loop iterations for a graph with *node_count* nodes."""
    return max(1, 2 * node_count)


def coerce_condition(value: Any) -> bool:  # noqa: ANN401
    """Interpret a condition node's output as a branch decision.

    Booleans pass through. Strings are ``true``/``false`` (trimmed,
    case-insensitive) or otherwise truthy when not blank. Numbers are truthy
    when non-zero. Anything else is false.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "false"):
            return text == "true"
        return bool(text)
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _next_node(
    index: GraphIndex,
    node: WorkflowNode,
    output: Any,  # noqa: ANN401
) -> WorkflowNode | None:
    targets = index.successors(node.id)
    if not targets:
        return None

    if node.kind is NodeKind.CONDITION:
        # First edge is the true branch; a single edge serves both
        if coerce_condition(output) or len(targets) == 1:
            next_id = targets[0]
        else:
            next_id = targets[1]
    else:
        next_id = targets[0]

    next_node = index.nodes_by_id.get(next_id)
    if next_node is None:
        logger.warning("Edge from %s points at unknown node %s", node.id, next_id)
    return next_node


def _delta_forwarder(sink: WorkflowSink, node: WorkflowNode) -> DeltaCallback | None:
    if not sink.streams_deltas:
        return None

    async def _forward(delta: str) -> None:
        await sink.node_delta(node, delta)

    return _forward


async def run_workflow(
    graph: WorkflowGraph,
    executor: NodeExecutor,
    sink: WorkflowSink | None = None,
    is_cancelled: CancellationCheck | None = None,
) -> WorkflowResult:
    """Execute *graph* from its start node until it terminates.

    Args:
        graph: Validated workflow graph.
        executor: Node executor bound to the run's collaborators.
        sink: Progress sink; defaults to ``NoOpSink`` (buffered mode).
        is_cancelled: Awaitable check polled before every step.

    Returns:
        ``WorkflowResult`` with the final output, context, trace and the
        reason the run stopped.

    Raises:
        ConfigurationError: If an LLM node has no usable credentials.
        ExpressionError: If a condition expression cannot be evaluated.
    """
    sink = sink or NoOpSink()
    index = build_graph_index(graph)
    budget = step_budget(len(graph.nodes))

    context = ExecutionContext()
    if graph.initial_input:
        context.input = graph.initial_input
    last_output: Any = context.input
    trace: list[TraceEntry] = []

    current = index.start
    termination = Termination.DEAD_END
    steps = 0

    logger.info(
        "Workflow run started: nodes=%d edges=%d budget=%d streaming=%s",
        len(graph.nodes),
        len(graph.edges),
        budget,
        sink.streams_deltas,
    )
    await sink.run_started()

    while current is not None:
        if steps >= budget:
            logger.warning("Workflow step budget of %d exhausted at node %s", budget, current.id)
            termination = Termination.STEP_BUDGET
            break
        if is_cancelled is not None and await is_cancelled():
            logger.info("Workflow run cancelled before node %s", current.id)
            termination = Termination.CANCELLED
            break
        steps += 1

        node = current
        if node.kind is not NodeKind.START and last_output is not None:
            context.input = last_output

        await sink.node_started(node)
        input_snapshot = context.input
        output = await executor.execute(node, context, _delta_forwarder(sink, node))
        context.per_node[node.id] = output
        last_output = output

        entry = TraceEntry(node_id=node.id, kind=node.kind_name, input=input_snapshot, output=output)
        trace.append(entry)
        await sink.node_finished(entry)

        if node.kind is NodeKind.OUTPUT:
            context.output = output
            termination = Termination.OUTPUT
            break

        current = _next_node(index, node, output)

    final_output = context.output if context.output is not None else last_output
    result = WorkflowResult(
        output=final_output,
        context=context,
        trace=trace,
        termination=termination,
    )
    logger.info("Workflow run finished: steps=%d termination=%s", steps, termination.value)
    await sink.run_finished(result)
    return result
