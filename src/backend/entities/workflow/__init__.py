"""
Workflow execution: graph indexing, node execution, traversal and streaming.

``run_workflow`` executes a graph in buffered mode and ``stream_workflow``
yields Server-Sent Events as it runs. ``WorkflowClients`` /
``create_workflow_clients`` provide dependency injection.
"""

from .clients import WorkflowClients, create_workflow_clients
from .engine import coerce_condition, run_workflow, step_budget
from .executor import NodeExecutor
from .graph import GraphIndex, build_graph_index
from .sinks import NoOpSink, QueueSink, format_sse_event
from .streaming import stream_workflow

__all__ = [
    "GraphIndex",
    "NoOpSink",
    "NodeExecutor",
    "QueueSink",
    "WorkflowClients",
    "build_graph_index",
    "coerce_condition",
    "create_workflow_clients",
    "format_sse_event",
    "run_workflow",
    "step_budget",
    "stream_workflow",
]
