"""
Shared models for entities.

These models are used by the workflow engine and the API layer.
All models are re-exported here for convenience.
"""

from .execution import ExecutionContext, Termination, TraceEntry, Value, WorkflowResult
from .workflow import (
    ApiCallConfig,
    ConditionConfig,
    CustomConfig,
    DbQueryConfig,
    LlmConfig,
    NodeConfig,
    NodeKind,
    OutputConfig,
    StartConfig,
    WorkflowEdge,
    WorkflowGraph,
    WorkflowNode,
)

__all__ = [
    # Graph (submitted workflow)
    "NodeKind",
    "NodeConfig",
    "StartConfig",
    "OutputConfig",
    "LlmConfig",
    "DbQueryConfig",
    "ApiCallConfig",
    "ConditionConfig",
    "CustomConfig",
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowGraph",
    # Execution (run state and results)
    "Value",
    "ExecutionContext",
    "TraceEntry",
    "Termination",
    "WorkflowResult",
]
