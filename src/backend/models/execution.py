"""
Workflow execution models.

These models hold the state of a single workflow run: the context threaded
between nodes, the trace of executed steps, and the final result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Value = str | int | float | bool | dict[str, Any] | list[Any]
"""JSON-compatible value produced by a node."""


class Termination(str, Enum):
    """Why a workflow run stopped."""

    OUTPUT = "output"
    """An Output node was reached."""

    DEAD_END = "dead_end"
    """The current node had no usable outgoing edge."""

    STEP_BUDGET = "step_budget"
    """The step budget ran out, most likely because of a cycle."""

    CANCELLED = "cancelled"
    """The caller went away before the run finished."""


@dataclass
class ExecutionContext:
    """Values visible to templates while a workflow runs.

    ``input`` holds the previous node's output (the initial input for the
    Start node) and ``output`` is only set once an Output node has run.
    ``None`` means the reserved key has not been assigned yet.
    """

    input: Value | None = None
    output: Value | None = None
    per_node: dict[str, Value] = field(default_factory=dict)

    def lookup(self, key: str) -> tuple[bool, Any]:
        """Resolve a template key to ``(found, value)``."""
        if key == "input" and self.input is not None:
            return True, self.input
        if key == "output" and self.output is not None:
            return True, self.output
        if key in self.per_node:
            return True, self.per_node[key]
        return False, None

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the ``context`` map returned to clients."""
        result: dict[str, Any] = {}
        if self.input is not None:
            result["input"] = self.input
        result.update(self.per_node)
        if self.output is not None:
            result["output"] = self.output
        return result


@dataclass(frozen=True, slots=True)
class TraceEntry:
    """One executed node, recorded in execution order.

    Attributes:
        node_id: Id of the executed node.
        kind: Kind label of the node.
        input: Snapshot of ``context.input`` before the node ran.
        output: Value the node produced.
    """

    node_id: str
    kind: str
    input: Any
    output: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "kind": self.kind,
            "input": self.input,
            "output": self.output,
        }


@dataclass
class WorkflowResult:
    """Aggregate outcome of a workflow run."""

    output: Any
    context: ExecutionContext
    trace: list[TraceEntry]
    termination: Termination
    status: str = "success"

    def to_dict(self) -> dict[str, Any]:
        """Serialize into the buffered response body."""
        return {
            "status": self.status,
            "output": self.output,
            "context": self.context.to_dict(),
            "trace": [entry.to_dict() for entry in self.trace],
            "termination": self.termination.value,
        }
