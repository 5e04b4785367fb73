"""Progress sinks for the traversal engine.

``NoOpSink`` backs buffered execution. ``QueueSink`` frames every
notification as a Server-Sent Event and pushes it onto an
``asyncio.Queue`` that the streaming response drains.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from models import TraceEntry, WorkflowNode, WorkflowResult

logger = logging.getLogger(__name__)


def format_sse_event(name: str | None, data: Any) -> str:  # noqa: ANN401
    """Frame *data* as one SSE event.

    Args:
        name: Event name, or ``None`` for an unnamed event.
        data: JSON-serializable payload.

    Returns:
        ``event:`` line (when named), one ``data:`` line per payload line,
        and the blank-line terminator.
    """
    payload = json.dumps(data, ensure_ascii=False, default=str)
    lines = [f"event: {name}"] if name else []
    lines.extend(f"data: {line}" for line in payload.split("\n"))
    return "\n".join(lines) + "\n\n"


class NoOpSink:
    """Sink that discards all notifications (buffered mode)."""

    streams_deltas = False

    async def run_started(self) -> None:
        pass

    async def node_started(self, node: WorkflowNode) -> None:
        pass

    async def node_delta(self, node: WorkflowNode, delta: str) -> None:
        pass

    async def node_finished(self, entry: TraceEntry) -> None:
        pass

    async def run_finished(self, result: WorkflowResult) -> None:
        pass


class QueueSink:
    """Sink that pushes framed SSE events onto an ``asyncio.Queue``.

    Emits ``start`` once, ``trace`` before each node, unnamed ``delta``
    events while LLM nodes stream, and ``end`` once the run finishes.

    Args:
        queue: Destination queue, drained by the response generator.
    """

    streams_deltas = True

    def __init__(self, queue: asyncio.Queue[str | None]) -> None:
        self._queue = queue

    async def run_started(self) -> None:
        await self._queue.put(format_sse_event("start", {}))

    async def node_started(self, node: WorkflowNode) -> None:
        await self._queue.put(format_sse_event("trace", {"nodeId": node.id}))

    async def node_delta(self, node: WorkflowNode, delta: str) -> None:
        await self._queue.put(format_sse_event(None, {"delta": delta}))

    async def node_finished(self, entry: TraceEntry) -> None:
        logger.debug("Node %s finished", entry.node_id)

    async def run_finished(self, result: WorkflowResult) -> None:
        await self._queue.put(
            format_sse_event(
                "end",
                {"output": result.output, "termination": result.termination.value},
            )
        )
