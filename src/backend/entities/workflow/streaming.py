"""
Server-Sent Events driver for streaming workflow execution.

The engine runs in its own task and reports through a ``QueueSink``; this
generator drains the queue and yields framed events as they arrive.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncGenerator

from entities.shared.chat_client import ConfigurationError
from models import WorkflowGraph

from .engine import CancellationCheck, run_workflow
from .executor import NodeExecutor
from .sinks import QueueSink, format_sse_event

logger = logging.getLogger(__name__)


def sanitized_error_event(error: Exception) -> str:
    """Build a sanitized SSE ``error`` event with a correlation ID.

    Logs the full exception server-side. Configuration problems are
    reported verbatim; everything else gets a generic message so internal
    details are never leaked.
    """
    correlation_id = uuid.uuid4().hex[:12]
    logger.error("SSE error [%s]: %s", correlation_id, error, exc_info=error)
    if isinstance(error, ConfigurationError):
        message = str(error)
    else:
        message = "An internal error occurred. Please try again."
    return format_sse_event("error", {"error": message, "correlation_id": correlation_id})


async def stream_workflow(
    graph: WorkflowGraph,
    executor: NodeExecutor,
    is_cancelled: CancellationCheck | None = None,
) -> AsyncGenerator[str, None]:
    """Execute *graph* and yield SSE-framed progress events.

    Yields ``start``, one ``trace`` per node, unnamed delta events from
    streaming LLM nodes, then ``end``. A failed run ends with an ``error``
    event instead. Closing the generator cancels the run.

    Args:
        graph: Validated workflow graph.
        executor: Node executor bound to the run's collaborators.
        is_cancelled: Awaitable check polled before every step.
    """
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    sink = QueueSink(queue)

    async def _run() -> None:
        try:
            await run_workflow(graph, executor, sink=sink, is_cancelled=is_cancelled)
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(_run())
    try:
        while (event := await queue.get()) is not None:
            yield event
        await task
    except Exception as e:
        yield sanitized_error_event(e)
    finally:
        if not task.done():
            logger.info("Streaming client went away; cancelling workflow run")
            task.cancel()
