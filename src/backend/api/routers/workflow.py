"""
Workflow API routes with SSE streaming support.

``POST /api/workflow/execute`` runs a submitted graph. Clients that send
``Accept: text/event-stream`` receive live progress events; everyone else
gets a single JSON result once the run finishes.
"""

import logging
import uuid

from api.dependencies import get_node_executor
from entities.shared.chat_client import ConfigurationError
from entities.workflow import NodeExecutor, run_workflow, stream_workflow
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from models import WorkflowGraph

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflow", tags=["workflow"])

_EVENT_STREAM = "text/event-stream"


def _wants_event_stream(request: Request) -> bool:
    return _EVENT_STREAM in request.headers.get("accept", "").lower()


@router.post("/execute", response_model=None)
async def execute_workflow(
    graph: WorkflowGraph,
    request: Request,
    executor: NodeExecutor = Depends(get_node_executor),
) -> StreamingResponse | JSONResponse | dict:
    """Execute a workflow graph, buffered or as an SSE stream."""
    logger.info(
        "Workflow execute request: nodes=%d edges=%d", len(graph.nodes), len(graph.edges)
    )

    if _wants_event_stream(request):
        return StreamingResponse(
            stream_workflow(graph, executor, is_cancelled=request.is_disconnected),
            media_type=_EVENT_STREAM,
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    try:
        result = await run_workflow(graph, executor)
    except ConfigurationError as e:
        logger.warning("Workflow configuration error: %s", e)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "error": str(e)},
        )
    except Exception as e:
        correlation_id = uuid.uuid4().hex[:12]
        logger.error("Workflow execution error [%s]: %s", correlation_id, e, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "error": "An internal error occurred. Please try again.",
                "correlation_id": correlation_id,
            },
        )

    return result.to_dict()
