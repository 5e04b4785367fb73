"""
FastAPI dependencies for shared resources.
"""

import logging

from entities.workflow import NodeExecutor, WorkflowClients
from fastapi import Depends, HTTPException, Request

logger = logging.getLogger(__name__)


def get_workflow_clients(request: Request) -> WorkflowClients:
    """
    Get the workflow collaborator bundle from app state.

    Raises HTTPException 503 if not initialized.
    """
    clients = getattr(request.app.state, "workflow_clients", None)
    if clients is None:
        raise HTTPException(status_code=503, detail="Workflow clients not initialized")
    return clients


def get_node_executor(clients: WorkflowClients = Depends(get_workflow_clients)) -> NodeExecutor:
    """Build a node executor bound to the shared collaborators."""
    return NodeExecutor(clients)
