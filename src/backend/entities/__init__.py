"""
Entities package.

Each subdirectory groups one layer of the workflow service:
- shared/: collaborator protocols, clients (chat, SQL, HTTP), template
  interpolation and expression evaluation
- workflow/: graph indexing, node execution, traversal engine and SSE sinks

Shared models are available at the package level.
"""

from models import WorkflowGraph, WorkflowResult

__all__ = ["WorkflowGraph", "WorkflowResult"]
