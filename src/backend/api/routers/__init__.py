"""
API routers package.
"""

from api.routers.workflow import router as workflow_router

__all__ = ["workflow_router"]
