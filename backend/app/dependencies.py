"""
Dependency injection for FastAPI routes.

Provides typed service dependencies that enable IDE navigation (Ctrl+Click).
"""

from typing import Annotated
from fastapi import Request, Depends

from app.services.assistant import AssistantOrchestrator
from app.services.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def get_assistant(request: Request) -> AssistantOrchestrator:
    return request.app.state.workspace.assistant


WorkspaceDep = Annotated[Workspace, Depends(get_workspace)]
AssistantDep = Annotated[AssistantOrchestrator, Depends(get_assistant)]
