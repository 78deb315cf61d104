"""
Dashboard and new-project wizard endpoints.

Route summary
-------------
GET    /api/session/projects             — reload the user's projects
POST   /api/session/projects/wizard      — dashboard → wizard
DELETE /api/session/projects/wizard      — wizard → dashboard
POST   /api/session/projects/outline     — suggest an outline for a topic
POST   /api/session/projects             — create the project and open it
POST   /api/session/projects/close       — editor → dashboard
POST   /api/session/projects/{id}/open   — open a project in the editor
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status

from docugen.dependencies.session import get_shell, get_signed_in_user
from docugen.models.schemas import (
    OutlineRequest,
    OutlineResponse,
    Project,
    ProjectCreateRequest,
    ShellState,
    User,
)
from docugen.services.shell import AuthoringShell

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[Project])
async def list_projects(
    _user: User = Depends(get_signed_in_user),
    shell: AuthoringShell = Depends(get_shell),
) -> List[Project]:
    """Reload the signed-in user's projects. A store failure is reported as 502."""
    return await shell.refresh_projects(strict=True)


@router.post("/wizard", response_model=ShellState)
async def begin_create(
    _user: User = Depends(get_signed_in_user),
    shell: AuthoringShell = Depends(get_shell),
) -> ShellState:
    shell.begin_create()
    return shell.snapshot()


@router.delete("/wizard", response_model=ShellState)
async def cancel_create(shell: AuthoringShell = Depends(get_shell)) -> ShellState:
    shell.cancel_create()
    return shell.snapshot()


@router.post("/outline", response_model=OutlineResponse)
async def suggest_outline(
    body: OutlineRequest,
    _user: User = Depends(get_signed_in_user),
    shell: AuthoringShell = Depends(get_shell),
) -> OutlineResponse:
    """Outline titles for the wizard's second step; may be a fixed fallback."""
    result = await shell.suggest_outline(body.topic, body.type)
    return OutlineResponse(titles=result.titles, source=result.source)


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreateRequest,
    _user: User = Depends(get_signed_in_user),
    shell: AuthoringShell = Depends(get_shell),
) -> Project:
    project = await shell.create_project(body.title, body.topic, body.type, body.sections)
    logger.info("Project %s created with %d sections", project.id, len(project.sections))
    return project


@router.post("/close", response_model=ShellState)
async def close_editor(shell: AuthoringShell = Depends(get_shell)) -> ShellState:
    shell.close_editor()
    return shell.snapshot()


@router.post("/{project_id}/open", response_model=ShellState)
async def open_project(
    project_id: str,
    _user: User = Depends(get_signed_in_user),
    shell: AuthoringShell = Depends(get_shell),
) -> ShellState:
    shell.open_project(project_id)
    return shell.snapshot()
