"""
Editor endpoints for the active project.

Every mutating call persists the whole project before it returns.
"""
import logging

from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from docugen.dependencies.session import get_shell
from docugen.models.schemas import (
    GenerationResponse,
    Project,
    RefineRequest,
    SectionContentRequest,
)
from docugen.services.shell import AuthoringShell, SectionUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put("/sections/{section_id}", response_model=Project)
async def update_section(
    section_id: str,
    body: SectionContentRequest,
    shell: AuthoringShell = Depends(get_shell),
) -> Project:
    """Commit a manual edit (sent from the text area's change handler)."""
    return await shell.update_section_content(section_id, body.content)


@router.post("/sections/{section_id}/generate", response_model=GenerationResponse)
async def generate_section(
    section_id: str,
    shell: AuthoringShell = Depends(get_shell),
) -> GenerationResponse:
    """
    Called when a section is selected. Generates content only for a section
    that is empty, never generated, and not already generating.
    """
    return _generation_response(await shell.ensure_section_content(section_id))


@router.post("/sections/{section_id}/refine", response_model=GenerationResponse)
async def refine_section(
    section_id: str,
    body: RefineRequest,
    shell: AuthoringShell = Depends(get_shell),
) -> GenerationResponse:
    return _generation_response(await shell.refine_section(section_id, body.instruction))


def _generation_response(update: SectionUpdate) -> GenerationResponse:
    # active_project may already be None if the editor was closed meanwhile
    if update.result is None:
        return GenerationResponse(triggered=False, project=update.project)
    return GenerationResponse(
        triggered=True,
        content=update.result.content,
        source=update.result.source,
        project=update.project,
    )


@router.post("/sections/{section_id}/undo", response_model=Project)
async def undo_refinement(
    section_id: str,
    shell: AuthoringShell = Depends(get_shell),
) -> Project:
    return await shell.undo_refinement(section_id)


@router.get("/export")
async def export_active_project(shell: AuthoringShell = Depends(get_shell)) -> Response:
    """Encode the open project and send it as a file download."""
    artifact = await run_in_threadpool(shell.export_active)
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
