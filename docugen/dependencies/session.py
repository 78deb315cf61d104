"""
Session dependencies for FastAPI routes.

Each browser session is identified by the X-Session-Id header returned from
``POST /api/session``. The header resolves to the live ``AuthoringShell``.
"""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from docugen.database import AsyncSessionLocal
from docugen.models.schemas import User
from docugen.services.generator import GeminiContentService
from docugen.services.identity import IdentityService
from docugen.services.profiles import ProfileStore
from docugen.services.project_store import ProjectStore
from docugen.services.shell import AuthoringShell, shell_registry

logger = logging.getLogger(__name__)

ShellFactory = Callable[[], AuthoringShell]


def build_shell() -> AuthoringShell:
    """Wire a shell to the configured identity provider, store and Gemini model."""
    return AuthoringShell(
        identity=IdentityService(ProfileStore(AsyncSessionLocal)),
        store=ProjectStore(AsyncSessionLocal),
        generator=GeminiContentService(),
    )


def get_shell_factory() -> ShellFactory:
    """Overridable in tests to inject fakes."""
    return build_shell


async def get_shell(
    x_session_id: str = Header(..., alias="X-Session-Id"),
) -> AuthoringShell:
    """
    Resolve the session header to its shell. Idle sessions are evicted
    first, so an expired id gets the same 404 as an unknown one.
    """
    await shell_registry.evict_idle()
    shell = shell_registry.get(x_session_id)
    if shell is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unknown or expired session.",
        )
    return shell


async def get_signed_in_user(shell: AuthoringShell = Depends(get_shell)) -> User:
    """Require a signed-in user on the session. Raises 401 otherwise."""
    if shell.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in first.",
        )
    return shell.user
