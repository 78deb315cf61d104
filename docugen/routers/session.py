"""
Session and authentication endpoints.

Route summary
-------------
POST   /api/session                  — open a session (handles redirect URL fragment)
GET    /api/session                  — current view state
DELETE /api/session                  — close the session

POST   /api/session/sign-up          — create an account
POST   /api/session/sign-in          — password sign-in
POST   /api/session/password-reset   — send the reset e-mail
GET    /api/session/oauth/{provider} — authorize URL for the browser to follow
POST   /api/session/sign-out         — sign out

POST   /api/session/recovery         — set a new password with the recovery token
DELETE /api/session/recovery         — dismiss the recovery overlay
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response, status

from docugen.dependencies.session import ShellFactory, get_shell, get_shell_factory
from docugen.models.schemas import (
    CredentialsRequest,
    MessageResponse,
    OAuthUrlResponse,
    PasswordResetRequest,
    RecoveryPasswordRequest,
    SessionCreatedResponse,
    SessionStartRequest,
    ShellState,
)
from docugen.services.shell import AuthoringShell, shell_registry

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Session lifecycle ────────────────────────────────────────────────────────

@router.post("", response_model=SessionCreatedResponse, status_code=status.HTTP_201_CREATED)
async def open_session(
    body: Optional[SessionStartRequest] = None,
    factory: ShellFactory = Depends(get_shell_factory),
) -> SessionCreatedResponse:
    """
    Open a session for a freshly loaded page. ``location`` is the full page
    URL so OAuth and password-recovery fragments can be picked up.
    """
    shell = factory()
    await shell.start(body.location if body else "")
    session_id = shell_registry.create(shell)
    return SessionCreatedResponse(session_id=session_id, state=shell.snapshot())


@router.get("", response_model=ShellState)
async def get_state(shell: AuthoringShell = Depends(get_shell)) -> ShellState:
    return shell.snapshot()


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    x_session_id: str = Header(..., alias="X-Session-Id"),
    shell: AuthoringShell = Depends(get_shell),
) -> Response:
    await shell_registry.discard(x_session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Authentication ───────────────────────────────────────────────────────────

@router.post("/sign-up", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def sign_up(
    body: CredentialsRequest,
    shell: AuthoringShell = Depends(get_shell),
) -> MessageResponse:
    await shell.sign_up(body.email, body.password)
    return MessageResponse(
        message="Sign-up initiated. Please check your email for confirmation (if enabled)."
    )


@router.post("/sign-in", response_model=ShellState)
async def sign_in(
    body: CredentialsRequest,
    shell: AuthoringShell = Depends(get_shell),
) -> ShellState:
    await shell.login(body.email, body.password)
    return shell.snapshot()


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_password_reset(
    body: PasswordResetRequest,
    shell: AuthoringShell = Depends(get_shell),
) -> MessageResponse:
    await shell.request_password_reset(body.email, body.redirect_to)
    return MessageResponse(message="Password reset email sent. Check your inbox.")


@router.get("/oauth/{provider}", response_model=OAuthUrlResponse)
async def oauth_url(
    provider: str,
    shell: AuthoringShell = Depends(get_shell),
) -> OAuthUrlResponse:
    return OAuthUrlResponse(url=shell.oauth_url(provider))


@router.post("/sign-out", response_model=ShellState)
async def sign_out(shell: AuthoringShell = Depends(get_shell)) -> ShellState:
    await shell.logout()
    return shell.snapshot()


# ─── Password recovery ────────────────────────────────────────────────────────

@router.post("/recovery", response_model=ShellState)
async def change_password(
    body: RecoveryPasswordRequest,
    shell: AuthoringShell = Depends(get_shell),
) -> ShellState:
    await shell.change_password(body.new_password)
    return shell.snapshot()


@router.delete("/recovery", response_model=ShellState)
async def dismiss_recovery(shell: AuthoringShell = Depends(get_shell)) -> ShellState:
    shell.dismiss_recovery()
    return shell.snapshot()
