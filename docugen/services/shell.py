"""
Application shell: the view-state controller of one browser session.

Owns the signed-in user, the project list, the active project, the
new-project wizard flag and the password-recovery overlay, and is the only
component that sequences calls across the identity, store, generator and
exporter adapters.

Screens
-------
    logged_out ──sign-in──▶ dashboard ◀──▶ wizard ──create──▶ editor
                               ▲                                │
                               └──────────── close ◀────────────┘

A recovery token found in the start URL overlays whichever screen is active
until the password is changed or the overlay dismissed.

Every edit persists the whole project right away. The in-memory copy is
updated first, so a failed write keeps the local version visible.

Usage
-----
    from docugen.services.shell import shell_registry

    session_id = shell_registry.create(shell)
    shell = shell_registry.get(session_id)
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from docugen.config import settings
from docugen.exceptions import (
    EditorStateError,
    SectionNotFoundError,
    StoreError,
)
from docugen.models.schemas import (
    DocType,
    Project,
    RefinementHistory,
    Screen,
    Section,
    ShellState,
    User,
)
from docugen.services.exporter import ExportArtifact, export_project
from docugen.services.generator import GeminiContentService, GenerationResult, OutlineResult
from docugen.services.identity import IdentityService
from docugen.services.project_store import ProjectStore
from docugen.utils.helpers import now_ms, parse_url_fragment

logger = logging.getLogger(__name__)

Exporter = Callable[[Project], ExportArtifact]


@dataclass(frozen=True)
class SectionUpdate:
    """Outcome of a generate or refine call, with the project as it now stands."""

    project: Project
    result: Optional[GenerationResult] = None

    @property
    def triggered(self) -> bool:
        return self.result is not None


class AuthoringShell:
    """Screen state machine plus the editing lifecycle of projects and sections."""

    def __init__(
        self,
        identity: IdentityService,
        store: ProjectStore,
        generator: GeminiContentService,
        exporter: Exporter = export_project,
    ) -> None:
        self.identity = identity
        self.store = store
        self.generator = generator
        self.exporter = exporter

        self.user: Optional[User] = None
        self.projects: List[Project] = []
        self.active_project: Optional[Project] = None
        self.is_creating = False
        self.recovery_token: Optional[str] = None
        self.loading = False
        self.exporting = False

        self._generating: Set[str] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    @property
    def screen(self) -> Screen:
        if self.user is None:
            return Screen.LOGGED_OUT
        if self.active_project is not None:
            return Screen.EDITOR
        if self.is_creating:
            return Screen.WIZARD
        return Screen.DASHBOARD

    @property
    def recovery_pending(self) -> bool:
        return self.recovery_token is not None

    def is_generating(self, section_id: str) -> bool:
        return section_id in self._generating

    @property
    def busy(self) -> bool:
        return bool(self._generating) or self.exporting

    def snapshot(self) -> ShellState:
        return ShellState(
            screen=self.screen,
            user=self.user,
            projects=list(self.projects),
            active_project=self.active_project,
            recovery_pending=self.recovery_pending,
            loading=self.loading,
            exporting=self.exporting,
            generating_section_ids=sorted(self._generating),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, location: str = "") -> None:
        """
        Startup sequence: adopt any session from the redirect URL, detect a
        pending password recovery, load the current user and their projects,
        then subscribe to auth-state changes.
        """
        await self.identity.handle_session_from_url(location)

        params = parse_url_fragment(location)
        if params.get("type") == "recovery" and params.get("access_token"):
            self.recovery_token = params["access_token"]
            logger.info("Password recovery pending for this session")

        current = await self.identity.get_current_user()
        if current is not None:
            self.user = current
            await self.refresh_projects()

        self._unsubscribe = self.identity.on_auth_state_change(self._on_auth_change)

    async def close(self) -> None:
        """Teardown: release the auth-state subscription exactly once."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_auth_change(self, user: Optional[User]) -> None:
        self.user = user
        if user is not None:
            await self.refresh_projects()
        else:
            self.projects = []
            self.active_project = None
            self.is_creating = False

    async def refresh_projects(self, strict: bool = False) -> List[Project]:
        """
        Reload the project list. A store failure is logged and the list kept;
        with *strict* it is re-raised after logging.
        """
        if self.user is None:
            return []
        self.loading = True
        try:
            self.projects = await self.store.get_projects(self.user.id)
        except StoreError as exc:
            logger.error("Failed to load projects for %s: %s", self.user.id, exc)
            if strict:
                raise
        finally:
            self.loading = False
        return self.projects

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> None:
        await self.identity.sign_up(email, password)

    async def login(self, email: str, password: str) -> User:
        """Password sign-in; AuthError propagates and leaves the state untouched."""
        user = await self.identity.sign_in(email, password)
        if self.user is None or self.user.id != user.id:
            # no observer fired (start() not called yet)
            self.user = user
            await self.refresh_projects()
        return self.user

    async def request_password_reset(self, email: str, redirect_to: Optional[str] = None) -> None:
        await self.identity.request_password_reset(email, redirect_to)

    def oauth_url(self, provider: Optional[str] = None) -> str:
        return self.identity.sign_in_with_oauth(provider)

    async def logout(self) -> None:
        await self.identity.sign_out()
        self.user = None
        self.projects = []
        self.active_project = None
        self.is_creating = False

    async def change_password(self, new_password: str) -> Optional[User]:
        """Finish the recovery flow. AuthError keeps the token so the user can retry."""
        if self.recovery_token is None:
            raise EditorStateError("No password recovery is pending")
        await self.identity.update_password_using_recovery(self.recovery_token, new_password)
        self.recovery_token = None
        self.user = await self.identity.get_current_user()
        return self.user

    def dismiss_recovery(self) -> None:
        self.recovery_token = None

    # ------------------------------------------------------------------
    # Dashboard / wizard
    # ------------------------------------------------------------------

    def _require_user(self) -> User:
        if self.user is None:
            raise EditorStateError("Sign in first")
        return self.user

    def begin_create(self) -> None:
        self._require_user()
        self.active_project = None
        self.is_creating = True

    def cancel_create(self) -> None:
        self.is_creating = False

    async def suggest_outline(self, topic: str, doc_type: DocType) -> OutlineResult:
        self._require_user()
        return await self.generator.generate_outline(topic, doc_type)

    async def create_project(
        self,
        title: str,
        topic: str,
        doc_type: DocType,
        section_titles: List[str],
    ) -> Project:
        """
        Persist a new project built from the wizard and open it in the editor.

        On StoreError nothing is added to the project list.
        """
        user = self._require_user()
        created = now_ms()
        project = Project(
            id=str(uuid.uuid4()),
            title=title.strip() or topic,
            type=doc_type,
            main_topic=topic,
            sections=[
                Section(id=str(uuid.uuid4()), title=t, content="", is_generated=False, history=[])
                for t in section_titles
            ],
            created_at=created,
            updated_at=created,
        )

        await self.store.create_project(project, user.id)

        self.projects = [project] + self.projects
        self.is_creating = False
        self.active_project = project
        return project

    def open_project(self, project_id: str) -> Project:
        self._require_user()
        project = next((p for p in self.projects if p.id == project_id), None)
        if project is None:
            raise EditorStateError(f"Project {project_id} is not in the project list")
        self.is_creating = False
        self.active_project = project
        return project

    def close_editor(self) -> None:
        self.active_project = None

    def go_home(self) -> None:
        self.active_project = None
        self.is_creating = False

    # ------------------------------------------------------------------
    # Editor
    # ------------------------------------------------------------------

    def _require_active(self) -> Project:
        if self.active_project is None:
            raise EditorStateError("No project is open")
        return self.active_project

    def _project_by_id(self, project_id: str) -> Project:
        if self.active_project is not None and self.active_project.id == project_id:
            return self.active_project
        project = next((p for p in self.projects if p.id == project_id), None)
        if project is None:
            raise EditorStateError(f"Project {project_id} is no longer loaded")
        return project

    def _section(self, project: Project, section_id: str) -> Section:
        section = project.find_section(section_id)
        if section is None:
            raise SectionNotFoundError(f"Section {section_id} not found")
        return section

    async def _replace_section(self, project_id: str, section_id: str, **changes) -> Project:
        """Apply *changes* to one section and persist the whole project."""
        project = self._project_by_id(project_id)
        section = self._section(project, section_id)
        updated_section = section.model_copy(update=changes)
        updated = project.model_copy(update={
            "sections": [updated_section if s.id == section_id else s for s in project.sections],
            "updated_at": max(now_ms(), project.updated_at),
        })
        await self._persist(updated)
        return updated

    async def _persist(self, updated: Project) -> None:
        self.projects = [updated if p.id == updated.id else p for p in self.projects]
        if self.active_project is not None and self.active_project.id == updated.id:
            self.active_project = updated
        try:
            await self.store.update_project(updated)
        except StoreError as exc:
            # local copy stays; the remote one may now be stale
            logger.error("Failed to sync update of project %s: %s", updated.id, exc)

    async def update_section_content(self, section_id: str, content: str) -> Project:
        """Manual edit committed by the client's change handler."""
        project = self._require_active()
        return await self._replace_section(project.id, section_id, content=content)

    async def ensure_section_content(self, section_id: str) -> SectionUpdate:
        """
        Auto-generate a section's content when it is empty, was never
        generated and has no generation in flight.

        The returned project is the one the result was written into, which
        stays valid even if the editor was closed while generating.
        """
        project = self._require_active()
        section = self._section(project, section_id)
        if section.content or section.is_generated or section_id in self._generating:
            return SectionUpdate(project)

        self._generating.add(section_id)
        try:
            result = await self.generator.generate_section_content(
                project.main_topic, section.title, project.type
            )
            updated = await self._replace_section(
                project.id, section_id, content=result.content, is_generated=True
            )
        finally:
            self._generating.discard(section_id)

        logger.info(
            "Generated section %s of project %s (%s)",
            section_id,
            project.id,
            result.source.value,
        )
        return SectionUpdate(updated, result)

    async def refine_section(self, section_id: str, instruction: str) -> SectionUpdate:
        """
        Rewrite a section per *instruction*. Only a real rewrite is recorded in
        the history; a fallback leaves the section untouched.
        """
        project = self._require_active()
        section = self._section(project, section_id)
        if not section.content or not instruction.strip():
            return SectionUpdate(project)

        result = await self.generator.refine_content(section.content, instruction)
        if not result.is_generated:
            logger.warning("Refinement of section %s fell back; content unchanged", section_id)
            return SectionUpdate(self._project_by_id(project.id), result)

        entry = RefinementHistory(
            timestamp=now_ms(),
            prompt=instruction,
            previous_content=section.content,
        )
        updated = await self._replace_section(
            project.id,
            section_id,
            content=result.content,
            history=list(section.history) + [entry],
        )
        return SectionUpdate(updated, result)

    async def undo_refinement(self, section_id: str) -> Project:
        """Restore the content before the last refinement. The entry stays in history."""
        project = self._require_active()
        section = self._section(project, section_id)
        if not section.history:
            return project
        last = section.history[-1]
        return await self._replace_section(
            project.id, section_id, content=last.previous_content, is_generated=True
        )

    def export_active(self) -> ExportArtifact:
        """Export the open project; the exporting flag is always cleared."""
        project = self._require_active()
        self.exporting = True
        try:
            return self.exporter(project)
        finally:
            self.exporting = False


# ---------------------------------------------------------------------------
# Shell registry (class-level state, acts as a singleton)
# ---------------------------------------------------------------------------

class ShellRegistry:
    """Maps session ids to live shells and drops the ones left idle."""

    _shells: Dict[str, AuthoringShell] = {}
    _last_seen: Dict[str, float] = {}

    @classmethod
    def create(cls, shell: AuthoringShell) -> str:
        session_id = uuid.uuid4().hex
        cls._shells[session_id] = shell
        cls._last_seen[session_id] = time.monotonic()
        logger.info("Session %s opened (%d active)", session_id, len(cls._shells))
        return session_id

    @classmethod
    def get(cls, session_id: str) -> Optional[AuthoringShell]:
        shell = cls._shells.get(session_id)
        if shell is not None:
            cls._last_seen[session_id] = time.monotonic()
        return shell

    @classmethod
    async def discard(cls, session_id: str) -> bool:
        cls._last_seen.pop(session_id, None)
        shell = cls._shells.pop(session_id, None)
        if shell is None:
            return False
        await shell.close()
        logger.info("Session %s closed", session_id)
        return True

    @classmethod
    async def evict_idle(
        cls, ttl: Optional[float] = None, now: Optional[float] = None
    ) -> int:
        """
        Close every session not seen for more than *ttl* seconds
        (``SESSION_TTL`` by default). A shell with a generation or export in
        flight is kept. Returns the number of sessions closed.
        """
        ttl = settings.SESSION_TTL if ttl is None else ttl
        if ttl <= 0:
            return 0
        now = time.monotonic() if now is None else now

        expired = [
            session_id
            for session_id, seen in cls._last_seen.items()
            if now - seen > ttl and not cls._shells[session_id].busy
        ]
        for session_id in expired:
            await cls.discard(session_id)
        if expired:
            logger.info(
                "Evicted %d idle session(s) (%d active)", len(expired), len(cls._shells)
            )
        return len(expired)

    @classmethod
    async def close_all(cls) -> None:
        for session_id in list(cls._shells):
            await cls.discard(session_id)


# Module-level singleton instance
shell_registry = ShellRegistry
