"""
Pydantic schemas for the in-memory project model and request/response validation.

Attributes are snake_case in Python; JSON uses camelCase aliases, which is
also the shape of the ``sections`` blob stored in the projects table.
"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class DocType(str, Enum):
    """Output format chosen when a project is created."""

    DOCX = "DOCX"
    PPTX = "PPTX"


class ContentSource(str, Enum):
    """Where a piece of generated text actually came from."""

    GENERATED = "generated"
    FALLBACK = "fallback"
    ERROR_MESSAGE = "error_message"


class Screen(str, Enum):
    """Top-level screen of one browser session."""

    LOGGED_OUT = "logged_out"
    DASHBOARD = "dashboard"
    WIZARD = "wizard"
    EDITOR = "editor"


class CamelModel(BaseModel):
    """Base for models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Project model
class RefinementHistory(CamelModel):
    """Snapshot taken right before an instruction-driven rewrite."""

    timestamp: int
    prompt: str
    previous_content: str


class Section(CamelModel):
    """One section of a document or one slide of a deck."""

    id: str
    title: str
    content: str = ""
    is_generated: bool = False
    history: List[RefinementHistory] = Field(default_factory=list)


class Project(CamelModel):
    """A document or presentation with its ordered sections."""

    id: str
    title: str
    type: DocType
    main_topic: str
    sections: List[Section] = Field(default_factory=list)
    created_at: int
    updated_at: int

    def find_section(self, section_id: str) -> Optional[Section]:
        return next((s for s in self.sections if s.id == section_id), None)


class User(CamelModel):
    """Application user as shown in the header."""

    id: str
    name: str
    email: str = ""


class AuthSession(BaseModel):
    """Tokens handed out by the identity provider."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: str = "bearer"
    user: Dict[str, Any] = Field(default_factory=dict)


# Session / auth requests
class SessionStartRequest(CamelModel):
    """Browser location at startup; may carry a recovery or OAuth fragment."""

    location: str = ""


class CredentialsRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class PasswordResetRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    redirect_to: Optional[str] = None


class RecoveryPasswordRequest(CamelModel):
    new_password: str = Field(..., min_length=6)


class OAuthUrlResponse(CamelModel):
    url: str


class MessageResponse(CamelModel):
    message: str


# Wizard / editor requests
class OutlineRequest(CamelModel):
    topic: str = Field(..., min_length=1)
    type: DocType = DocType.DOCX


class OutlineResponse(CamelModel):
    titles: List[str]
    source: ContentSource


class ProjectCreateRequest(CamelModel):
    """Final step of the new-project wizard."""

    title: str = ""
    topic: str = Field(..., min_length=1)
    type: DocType = DocType.DOCX
    sections: List[str] = Field(default_factory=list)


class SectionContentRequest(CamelModel):
    content: str


class RefineRequest(CamelModel):
    instruction: str = Field(..., min_length=1)


class GenerationResponse(CamelModel):
    """Result of an auto-generation or refinement request."""

    triggered: bool
    content: Optional[str] = None
    source: Optional[ContentSource] = None
    project: Project


# Shell state
class ShellState(CamelModel):
    """Everything the client needs to render the current screen."""

    screen: Screen
    user: Optional[User] = None
    projects: List[Project] = Field(default_factory=list)
    active_project: Optional[Project] = None
    recovery_pending: bool = False
    loading: bool = False
    exporting: bool = False
    generating_section_ids: List[str] = Field(default_factory=list)


class SessionCreatedResponse(CamelModel):
    session_id: str
    state: ShellState


class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    identity: str
    generation: str
    timestamp: datetime
    version: str = "0.1.0"
