"""Database and schema models for DocuGen."""
from docugen.models.database_models import (
    ProfileRow,
    ProjectRow,
)
from docugen.models.schemas import (
    AuthSession,
    ContentSource,
    DocType,
    HealthCheckResponse,
    Project,
    RefinementHistory,
    Screen,
    Section,
    ShellState,
    User,
)

__all__ = [
    # Database models
    "ProfileRow",
    "ProjectRow",
    # Pydantic schemas
    "AuthSession",
    "ContentSource",
    "DocType",
    "HealthCheckResponse",
    "Project",
    "RefinementHistory",
    "Screen",
    "Section",
    "ShellState",
    "User",
]
