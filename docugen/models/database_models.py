"""
SQLAlchemy ORM models for the DocuGen store.

Two tables mirror the Supabase schema the frontend has always used:
``profiles`` (denormalized user record) and ``projects`` (sections kept as
an opaque JSON blob in camelCase).
"""
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    JSON,
)

from docugen.database import Base


class ProfileRow(Base):
    """Denormalized user profile, upserted on every sign-in / auth change."""

    __tablename__ = "profiles"

    id = Column(String(255), primary_key=True)  # identity-provider user id
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ProjectRow(Base):
    """A document or slide-deck project (= one editor workspace)."""

    __tablename__ = "projects"

    id = Column(String(64), primary_key=True)  # client-generated uuid
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    type = Column(String(16), nullable=False)  # "DOCX" | "PPTX"
    main_topic = Column(Text, nullable=False, default="")
    sections = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)
