"""
Project store adapter.

Translates between the stored row shape (flat, snake_case, ISO-8601
timestamps, sections as a camelCase JSON blob) and the in-memory ``Project``
(nested, epoch-millisecond timestamps). There is no cache: every call is a
round-trip to the database.

Public API
----------
project_to_row(project, user_id) -> dict
row_to_project(row)               -> Project
ProjectStore.get_projects(user_id)       -> List[Project]
ProjectStore.create_project(project, user_id)
ProjectStore.update_project(project)     -> int (assigned updated_at, epoch ms)
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from docugen.exceptions import StoreError
from docugen.models.database_models import ProjectRow
from docugen.models.schemas import Project, Section
from docugen.utils.helpers import (
    datetime_to_epoch_ms,
    epoch_ms_to_iso,
    iso_to_datetime,
    iso_to_epoch_ms,
)

logger = logging.getLogger(__name__)

_TIMESTAMP_COLUMNS = ("created_at", "updated_at")


# ---------------------------------------------------------------------------
# Boundary mapping
# ---------------------------------------------------------------------------

def project_to_row(project: Project, user_id: str) -> Dict[str, Any]:
    """Map an in-memory project to the stored row shape."""
    return {
        "id": project.id,
        "user_id": user_id,
        "title": project.title,
        "type": project.type.value,
        "main_topic": project.main_topic,
        "sections": [s.model_dump(by_alias=True) for s in project.sections],
        "created_at": epoch_ms_to_iso(project.created_at),
        "updated_at": epoch_ms_to_iso(project.updated_at),
    }


def row_to_project(row: Mapping[str, Any]) -> Project:
    """Map a stored row (ISO strings or datetimes) back to an in-memory project."""
    return Project(
        id=row["id"],
        title=row["title"],
        type=row["type"],
        main_topic=row.get("main_topic") or "",
        sections=[Section.model_validate(s) for s in (row.get("sections") or [])],
        created_at=iso_to_epoch_ms(row["created_at"]),
        updated_at=iso_to_epoch_ms(row["updated_at"]),
    )


def _orm_to_row(orm: ProjectRow) -> Dict[str, Any]:
    return {
        "id": orm.id,
        "user_id": orm.user_id,
        "title": orm.title,
        "type": orm.type,
        "main_topic": orm.main_topic,
        "sections": orm.sections,
        "created_at": orm.created_at,
        "updated_at": orm.updated_at,
    }


def _row_to_orm(row: Mapping[str, Any]) -> ProjectRow:
    values = dict(row)
    for column in _TIMESTAMP_COLUMNS:
        values[column] = iso_to_datetime(values[column])
    return ProjectRow(**values)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ProjectStore:
    """CRUD for projects against the ``projects`` table."""

    def __init__(self, session_factory: Optional[async_sessionmaker]) -> None:
        self._session_factory = session_factory

    def _require_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            raise StoreError("Project store is not configured")
        return self._session_factory

    async def get_projects(self, user_id: str) -> List[Project]:
        """All projects owned by *user_id*, most recently updated first."""
        factory = self._require_factory()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(ProjectRow)
                    .where(ProjectRow.user_id == user_id)
                    .order_by(ProjectRow.updated_at.desc())
                )
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Error fetching projects for %s: %s", user_id, exc)
            raise StoreError(f"Failed to load projects: {exc}") from exc

        return [row_to_project(_orm_to_row(r)) for r in rows]

    async def create_project(self, project: Project, user_id: str) -> None:
        """Insert *project*; fails on a duplicate id."""
        factory = self._require_factory()
        try:
            async with factory() as session:
                session.add(_row_to_orm(project_to_row(project, user_id)))
                await session.commit()
        except IntegrityError as exc:
            logger.error("Error creating project %s: duplicate id", project.id)
            raise StoreError(f"Project {project.id} already exists") from exc
        except SQLAlchemyError as exc:
            logger.error("Error creating project %s: %s", project.id, exc)
            raise StoreError(f"Failed to create project: {exc}") from exc

        logger.info("Created project %s (%s) for user %s", project.id, project.type.value, user_id)

    async def update_project(self, project: Project) -> int:
        """
        Overwrite title and the full section list of an existing project.

        ``updated_at`` is set to the store's current time, not the caller's
        value. Returns that timestamp in epoch milliseconds.
        """
        factory = self._require_factory()
        assigned = datetime.now(timezone.utc)
        row = project_to_row(project, user_id="")
        try:
            async with factory() as session:
                result = await session.execute(
                    update(ProjectRow)
                    .where(ProjectRow.id == project.id)
                    .values(
                        title=row["title"],
                        sections=row["sections"],
                        updated_at=assigned,
                    )
                )
                if result.rowcount == 0:
                    await session.rollback()
                    raise StoreError(f"Project {project.id} does not exist")
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error updating project %s: %s", project.id, exc)
            raise StoreError(f"Failed to update project: {exc}") from exc

        return datetime_to_epoch_ms(assigned)
