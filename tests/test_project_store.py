"""Tests for the project store adapter and its row mapping."""
import pytest

from docugen.exceptions import StoreError
from docugen.models.schemas import DocType, Project, RefinementHistory, Section
from docugen.services.project_store import ProjectStore, project_to_row, row_to_project


def _project(project_id: str = "p-1", updated_at: int = 1700000000500, **kw) -> Project:
    return Project(
        id=project_id,
        title=kw.get("title", "Market Entry"),
        type=kw.get("type", DocType.DOCX),
        main_topic=kw.get("main_topic", "Entering the Nordic market"),
        sections=kw.get("sections", [
            Section(
                id="s-1",
                title="Executive Summary",
                content="We should expand.",
                is_generated=True,
                history=[
                    RefinementHistory(
                        timestamp=1700000000100,
                        prompt="Make it shorter",
                        previous_content="We should really expand.",
                    )
                ],
            ),
            Section(id="s-2", title="Risks"),
        ]),
        created_at=1700000000000,
        updated_at=updated_at,
    )


def test_project_to_row_uses_store_shape():
    row = project_to_row(_project(), user_id="user-1")

    assert row["user_id"] == "user-1"
    assert row["type"] == "DOCX"
    assert row["main_topic"] == "Entering the Nordic market"
    assert row["created_at"] == "2023-11-14T22:13:20.000Z"
    assert row["updated_at"] == "2023-11-14T22:13:20.500Z"
    first = row["sections"][0]
    assert first["isGenerated"] is True
    assert first["history"][0]["previousContent"] == "We should really expand."


def test_row_to_project_reverses_the_mapping():
    original = _project()
    restored = row_to_project(project_to_row(original, user_id="user-1"))
    assert restored == original


@pytest.mark.asyncio
async def test_create_then_get_round_trip(project_store: ProjectStore):
    project = _project()
    await project_store.create_project(project, "user-1")

    projects = await project_store.get_projects("user-1")
    assert projects == [project]


@pytest.mark.asyncio
async def test_get_projects_newest_first_and_scoped_to_user(project_store: ProjectStore):
    await project_store.create_project(_project("old", updated_at=1700000000000), "user-1")
    await project_store.create_project(_project("new", updated_at=1800000000000), "user-1")
    await project_store.create_project(_project("other", updated_at=1900000000000), "user-2")

    projects = await project_store.get_projects("user-1")
    assert [p.id for p in projects] == ["new", "old"]


@pytest.mark.asyncio
async def test_create_duplicate_id_raises(project_store: ProjectStore):
    await project_store.create_project(_project(), "user-1")
    with pytest.raises(StoreError, match="already exists"):
        await project_store.create_project(_project(), "user-1")


@pytest.mark.asyncio
async def test_update_overwrites_sections_and_assigns_timestamp(project_store: ProjectStore):
    project = _project()
    await project_store.create_project(project, "user-1")

    changed = project.model_copy(update={
        "title": "Market Entry v2",
        "sections": [Section(id="s-9", title="Only section", content="New body")],
    })
    assigned = await project_store.update_project(changed)

    (stored,) = await project_store.get_projects("user-1")
    assert stored.title == "Market Entry v2"
    assert [s.id for s in stored.sections] == ["s-9"]
    assert stored.updated_at == assigned
    assert assigned > project.updated_at
    assert stored.created_at == project.created_at


@pytest.mark.asyncio
async def test_update_missing_project_raises(project_store: ProjectStore):
    with pytest.raises(StoreError, match="does not exist"):
        await project_store.update_project(_project("ghost"))


@pytest.mark.asyncio
async def test_unconfigured_store_raises():
    store = ProjectStore(None)
    with pytest.raises(StoreError, match="not configured"):
        await store.get_projects("user-1")
