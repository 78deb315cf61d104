"""
Shared fixtures for DocuGen backend tests.

The store runs on an in-memory SQLite database (aiosqlite + StaticPool) so
every test gets fresh ``profiles`` and ``projects`` tables. The identity
provider and Gemini are replaced by ``httpx.MockTransport`` handlers or by
in-process fakes; nothing leaves the machine.
"""
from __future__ import annotations

import asyncio
import json
import os
from typing import AsyncGenerator, Callable, Dict, List, Optional, Tuple

import httpx
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Pin the configuration *before* any docugen module is imported, so that the
# global settings never point at a real provider or database.
os.environ["DATABASE_URL"] = ""
os.environ["SUPABASE_URL"] = "https://auth.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-key"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"

from docugen.database import Base, build_session_factory, create_engine_for  # noqa: E402
from docugen.dependencies.session import get_shell_factory  # noqa: E402
from docugen.exceptions import StoreError  # noqa: E402
from docugen.main import app  # noqa: E402
from docugen.models import database_models  # noqa: E402,F401
from docugen.models.schemas import ContentSource, DocType, Project  # noqa: E402
from docugen.services.generator import GenerationResult, OutlineResult  # noqa: E402
from docugen.services.identity import IdentityService  # noqa: E402
from docugen.services.profiles import ProfileStore  # noqa: E402
from docugen.services.project_store import ProjectStore  # noqa: E402
from docugen.services.shell import AuthoringShell, shell_registry  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
AUTH_BASE_URL = "https://auth.test"
AUTH_API_KEY = "anon-key"

ALICE = {"email": "alice@example.com", "password": "s3cret!", "id": "user-alice"}


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------

class FakeGoTrue:
    """Minimal GoTrue REST endpoint for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Tuple[str, dict]] = {}
        self.tokens: Dict[str, dict] = {}
        self.requests: List[httpx.Request] = []
        self.fail_logout = False

    def add_user(
        self,
        email: str,
        password: str,
        user_id: str,
        metadata: Optional[dict] = None,
    ) -> dict:
        raw = {"id": user_id, "email": email, "user_metadata": metadata or {}}
        self.accounts[email] = (password, raw)
        return raw

    def issue_token(self, token: str, email: str) -> str:
        self.tokens[token] = self.accounts[email][1]
        return token

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        bearer = request.headers.get("Authorization", "")[len("Bearer "):]

        if path == "/auth/v1/token":
            if request.url.params.get("grant_type") == "password":
                account = self.accounts.get(body.get("email"))
                if account is None or account[0] != body.get("password"):
                    return httpx.Response(
                        400, json={"error_description": "Invalid login credentials"}
                    )
                raw = account[1]
            else:
                raw = next(
                    (u for t, u in self.tokens.items() if f"refresh-{t}" == body.get("refresh_token")),
                    None,
                )
                if raw is None:
                    return httpx.Response(400, json={"msg": "Invalid Refresh Token"})
            token = self.issue_token(f"token-{raw['id']}-{len(self.requests)}", raw["email"])
            return httpx.Response(200, json={
                "access_token": token,
                "refresh_token": f"refresh-{token}",
                "expires_in": 3600,
                "token_type": "bearer",
                "user": raw,
            })

        if path == "/auth/v1/user":
            raw = self.tokens.get(bearer)
            if raw is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            if request.method == "PUT":
                password, _ = self.accounts[raw["email"]]
                self.accounts[raw["email"]] = (body.get("password", password), raw)
            return httpx.Response(200, json=raw)

        if path == "/auth/v1/logout":
            if self.fail_logout:
                return httpx.Response(500, json={"message": "logout exploded"})
            self.tokens.pop(bearer, None)
            return httpx.Response(204)

        if path == "/auth/v1/recover":
            return httpx.Response(200, json={})

        if path == "/auth/v1/signup":
            raw = self.add_user(body["email"], body["password"], f"user-{len(self.accounts) + 1}")
            return httpx.Response(200, json=raw)

        return httpx.Response(404, json={"msg": "not found"})


# ---------------------------------------------------------------------------
# Fake generator / failing store
# ---------------------------------------------------------------------------

class FakeGenerator:
    """Stands in for GeminiContentService; records calls, optionally blocks."""

    def __init__(self) -> None:
        self.outline = OutlineResult(["Intro", "Body", "Wrap-up"], ContentSource.GENERATED)
        self.section_result = GenerationResult("- Point A\n- Point B", ContentSource.GENERATED)
        self.refine_source = ContentSource.GENERATED
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []

    async def generate_outline(self, topic: str, doc_type: DocType) -> OutlineResult:
        self.calls.append(("outline", topic, doc_type))
        return self.outline

    async def generate_section_content(self, topic, section_title, doc_type) -> GenerationResult:
        self.calls.append(("section", section_title))
        if self.gate is not None:
            await self.gate.wait()
        return self.section_result

    async def refine_content(self, current_content: str, instruction: str) -> GenerationResult:
        self.calls.append(("refine", instruction))
        if self.refine_source is not ContentSource.GENERATED:
            return GenerationResult(current_content, self.refine_source)
        return GenerationResult(f"{current_content} [{instruction}]", ContentSource.GENERATED)

    def count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c[0] == kind)


class FailingProjectStore(ProjectStore):
    """ProjectStore whose reads and writes can be switched to fail."""

    def __init__(self, session_factory, fail_create=False, fail_update=False) -> None:
        super().__init__(session_factory)
        self.fail_get = False
        self.fail_create = fail_create
        self.fail_update = fail_update

    async def get_projects(self, user_id: str) -> List[Project]:
        if self.fail_get:
            raise StoreError("Failed to load projects: connection reset")
        return await super().get_projects(user_id)

    async def create_project(self, project: Project, user_id: str) -> None:
        if self.fail_create:
            raise StoreError("Failed to create project: connection reset")
        await super().create_project(project, user_id)

    async def update_project(self, project: Project) -> int:
        if self.fail_update:
            raise StoreError("Failed to update project: connection reset")
        return await super().update_project(project)


def gemini_reply(text: str) -> dict:
    """Body of a successful generateContent response."""
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with all tables created."""
    engine = create_engine_for(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker:
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def profile_store(session_factory) -> ProfileStore:
    return ProfileStore(session_factory)


@pytest_asyncio.fixture
async def project_store(session_factory) -> FailingProjectStore:
    return FailingProjectStore(session_factory)


@pytest_asyncio.fixture
async def gotrue() -> FakeGoTrue:
    fake = FakeGoTrue()
    fake.add_user(
        ALICE["email"],
        ALICE["password"],
        ALICE["id"],
        metadata={"full_name": "Alice Example"},
    )
    return fake


@pytest_asyncio.fixture
async def identity(profile_store: ProfileStore, gotrue: FakeGoTrue) -> IdentityService:
    return IdentityService(
        profile_store,
        base_url=AUTH_BASE_URL,
        api_key=AUTH_API_KEY,
        transport=gotrue.transport,
    )


@pytest_asyncio.fixture
async def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest_asyncio.fixture
async def make_shell(
    profile_store: ProfileStore,
    project_store: FailingProjectStore,
    gotrue: FakeGoTrue,
    generator: FakeGenerator,
) -> AsyncGenerator[Callable[[], AuthoringShell], None]:
    """Factory for shells wired to the fakes; every shell is closed afterwards."""
    created: List[AuthoringShell] = []

    def _make() -> AuthoringShell:
        shell = AuthoringShell(
            identity=IdentityService(
                profile_store,
                base_url=AUTH_BASE_URL,
                api_key=AUTH_API_KEY,
                transport=gotrue.transport,
            ),
            store=project_store,
            generator=generator,
        )
        created.append(shell)
        return shell

    yield _make

    for shell in created:
        await shell.close()


@pytest_asyncio.fixture
async def signed_in_shell(make_shell) -> AuthoringShell:
    """Started shell with Alice signed in and on the dashboard."""
    shell = make_shell()
    await shell.start("")
    await shell.login(ALICE["email"], ALICE["password"])
    return shell


@pytest_asyncio.fixture
async def client(make_shell) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the shell factory
    overridden to build shells on the fakes.
    """
    app.dependency_overrides[get_shell_factory] = lambda: make_shell

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await shell_registry.close_all()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def open_session(client: AsyncClient, location: str = "") -> Dict[str, str]:
    """Open a session and return the headers that address it."""
    resp = await client.post("/api/session", json={"location": location})
    assert resp.status_code == 201
    return {"X-Session-Id": resp.json()["sessionId"]}


async def sign_in(client: AsyncClient, headers: Dict[str, str]) -> dict:
    resp = await client.post(
        "/api/session/sign-in",
        json={"email": ALICE["email"], "password": ALICE["password"]},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()
