"""
Script Gate - Test Configuration
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["PERMISSION_CACHE_ENABLED"] = "false"

from pathlib import Path
from typing import AsyncGenerator, Dict, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import scriptgate.models  # noqa: F401
from scriptgate.core.security import create_access_token
from scriptgate.db.base import Base
from scriptgate.db.seeds.seed_modules import seed_modules
from scriptgate.db.seeds.seed_roles import seed_roles
from scriptgate.db.session import get_db
from scriptgate.executor.engine import ScriptRunner
from scriptgate.executor.gate import AccessGate, get_gate
from scriptgate.main import app
from scriptgate.services.auth_service import auth_service

TEST_DATABASE_URL = "sqlite://"

# Test doubles for the bundled scripts: each echoes its argv so results are deterministic.
SCRIPTS: Dict[str, str] = {
    "system-info.sh": 'echo "system-info $*"\n',
    "user-list.sh": 'echo "user-list $*"\n',
    "disk-usage.sh": 'echo "disk-usage $*"\n',
    "args.sh": 'for a in "$@"; do echo "$a"; done\n',
    "env.sh": 'echo "USER_ID=$USER_ID"\necho "MODULE_ID=$MODULE_ID"\necho "SCRIPT_TIMEOUT_MS=$SCRIPT_TIMEOUT_MS"\necho "SECRET=$SCRIPTGATE_TEST_SECRET"\n',
    "fail.sh": 'echo "partial output"\necho "something broke" >&2\nexit 3\n',
    "sleeper.sh": "echo $$ > sleeper.pid\nsleep 5\n",
    "spawner.sh": "sleep 30 &\necho $! > child.pid\nwait\n",
}


def write_script(directory: Path, name: str, body: str, mode: int = 0o755) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(mode)
    return path


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    """Scripts directory populated with small /bin/sh test scripts."""
    directory = tmp_path / "scripts"
    directory.mkdir()
    for name, body in SCRIPTS.items():
        write_script(directory, name, body)
    return directory


@pytest.fixture
def runner(scripts_dir: Path) -> ScriptRunner:
    return ScriptRunner(scripts_dir=str(scripts_dir), default_timeout_ms=5000)


@pytest.fixture
def gate(runner: ScriptRunner) -> AccessGate:
    return AccessGate(runner)


@pytest.fixture
def test_engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create database session for each test."""
    session = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db_session: Session) -> Session:
    """Built-in roles, default grants and the default module catalog."""
    seed_roles(db_session)
    seed_modules(db_session)
    return db_session


@pytest.fixture
def users(seeded_db: Session) -> Dict[str, object]:
    """One local account per built-in role, keyed by role name."""
    return {
        role: auth_service.create_user(
            seeded_db, f"{role}-account", "correct-horse-battery", f"{role.title()} Account", role,
        )
        for role in ("admin", "manager", "user")
    }


def bearer(user) -> Dict[str, str]:
    token = create_access_token({
        "sub": str(user.id),
        "username": user.username,
        "role": user.role.name,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(users) -> Dict[str, str]:
    return bearer(users["admin"])


@pytest.fixture
def user_headers(users) -> Dict[str, str]:
    return bearer(users["user"])


@pytest.fixture
async def client(seeded_db: Session, gate: AccessGate) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""

    def override_get_db():
        yield seeded_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gate] = lambda: gate

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
