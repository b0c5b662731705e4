import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["VIEW_CONTEXT_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "testing"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kingdomops.models.orm import Base
from kingdomops.services.gifts import GIFT_ORDER
from kingdomops.services.view_context import MemoryViewContextStore


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool, future=True)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store():
    return MemoryViewContextStore()


@pytest.fixture
def client(session_factory, store):
    from kingdomops.main import app
    from kingdomops.core.database import get_db
    from kingdomops.api.deps import get_view_context_store

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_view_context_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    def _login(user_id, role="PARTICIPANT", organization_id=None):
        r = client.post("/v1/auth/mock-login", json={"user_id": user_id, "role": role, "organization_id": organization_id})
        assert r.status_code == 200
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login


@pytest.fixture
def full_answers():
    """Three answers per gift; gift i in declaration order answers ``values(i)``."""
    def _build(values=lambda i: (5, 4, 3) if i == 1 else (2, 2, 2)):
        answers = []
        for i, gift in enumerate(GIFT_ORDER):
            for j, value in enumerate(values(i)):
                answers.append({"question_id": f"{gift.value}-{j}", "gift_key": gift.value, "value": value})
        return answers
    return _build
