import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import database  # noqa: F401  registers the sqlite foreign key hook
from database import Base, get_db
from main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # not used as a context manager, so the lifespan (create_all + seed) never runs
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_category(client):
    def _make(name, budget_limit=0, **extra):
        resp = client.post("/categories", json={"name": name, "budget_limit": budget_limit, **extra})
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make


@pytest.fixture
def make_transaction(client):
    def _make(description, amount, type="expense", category_id=None, date=None):
        payload = {"description": description, "amount": amount, "type": type}
        if category_id is not None:
            payload["category_id"] = category_id
        if date is not None:
            payload["date"] = date
        resp = client.post("/transactions", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make
