"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
The environment is set before `app` is imported so the application engine,
SessionLocal and every background task share the test database.
"""
import itertools
import json
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_journal_analytics.db"
os.environ["AGGREGATOR_ENABLED"] = "false"
os.environ["AI_INSIGHTS_ENABLED"] = "false"
os.environ["NLP_CLOUD_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base, SessionLocal, engine
from app.main import app
from app.models.entry import Entry
from app.models.user import User

_usernames = itertools.count(1)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    finally:
        db.close()


@pytest.fixture()
def db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db):
    def _make_user() -> int:
        user = User(username=f"writer{next(_usernames)}")
        db.add(user)
        db.commit()
        return user.id
    return _make_user


@pytest.fixture()
def add_entry(db):
    """add_entry(user_id, day, label=None, score=None, tags=None) -> Entry id."""
    def _add_entry(user_id, day, label=None, score=None, tags=None, content="..."):
        entry = Entry(
            user_id=user_id,
            day=day,
            content=content,
            mood_label=label,
            mood_score=score,
            tags=json.dumps(tags) if isinstance(tags, list) else tags,
        )
        db.add(entry)
        db.commit()
        return entry.id
    return _add_entry
