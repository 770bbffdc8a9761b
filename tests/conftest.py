# tests/conftest.py
"""Shared fixtures: in-memory SQLite store, API client and a small roster."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from osp_alarm.database import Base, get_db
from osp_alarm.main import app
from osp_alarm.models import Firefighter, Training, FirefighterTraining


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
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def roster(db):
    """Three phoned firefighters (ids 1-3) and one without a phone (id 4)."""
    people = [
        Firefighter(id=1, name="Jan", surname="Kowalski", phone_number="600100200"),
        Firefighter(id=2, name="Anna", surname="Nowak", phone_number="600100201"),
        Firefighter(id=3, name="Piotr", surname="Wiśniewski", phone_number="600100202"),
        Firefighter(id=4, name="Marek", surname="Zieliński", phone_number=None),
    ]
    db.add_all(people)
    db.add_all([
        Training(id=1, name="Kurs Kierowcy C", validity_months=60),
        Training(id=2, name="Pierwsza Pomoc", validity_months=36),
    ])
    db.commit()
    return people


@pytest.fixture
def grant_training(db):
    def _grant(firefighter_id, training_id, validity_until=None):
        db.add(FirefighterTraining(firefighter_id=firefighter_id, training_id=training_id,
                                   completion_date=date(2024, 1, 1), validity_until=validity_until))
        db.commit()
    return _grant
