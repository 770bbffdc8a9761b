# osp_alarm/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL. All models are auto-imported here
so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from osp_alarm.config import settings

_engine_options = {"pool_pre_ping": True, "echo": False}
if not settings.DATABASE_URL.startswith("sqlite"):
    # SQLite pools reject sizing arguments
    _engine_options.update(pool_size=10, max_overflow=20)

engine = create_engine(settings.DATABASE_URL, **_engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    # Roster (read-only for the alarm flow)
    from osp_alarm.models.firefighter import Firefighter, Training, FirefighterTraining  # noqa
    # Alarm response
    from osp_alarm.models.alarm import Alarm                                 # noqa
    from osp_alarm.models.alarm_response import AlarmResponse                # noqa
    from osp_alarm.models.alarm_call_lock import AlarmCallLock               # noqa

    Base.metadata.create_all(bind=engine)
