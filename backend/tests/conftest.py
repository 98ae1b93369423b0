import os
import tempfile
from pathlib import Path

# Point the app engine at a throwaway SQLite file before anything imports settings.
os.environ.setdefault("DATABASE_URL", f"sqlite+pysqlite:///{Path(tempfile.gettempdir()) / 'classgrid_test.db'}")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.main import app
from app.schemas.timetable import (
    ClassTimetablePayload,
    PoolTemplate,
    SessionBlock,
    SessionRequirement,
    TimetableEntry,
)
from app.services.timetable_grid import duration_for_type


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_requirement():
    def _make(subject: str, teacher: str, frequency: int = 1, session_type: str = "SUBJECT", **extra):
        return SessionRequirement(
            subjectName=subject,
            teacherName=teacher,
            type=session_type,
            frequencyPerWeek=frequency,
            **extra,
        )

    return _make


@pytest.fixture()
def make_entry():
    def _make(
        subject: str,
        teacher: str,
        day: str,
        slot_index: int,
        *,
        session_type: str = "SUBJECT",
        duration: int | None = None,
        block_id: str | None = None,
    ) -> TimetableEntry:
        return TimetableEntry(
            blockId=block_id or f"{subject}-{day}-{slot_index}".replace(" ", "_").lower(),
            subjectName=subject,
            teacherName=teacher,
            type=session_type,
            duration=duration or duration_for_type(session_type),
            day=day,
            slotIndex=slot_index,
        )

    return _make


@pytest.fixture()
def make_timetable():
    def _make(
        timetable_id: str | None = None,
        *,
        department: str = "CSE",
        college_year: int = 2,
        semester: int = 3,
        division: str = "A",
        lunch_slot_index: int = 3,
        constraints: list[SessionRequirement] | None = None,
        entries: list[TimetableEntry] | None = None,
        deleted_entries: list[SessionBlock] | None = None,
        added_entries: list[PoolTemplate] | None = None,
    ) -> ClassTimetablePayload:
        return ClassTimetablePayload(
            id=timetable_id,
            department=department,
            collegeYear=college_year,
            semester=semester,
            division=division,
            lunchSlotIndex=lunch_slot_index,
            constraints=constraints or [],
            entries=entries or [],
            deletedEntries=deleted_entries or [],
            addedEntries=added_entries or [],
        )

    return _make
