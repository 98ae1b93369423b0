from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConcurrencyConflictError,
    PlacementRejectedError,
    RequirementValidationError,
    ResourceNotFoundError,
    TeacherConflictError,
    TimetableExistsError,
)
from app.models.timetable import ClassTimetable
from app.schemas.timetable import ClassTimetablePayload
from app.services.conflict_service import ConflictService, find_teacher_conflicts

logger = logging.getLogger(__name__)


def to_payload(record: ClassTimetable) -> ClassTimetablePayload:
    return ClassTimetablePayload.model_validate(
        {
            "id": record.id,
            "department": record.department,
            "collegeYear": record.college_year,
            "semester": record.semester,
            "division": record.division,
            "lunchSlotIndex": record.lunch_slot_index,
            "constraints": record.constraints or [],
            "entries": record.entries or [],
            "deletedEntries": record.deleted_entries or [],
            "addedEntries": record.added_entries or [],
            "createdByName": record.created_by_name,
            "version": record.version,
            "createdAt": record.created_at,
            "updatedAt": record.updated_at,
        }
    )


def _apply_payload(record: ClassTimetable, payload: ClassTimetablePayload) -> None:
    record.lunch_slot_index = payload.lunchSlotIndex
    record.constraints = [item.model_dump() for item in payload.constraints]
    record.entries = [item.model_dump() for item in payload.entries]
    record.deleted_entries = [item.model_dump() for item in payload.deletedEntries]
    record.added_entries = [item.model_dump() for item in payload.addedEntries]


class TimetableStore:
    """Persistence for class timetables.

    ``create`` and ``update`` re-read every other timetable right before
    committing and refuse writes that would double-book a teacher, so the
    check always runs against persisted state rather than a caller's copy.
    """

    def __init__(self, db: Session):
        self.db = db

    def list(self) -> list[ClassTimetablePayload]:
        records = (
            self.db.execute(
                select(ClassTimetable)
                .order_by(ClassTimetable.department, ClassTimetable.college_year, ClassTimetable.semester, ClassTimetable.division)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
        return [to_payload(record) for record in records]

    def _get_record(self, timetable_id: str) -> ClassTimetable:
        record = self.db.get(ClassTimetable, timetable_id, populate_existing=True)
        if record is None:
            raise ResourceNotFoundError("Timetable", timetable_id)
        return record

    def get(self, timetable_id: str) -> ClassTimetablePayload:
        return to_payload(self._get_record(timetable_id))

    def get_by_class_key(self, department: str, college_year: int, semester: int, division: str) -> ClassTimetablePayload | None:
        record = (
            self.db.execute(
                select(ClassTimetable).where(
                    ClassTimetable.department == department,
                    ClassTimetable.college_year == college_year,
                    ClassTimetable.semester == semester,
                    ClassTimetable.division == division,
                )
            )
            .scalars()
            .first()
        )
        return to_payload(record) if record is not None else None

    def _validate_for_commit(self, candidate: ClassTimetablePayload) -> None:
        # Payloads built with model_copy skip validators; rows must stay readable by to_payload.
        try:
            ClassTimetablePayload.model_validate(candidate.model_dump())
        except ValidationError as exc:
            logger.warning("TIMETABLE COMMIT REJECTED | timetable_id=%s | reason=invalid_payload", candidate.id)
            raise RequirementValidationError(
                "Timetable payload is invalid",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

        others = [item for item in self.list() if item.id != candidate.id]
        service = ConflictService(candidate, [])
        placement_conflicts = service.detect_conflicts().conflicts
        if placement_conflicts:
            first = placement_conflicts[0]
            logger.warning(
                "TIMETABLE COMMIT REJECTED | timetable_id=%s | reason=%s | count=%s",
                candidate.id,
                first.conflict_type,
                len(placement_conflicts),
            )
            raise PlacementRejectedError(first.description, reason=first.conflict_type)

        teacher_conflicts = find_teacher_conflicts(candidate, others)
        if teacher_conflicts:
            logger.warning(
                "TIMETABLE COMMIT REJECTED | timetable_id=%s | reason=teacher_conflict | count=%s",
                candidate.id,
                len(teacher_conflicts),
            )
            raise TeacherConflictError([item.model_dump() for item in teacher_conflicts])

    def create(self, payload: ClassTimetablePayload) -> ClassTimetablePayload:
        existing = self.get_by_class_key(payload.department, payload.collegeYear, payload.semester, payload.division)
        if existing is not None:
            raise TimetableExistsError(payload.as_dict(), str(existing.id))

        record = ClassTimetable(
            department=payload.department,
            college_year=payload.collegeYear,
            semester=payload.semester,
            division=payload.division,
            created_by_name=payload.createdByName,
        )
        if payload.id:
            record.id = payload.id
        _apply_payload(record, payload)

        self._validate_for_commit(payload)
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            current = self.get_by_class_key(payload.department, payload.collegeYear, payload.semester, payload.division)
            if current is not None:
                raise TimetableExistsError(payload.as_dict(), str(current.id)) from exc
            raise
        self.db.refresh(record)
        logger.info(
            "TIMETABLE CREATED | timetable_id=%s | class=%s/%s/%s/%s | entries=%s",
            record.id,
            record.department,
            record.college_year,
            record.semester,
            record.division,
            len(record.entries),
        )
        return to_payload(record)

    def update(
        self,
        timetable_id: str,
        payload: ClassTimetablePayload,
        expected_version: int | None = None,
    ) -> ClassTimetablePayload:
        record = self._get_record(timetable_id)
        candidate = payload.model_copy(update={"id": timetable_id})
        # list() inside the commit check reloads ``record`` too, so compare versions afterwards.
        self._validate_for_commit(candidate)
        if expected_version is not None and record.version != expected_version:
            raise ConcurrencyConflictError(timetable_id, expected_version, record.version)
        _apply_payload(record, candidate)
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            current = self.db.get(ClassTimetable, timetable_id, populate_existing=True)
            raise ConcurrencyConflictError(
                timetable_id,
                expected_version,
                current.version if current is not None else None,
            ) from exc
        self.db.refresh(record)
        logger.info(
            "TIMETABLE UPDATED | timetable_id=%s | version=%s | entries=%s | removed=%s | pool=%s",
            record.id,
            record.version,
            len(record.entries),
            len(record.deleted_entries),
            len(record.added_entries),
        )
        return to_payload(record)

    def delete(self, timetable_id: str) -> None:
        record = self._get_record(timetable_id)
        self.db.delete(record)
        self.db.commit()
        logger.info("TIMETABLE DELETED | timetable_id=%s", timetable_id)
