import pytest

from app.core.exceptions import (
    ConcurrencyConflictError,
    PlacementRejectedError,
    RequirementValidationError,
    ResourceNotFoundError,
    TeacherConflictError,
    TimetableExistsError,
)
from app.services.timetable_store import TimetableStore


def test_create_and_read_back(db_session, make_timetable, make_entry, make_requirement):
    store = TimetableStore(db_session)
    created = store.create(
        make_timetable(
            constraints=[make_requirement("Math", "TeacherA", 1)],
            entries=[make_entry("Math", "TeacherA", "Monday", 0)],
        )
    )

    assert created.id
    assert created.version == 1
    assert created.createdAt is not None
    assert store.get(created.id).entries[0].subjectName == "Math"
    assert store.get_by_class_key("CSE", 2, 3, "A").id == created.id
    assert store.get_by_class_key("CSE", 2, 3, "B") is None
    assert [item.id for item in store.list()] == [created.id]


def test_duplicate_class_key_is_refused(db_session, make_timetable):
    store = TimetableStore(db_session)
    first = store.create(make_timetable())

    with pytest.raises(TimetableExistsError) as exc_info:
        store.create(make_timetable())

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["timetableId"] == first.id


def test_cross_class_teacher_collision_is_rejected(db_session, make_timetable, make_entry):
    store = TimetableStore(db_session)
    t1 = store.create(
        make_timetable(department="Dept A", entries=[make_entry("Algebra", "TeacherC", "Monday", 2)])
    )

    with pytest.raises(TeacherConflictError) as exc_info:
        store.create(make_timetable(department="Dept B", entries=[make_entry("Physics", "TeacherC", "Monday", 2)]))

    (conflict,) = exc_info.value.details["conflicts"]
    assert conflict["teacherName"] == "TeacherC"
    assert conflict["day"] == "Monday"
    assert conflict["slotIndex"] == 2
    assert conflict["duration"] == 1
    assert conflict["conflictWith"]["timetableId"] == t1.id
    assert conflict["conflictWith"]["department"] == "Dept A"
    assert conflict["conflictWith"]["subjectName"] == "Algebra"
    assert store.get_by_class_key("Dept B", 2, 3, "A") is None


def test_intra_timetable_violations_are_rejected(db_session, make_timetable, make_entry):
    store = TimetableStore(db_session)

    with pytest.raises(PlacementRejectedError) as exc_info:
        store.create(make_timetable(entries=[make_entry("Math", "TeacherA", "Monday", 3)]))

    assert exc_info.value.details["reason"] == "lunch_slot"


def test_update_bumps_version_and_checks_expected_version(db_session, make_timetable, make_entry):
    store = TimetableStore(db_session)
    created = store.create(make_timetable())

    updated = store.update(
        created.id,
        created.model_copy(update={"entries": [make_entry("Math", "TeacherA", "Friday", 7)]}),
        expected_version=1,
    )
    assert updated.version == 2
    assert updated.entries[0].day == "Friday"

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        store.update(created.id, updated, expected_version=1)
    assert exc_info.value.details["actualVersion"] == 2


def test_update_sees_writes_from_another_session(session_factory, make_timetable, make_entry):
    first = session_factory()
    second = session_factory()
    try:
        created = TimetableStore(first).create(make_timetable())
        stale = TimetableStore(second).get(created.id)

        TimetableStore(first).update(
            created.id,
            created.model_copy(update={"entries": [make_entry("Math", "TeacherA", "Monday", 0)]}),
            expected_version=created.version,
        )

        with pytest.raises(ConcurrencyConflictError):
            TimetableStore(second).update(created.id, stale, expected_version=stale.version)
    finally:
        first.close()
        second.close()


def test_update_revalidates_against_persisted_timetables(session_factory, make_timetable, make_entry):
    first = session_factory()
    second = session_factory()
    try:
        t1 = TimetableStore(first).create(make_timetable(department="Dept A"))
        t2 = TimetableStore(second).create(make_timetable(department="Dept B"))

        TimetableStore(first).update(
            t1.id,
            t1.model_copy(update={"entries": [make_entry("Algebra", "TeacherC", "Tuesday", 4)]}),
        )

        with pytest.raises(TeacherConflictError):
            TimetableStore(second).update(
                t2.id,
                t2.model_copy(update={"entries": [make_entry("Physics", "TeacherC", "Tuesday", 4)]}),
            )
    finally:
        first.close()
        second.close()


def test_delete_removes_the_timetable(db_session, make_timetable):
    store = TimetableStore(db_session)
    created = store.create(make_timetable())

    store.delete(created.id)

    with pytest.raises(ResourceNotFoundError):
        store.get(created.id)
    with pytest.raises(ResourceNotFoundError):
        store.delete(created.id)


def test_payload_with_duplicate_block_ids_is_not_persisted(db_session, make_timetable, make_entry):
    store = TimetableStore(db_session)
    created = store.create(make_timetable())
    # model_copy bypasses the payload validators.
    broken = created.model_copy(
        update={
            "entries": [
                make_entry("Math", "TeacherA", "Monday", 0, block_id="dup"),
                make_entry("Chem", "TeacherB", "Tuesday", 0, block_id="dup"),
            ]
        }
    )

    with pytest.raises(RequirementValidationError) as exc_info:
        store.update(created.id, broken)

    assert exc_info.value.status_code == 422
    assert store.get(created.id).entries == []
    assert [item.id for item in store.list()] == [created.id]
