from app.schemas.timetable import PoolTemplate, SessionBlock
from app.services.regeneration import regenerate, split_fixed_entries


def test_split_matches_constraints_by_normalized_key(make_requirement, make_entry):
    constraints = [make_requirement("Math", "TeacherA", 2)]
    derived_entry = make_entry("math ", "teachera", "Monday", 0, block_id="d")
    one_off = make_entry("Guest Talk", "TeacherG", "Monday", 1, block_id="f")

    derived, fixed = split_fixed_entries([derived_entry, one_off], constraints)

    assert [item.blockId for item in derived] == ["d"]
    assert [item.blockId for item in fixed] == ["f"]


def test_regeneration_keeps_ad_hoc_entries_in_place(make_requirement, make_entry, make_timetable):
    timetable = make_timetable(
        "tt-1",
        constraints=[make_requirement("Math", "TeacherA", 3)],
        entries=[
            make_entry("Math", "TeacherA", "Monday", 0, block_id="m-1"),
            make_entry("Math", "TeacherA", "Tuesday", 0, block_id="m-2"),
            make_entry("Math", "TeacherA", "Wednesday", 0, block_id="m-3"),
            make_entry("Guest Talk", "TeacherG", "Thursday", 5, block_id="guest"),
        ],
        deleted_entries=[SessionBlock(blockId="old", subjectName="Bio", teacherName="TeacherB")],
    )

    result = regenerate(timetable, [timetable], seed=11)

    regenerated = result.timetable
    guest = next(item for item in regenerated.entries if item.blockId == "guest")
    assert (guest.day, guest.slotIndex) == ("Thursday", 5)
    assert [item.blockId for item in result.fixed_entries] == ["guest"]
    assert sum(1 for item in regenerated.entries if item.subjectName == "Math") == 3
    assert regenerated.deletedEntries == []
    assert result.placement.fixed_blocks == 1
    assert result.placement.is_complete
    # The input is not mutated.
    assert len(timetable.deletedEntries) == 1


def test_regeneration_places_pool_templates_and_consumes_them(make_requirement, make_timetable):
    timetable = make_timetable(
        "tt-1",
        constraints=[make_requirement("Math", "TeacherA", 2)],
        added_entries=[
            PoolTemplate(blockId="extra_seminar", subjectName="Seminar", teacherName="Guest", frequencyPerWeek=2),
        ],
    )

    result = regenerate(timetable, [], seed=4)

    subjects = [item.subjectName for item in result.timetable.entries]
    assert subjects.count("Seminar") == 2
    assert subjects.count("Math") == 2
    assert result.timetable.addedEntries == []
    assert result.placement.requested_blocks == 4


def test_entries_placed_from_the_pool_stay_fixed(make_requirement, make_entry, make_timetable):
    timetable = make_timetable(
        "tt-1",
        constraints=[make_requirement("Math", "TeacherA", 1)],
        entries=[make_entry("Seminar", "Guest", "Friday", 6, block_id="placed-seminar")],
        added_entries=[
            PoolTemplate(blockId="extra_seminar", subjectName="Seminar", teacherName="Guest", frequencyPerWeek=1),
        ],
    )

    result = regenerate(timetable, [], seed=8)

    assert any(item.blockId == "placed-seminar" for item in result.timetable.entries)
    assert [item.subjectName for item in result.timetable.entries].count("Seminar") == 2


def test_regeneration_routes_around_other_classes(make_requirement, make_entry, make_timetable):
    other = make_timetable(
        "tt-2",
        department="ECE",
        entries=[make_entry("Algebra", "TeacherA", day, 0, block_id=f"o-{day}") for day in ("Monday", "Tuesday")],
    )
    timetable = make_timetable(
        "tt-1",
        constraints=[make_requirement("Math", "TeacherA", 5)],
        entries=[make_entry("Math", "TeacherA", "Monday", 0, block_id="stale")],
    )

    result = regenerate(timetable, [timetable, other], seed=21)

    assert result.placement.is_complete
    for entry in result.timetable.entries:
        assert not (entry.day in {"Monday", "Tuesday"} and entry.slotIndex == 0)
