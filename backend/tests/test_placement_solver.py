from app.services.conflict_service import find_teacher_conflicts
from app.services.placement_solver import AutoPlacementSolver
from app.services.timetable_grid import DAYS, SLOT_COUNT, day_gap_count, entry_occupies_lunch, slots_overlap


def _assert_no_overlaps(entries, lunch_slot_index):
    for entry in entries:
        assert not entry_occupies_lunch(entry, lunch_slot_index)
        assert entry.slotIndex + entry.duration <= SLOT_COUNT
    for index, first in enumerate(entries):
        for second in entries[index + 1:]:
            if first.day == second.day:
                assert not slots_overlap(first.slotIndex, first.duration, second.slotIndex, second.duration)


def test_simple_fit_spreads_sessions_over_the_week(make_requirement):
    result = AutoPlacementSolver(
        constraints=[make_requirement("Math", "TeacherA", 5)],
        lunch_slot_index=3,
        seed=7,
    ).solve()

    assert result.is_complete
    assert result.attempts_run == 1
    assert len(result.entries) == 5
    assert sorted(entry.day for entry in result.entries) == sorted(DAYS)
    assert all(entry.duration == 1 for entry in result.entries)
    assert all(entry.slotIndex != 3 for entry in result.entries)


def test_lab_is_placed_within_bounds_and_clear_of_lunch(make_requirement):
    result = AutoPlacementSolver(
        constraints=[make_requirement("Physics Lab", "TeacherB", 1, "LAB")],
        lunch_slot_index=3,
        seed=11,
    ).solve()

    (entry,) = result.entries
    assert entry.duration == 2
    assert entry.slotIndex <= 6
    assert entry.slotIndex not in {2, 3}


def test_mixed_requirements_respect_every_placement_rule(make_requirement):
    constraints = [
        make_requirement("Math", "TeacherA", 4),
        make_requirement("Physics Lab", "TeacherB", 2, "LAB"),
        make_requirement("Chemistry", "TeacherC", 3),
        make_requirement("Chemistry Lab", "TeacherC", 1, "LAB"),
    ]

    result = AutoPlacementSolver(constraints=constraints, lunch_slot_index=4, seed=5).solve()

    assert result.is_complete
    assert result.placed_blocks == 10
    _assert_no_overlaps(result.entries, 4)
    for entry in result.entries:
        expected = 2 if entry.type == "LAB" else 1
        assert entry.duration == expected


def test_teacher_busy_elsewhere_is_routed_around(make_requirement, make_timetable, make_entry):
    busy = [
        make_entry("Algebra", "TeacherA", day, slot, block_id=f"busy-{day}-{slot}")
        for day in ("Monday", "Tuesday", "Wednesday", "Thursday")
        for slot in range(SLOT_COUNT)
    ]
    other = make_timetable("tt-other", department="MATH", entries=busy)

    result = AutoPlacementSolver(
        constraints=[make_requirement("Math", "teachera ", 3)],
        lunch_slot_index=3,
        all_timetables=[other],
        seed=3,
    ).solve()

    assert result.is_complete
    assert {entry.day for entry in result.entries} == {"Friday"}
    candidate = make_timetable("tt-new", entries=result.entries)
    assert find_teacher_conflicts(candidate, [other]) == []


def test_own_entries_are_ignored_when_excluded(make_requirement, make_timetable, make_entry):
    previous = make_timetable(
        "tt-1",
        entries=[make_entry("Math", "TeacherA", day, 0, block_id=f"old-{day}") for day in DAYS],
    )

    result = AutoPlacementSolver(
        constraints=[make_requirement("Math", "TeacherA", 5)],
        lunch_slot_index=3,
        all_timetables=[previous],
        exclude_timetable_id="tt-1",
        seed=1,
    ).solve()

    assert result.is_complete


def test_partial_placement_reports_shortfall(make_requirement):
    requirement = make_requirement("Math", "TeacherA", 50)

    result = AutoPlacementSolver(
        constraints=[requirement],
        lunch_slot_index=3,
        attempts=3,
        seed=2,
    ).solve()

    # Five days of seven non-lunch slots.
    assert len(result.entries) == 35
    assert not result.is_complete
    assert result.attempts_run == 3
    assert result.missing_blocks == 15
    (shortfall,) = result.shortfall
    assert shortfall.constraintId == requirement.id
    assert shortfall.requested == 50
    assert shortfall.placed == 35


def test_same_seed_gives_same_timetable(make_requirement):
    constraints = [
        make_requirement("Math", "TeacherA", 4),
        make_requirement("Physics Lab", "TeacherB", 2, "LAB"),
        make_requirement("English", "TeacherE", 3),
    ]

    def run():
        result = AutoPlacementSolver(constraints=constraints, lunch_slot_index=3, seed=42).solve()
        return [(entry.blockId, entry.day, entry.slotIndex) for entry in result.entries]

    assert run() == run()


def test_fixed_entries_are_kept_and_not_counted_as_placed(make_requirement, make_entry):
    fixed = make_entry("Guest Talk", "TeacherG", "Thursday", 5, block_id="fixed-1")

    result = AutoPlacementSolver(
        constraints=[make_requirement("Math", "TeacherA", 2)],
        lunch_slot_index=3,
        seed=9,
        fixed_entries=[fixed],
    ).solve()

    assert result.fixed_blocks == 1
    assert result.placed_blocks == 2
    assert len(result.entries) == 3
    kept = next(entry for entry in result.entries if entry.blockId == "fixed-1")
    assert (kept.day, kept.slotIndex) == ("Thursday", 5)
    _assert_no_overlaps(result.entries, 3)


def test_seed_is_drawn_and_reported_when_omitted(make_requirement):
    result = AutoPlacementSolver(constraints=[make_requirement("Math", "TeacherA", 1)], lunch_slot_index=3).solve()
    assert isinstance(result.seed, int)
    assert result.seed > 0


def test_generated_block_ids_skip_every_id_already_in_use(make_requirement, make_entry):
    fixed = [
        make_entry("Seminar", "Guest", "Friday", 6, block_id="tb_5_0_0_0"),
        make_entry("Workshop", "Guest", "Friday", 7, block_id="tb_5_0_0_0_r1"),
    ]

    result = AutoPlacementSolver(
        constraints=[make_requirement("Math", "TeacherA", 1)],
        lunch_slot_index=3,
        seed=5,
        fixed_entries=fixed,
    ).solve()

    block_ids = [entry.blockId for entry in result.entries]
    assert len(block_ids) == len(set(block_ids)) == 3
    assert "tb_5_0_0_0_r2" in block_ids


def test_gap_free_days_stay_gap_free_across_seeds(make_requirement):
    constraints = [
        make_requirement("Math", "TeacherA", 5),
        make_requirement("Chemistry", "TeacherB", 5),
        make_requirement("English", "TeacherC", 5),
    ]

    for seed in range(30):
        result = AutoPlacementSolver(constraints=constraints, lunch_slot_index=3, seed=seed).solve()

        assert result.is_complete, seed
        for day in DAYS:
            assert day_gap_count(result.entries, day, 3) == 0, (seed, day)


def test_each_lecture_lands_on_distinct_days_and_days_stay_balanced(make_requirement):
    constraints = [
        make_requirement("Math", "TeacherA", 5),
        make_requirement("Chemistry", "TeacherB", 3),
        make_requirement("English", "TeacherC", 2),
    ]

    result = AutoPlacementSolver(constraints=constraints, lunch_slot_index=3, seed=13).solve()

    assert result.is_complete
    for subject in ("Math", "Chemistry", "English"):
        days = [entry.day for entry in result.entries if entry.subjectName == subject]
        assert len(days) == len(set(days))
    per_day = [sum(1 for entry in result.entries if entry.day == day) for day in DAYS]
    assert max(per_day) - min(per_day) <= 1


def test_lectures_are_colored_by_an_even_hue_spread(make_requirement):
    result = AutoPlacementSolver(
        constraints=[make_requirement("Math", "TeacherA", 2), make_requirement("Chemistry", "TeacherB", 1)],
        lunch_slot_index=3,
        seed=4,
    ).solve()

    colors = {entry.subjectName: entry.color for entry in result.entries}
    assert colors == {"Math": "hsl(0, 78%, 84%)", "Chemistry": "hsl(180, 78%, 84%)"}
