from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging

from app.schemas.timetable import ClassTimetablePayload, PoolTemplate, SessionRequirement, TimetableEntry
from app.services.constraint_expander import requirement_key, templates_as_constraints
from app.services.placement_solver import DEFAULT_ATTEMPTS, AutoPlacementSolver, PlacementResult
from app.services.timetable_grid import lecture_key

logger = logging.getLogger(__name__)


@dataclass
class RegenerationResult:
    timetable: ClassTimetablePayload
    placement: PlacementResult
    fixed_entries: list[TimetableEntry]


def split_fixed_entries(
    entries: Sequence[TimetableEntry],
    constraints: Sequence[SessionRequirement],
) -> tuple[list[TimetableEntry], list[TimetableEntry]]:
    """Split entries into (constraint-derived, fixed) by lecture key."""
    constraint_keys = {requirement_key(item) for item in constraints}
    derived: list[TimetableEntry] = []
    fixed: list[TimetableEntry] = []
    for entry in entries:
        if lecture_key(entry.subjectName, entry.type, entry.teacherName) in constraint_keys:
            derived.append(entry)
        else:
            fixed.append(entry)
    return derived, fixed


def _consume_pool(templates: Sequence[PoolTemplate], placement: PlacementResult) -> list[PoolTemplate]:
    remaining: list[PoolTemplate] = []
    for template in templates:
        placed = placement.placed_by_constraint_id.get(template.blockId, 0)
        left = template.frequencyPerWeek - placed
        if left > 0:
            remaining.append(template.model_copy(update={"frequencyPerWeek": left}))
    return remaining


def regenerate(
    timetable: ClassTimetablePayload,
    all_timetables: Sequence[ClassTimetablePayload],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    seed: int | None = None,
) -> RegenerationResult:
    """Re-pack constraint-derived entries while holding manual one-offs in place.

    Pool templates join the run as extra requirements; whatever the solver
    places from them is taken off their remaining counters.
    """
    pool_constraints = templates_as_constraints(timetable.addedEntries)
    combined = [*timetable.constraints, *pool_constraints]
    _, fixed_entries = split_fixed_entries(timetable.entries, timetable.constraints)

    solver = AutoPlacementSolver(
        constraints=combined,
        lunch_slot_index=timetable.lunchSlotIndex,
        all_timetables=all_timetables,
        exclude_timetable_id=timetable.id,
        attempts=attempts,
        seed=seed,
        fixed_entries=fixed_entries,
    )
    placement = solver.solve()

    regenerated = timetable.model_copy(deep=True)
    regenerated.entries = placement.entries
    regenerated.deletedEntries = []
    regenerated.addedEntries = _consume_pool(timetable.addedEntries, placement)

    logger.info(
        "TIMETABLE REGENERATED | timetable_id=%s | fixed=%s | requested=%s | placed=%s | pool_left=%s",
        timetable.id,
        len(fixed_entries),
        placement.requested_blocks,
        placement.placed_blocks,
        len(regenerated.addedEntries),
    )
    return RegenerationResult(timetable=regenerated, placement=placement, fixed_entries=fixed_entries)
