from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from app.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from app.schemas.timetable import (
    ClassTimetablePayload,
    ConflictInfo,
    SessionBlock,
    TeacherConflict,
    TimetableEntry,
)
from app.services.timetable_grid import (
    DAYS,
    SLOT_COUNT,
    in_bounds,
    normalize_text,
    occupied_slots,
    safe_duration,
    slots_overlap,
)

PlacementReason = Literal["out_of_bounds", "lunch_slot", "slot_occupied"]


@dataclass(frozen=True)
class PlacementViolation:
    reason: PlacementReason
    message: str
    blocking_entry: TimetableEntry | None = None


def _overlaps_entry(entry: TimetableEntry, day: str, slot_index: int, duration: int) -> bool:
    return entry.day == day and slots_overlap(entry.slotIndex, entry.duration, slot_index, duration)


def explain_placement(
    existing_entries: Iterable[TimetableEntry],
    candidate: SessionBlock,
    day: str,
    slot_index: int,
    lunch_slot_index: int,
    ignore_block_id: str | None = None,
) -> PlacementViolation | None:
    duration = safe_duration(candidate.duration)
    if not in_bounds(slot_index, duration):
        return PlacementViolation(
            reason="out_of_bounds",
            message=(
                f"{candidate.subjectName} needs {duration} slot(s) from slot {slot_index + 1}, "
                f"past the last slot ({SLOT_COUNT})"
            ),
        )
    if lunch_slot_index in occupied_slots(slot_index, duration):
        return PlacementViolation(
            reason="lunch_slot",
            message=f"{candidate.subjectName} on {day} would cover the lunch slot ({lunch_slot_index + 1})",
        )
    for entry in existing_entries:
        if ignore_block_id and entry.blockId == ignore_block_id:
            continue
        if _overlaps_entry(entry, day, slot_index, duration):
            return PlacementViolation(
                reason="slot_occupied",
                message=(
                    f"{day} slot {slot_index + 1} is already taken by {entry.subjectName} "
                    f"({entry.teacherName})"
                ),
                blocking_entry=entry,
            )
    return None


def can_place(
    existing_entries: Iterable[TimetableEntry],
    candidate: SessionBlock,
    day: str,
    slot_index: int,
    lunch_slot_index: int,
    ignore_block_id: str | None = None,
) -> bool:
    return explain_placement(existing_entries, candidate, day, slot_index, lunch_slot_index, ignore_block_id) is None


def find_teacher_conflict(
    all_timetables: Iterable[ClassTimetablePayload],
    teacher_name: str,
    day: str,
    slot_index: int,
    duration: int,
    exclude_timetable_id: str | None = None,
) -> ConflictInfo | None:
    teacher = normalize_text(teacher_name)
    if not teacher:
        return None
    for timetable in all_timetables:
        if exclude_timetable_id and str(timetable.id) == str(exclude_timetable_id):
            continue
        for entry in timetable.entries:
            if normalize_text(entry.teacherName) != teacher:
                continue
            if not _overlaps_entry(entry, day, slot_index, duration):
                continue
            return ConflictInfo(
                timetableId=str(timetable.id),
                department=timetable.department,
                collegeYear=timetable.collegeYear,
                semester=timetable.semester,
                division=timetable.division,
                subjectName=entry.subjectName,
                slotIndex=entry.slotIndex,
                duration=safe_duration(entry.duration),
            )
    return None


def find_teacher_conflicts(
    candidate: ClassTimetablePayload,
    all_timetables: Iterable[ClassTimetablePayload],
) -> list[TeacherConflict]:
    """Check every entry of ``candidate`` against all other stored timetables.

    At most one conflict is reported per candidate entry, naming the first
    colliding entry found.
    """
    others = [item for item in all_timetables if not candidate.id or str(item.id) != str(candidate.id)]
    conflicts: list[TeacherConflict] = []
    for entry in candidate.entries:
        info = find_teacher_conflict(others, entry.teacherName, entry.day, entry.slotIndex, entry.duration)
        if info is None:
            continue
        conflicts.append(
            TeacherConflict(
                teacherName=entry.teacherName,
                day=entry.day,
                slotIndex=entry.slotIndex,
                duration=safe_duration(entry.duration),
                conflictWith=info,
            )
        )
    return conflicts


def describe_teacher_conflict(teacher_name: str, day: str, conflict: ConflictInfo) -> str:
    return (
        f"{teacher_name} already has {conflict.subjectName or 'a lecture'} on {day} at slot "
        f"{conflict.slotIndex + 1} in {conflict.department} Div {conflict.division} "
        f"(Y{conflict.collegeYear} S{conflict.semester})"
    )


class ConflictService:
    """Audits a whole timetable against its own invariants and every other class."""

    def __init__(self, timetable: ClassTimetablePayload, other_timetables: Sequence[ClassTimetablePayload]):
        self.timetable = timetable
        self.other_timetables = [
            item for item in other_timetables if not timetable.id or str(item.id) != str(timetable.id)
        ]
        self.entries: list[TimetableEntry] = list(timetable.entries)

    def detect_conflicts(self) -> ConflictReport:
        conflicts: list[ConflictDetail] = []
        lunch = self.timetable.lunchSlotIndex

        for entry in self.entries:
            if not in_bounds(entry.slotIndex, entry.duration):
                conflicts.append(ConflictDetail(
                    id=f"bounds-{entry.blockId}",
                    conflict_type="out_of_bounds",
                    description=f"{entry.subjectName} on {entry.day} runs past the last slot",
                    severity="hard",
                    affected_blocks=[entry.blockId],
                    day=entry.day,
                    slot_index=entry.slotIndex,
                ))
            if lunch in occupied_slots(entry.slotIndex, entry.duration):
                conflicts.append(ConflictDetail(
                    id=f"lunch-{entry.blockId}",
                    conflict_type="lunch_slot",
                    description=f"{entry.subjectName} on {entry.day} covers the lunch slot",
                    severity="hard",
                    affected_blocks=[entry.blockId],
                    day=entry.day,
                    slot_index=entry.slotIndex,
                ))

        entries_by_day: dict[str, list[TimetableEntry]] = defaultdict(list)
        for entry in self.entries:
            entries_by_day[entry.day].append(entry)

        for day, day_entries in entries_by_day.items():
            n = len(day_entries)
            for i in range(n):
                first = day_entries[i]
                for j in range(i + 1, n):
                    second = day_entries[j]
                    if slots_overlap(first.slotIndex, first.duration, second.slotIndex, second.duration):
                        conflicts.append(ConflictDetail(
                            id=f"overlap-{first.blockId}-{second.blockId}",
                            conflict_type="slot_overlap",
                            description=f"{first.subjectName} and {second.subjectName} overlap on {day}",
                            severity="hard",
                            affected_blocks=[first.blockId, second.blockId],
                            day=day,
                            slot_index=max(first.slotIndex, second.slotIndex),
                        ))

        for item in find_teacher_conflicts(self.timetable, self.other_timetables):
            block_id = next(
                (
                    entry.blockId
                    for entry in self.entries
                    if entry.day == item.day
                    and entry.slotIndex == item.slotIndex
                    and normalize_text(entry.teacherName) == normalize_text(item.teacherName)
                ),
                "",
            )
            conflicts.append(ConflictDetail(
                id=f"teacher-{block_id}-{item.conflictWith.timetableId}",
                conflict_type="teacher_conflict",
                description=describe_teacher_conflict(item.teacherName, item.day, item.conflictWith),
                severity="hard",
                affected_blocks=[block_id],
                day=item.day,
                slot_index=item.slotIndex,
                other_timetable_id=item.conflictWith.timetableId,
            ))

        return ConflictReport(timetable_id=self.timetable.id, conflicts=conflicts, suggested_resolutions=[])

    def generate_resolutions(self, conflict: ConflictDetail) -> list[ResolutionAction]:
        resolutions: list[ResolutionAction] = []
        target_block_id = conflict.affected_blocks[-1]
        target = next((entry for entry in self.entries if entry.blockId == target_block_id), None)
        if target is None:
            return resolutions

        free_slot = self._first_free_slot(target)
        if free_slot is not None:
            day, slot_index = free_slot
            resolutions.append(ResolutionAction(
                action_type="move_entry",
                description=f"Move {target.subjectName} to {day} slot {slot_index + 1}",
                target_block_id=target.blockId,
                parameters={"day": day, "slotIndex": slot_index},
            ))
        resolutions.append(ResolutionAction(
            action_type="remove_entry",
            description=f"Move {target.subjectName} to the removed pool",
            target_block_id=target.blockId,
            parameters={},
        ))
        return resolutions

    def _first_free_slot(self, target: TimetableEntry) -> tuple[str, int] | None:
        lunch = self.timetable.lunchSlotIndex
        for day in DAYS:
            for slot_index in range(SLOT_COUNT):
                if not can_place(self.entries, target, day, slot_index, lunch, ignore_block_id=target.blockId):
                    continue
                if find_teacher_conflict(
                    self.other_timetables, target.teacherName, day, slot_index, target.duration
                ) is not None:
                    continue
                return day, slot_index
        return None
