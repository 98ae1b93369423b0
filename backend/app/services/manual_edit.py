"""Single-block edits on a timetable working copy.

Every operation validates against the same placement rules the solver uses
and either applies completely or leaves the working copy untouched. Results
are returned as ``EditOutcome`` values; the service layer decides how to
surface a rejection.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from app.schemas.timetable import (
    ClassTimetablePayload,
    ConflictInfo,
    PoolTemplate,
    PoolTemplateIn,
    SessionBlock,
    TimetableEntry,
    new_block_id,
)
from app.services.conflict_service import describe_teacher_conflict, explain_placement, find_teacher_conflict
from app.services.timetable_grid import color_for_lecture, duration_for_type, safe_duration

EditReason = Literal[
    "not_found",
    "out_of_bounds",
    "lunch_slot",
    "slot_occupied",
    "teacher_conflict",
    "pool_exhausted",
]


@dataclass
class EditOutcome:
    ok: bool
    reason: EditReason | None = None
    message: str = ""
    conflict: ConflictInfo | None = None
    entry: TimetableEntry | None = None
    template: PoolTemplate | None = None

    @classmethod
    def accepted(cls, entry: TimetableEntry | None = None, message: str = "") -> "EditOutcome":
        return cls(ok=True, entry=entry, message=message)

    @classmethod
    def rejected(cls, reason: EditReason, message: str, conflict: ConflictInfo | None = None) -> "EditOutcome":
        return cls(ok=False, reason=reason, message=message, conflict=conflict)


class TimetableEditor:
    def __init__(self, timetable: ClassTimetablePayload, all_timetables: Sequence[ClassTimetablePayload] = ()):
        self.timetable = timetable.model_copy(deep=True)
        self.other_timetables = [
            item for item in all_timetables if not timetable.id or str(item.id) != str(timetable.id)
        ]

    def _check(
        self,
        block: SessionBlock,
        day: str,
        slot_index: int,
        ignore_block_id: str | None = None,
    ) -> EditOutcome | None:
        violation = explain_placement(
            self.timetable.entries,
            block,
            day,
            slot_index,
            self.timetable.lunchSlotIndex,
            ignore_block_id,
        )
        if violation is not None:
            return EditOutcome.rejected(violation.reason, violation.message)
        conflict = find_teacher_conflict(
            self.other_timetables,
            block.teacherName,
            day,
            slot_index,
            block.duration,
            self.timetable.id,
        )
        if conflict is not None:
            return EditOutcome.rejected(
                "teacher_conflict",
                f"Cannot place this lecture. {describe_teacher_conflict(block.teacherName, day, conflict)}.",
                conflict,
            )
        return None

    def _find_entry(self, block_id: str) -> TimetableEntry | None:
        return next((entry for entry in self.timetable.entries if entry.blockId == block_id), None)

    def move_entry(self, block_id: str, day: str, slot_index: int) -> EditOutcome:
        entry = self._find_entry(block_id)
        if entry is None:
            return EditOutcome.rejected("not_found", f"Entry {block_id} is not on the timetable")
        rejection = self._check(entry, day, slot_index, ignore_block_id=entry.blockId)
        if rejection is not None:
            return rejection
        entry.day = day
        entry.slotIndex = slot_index
        return EditOutcome.accepted(entry.model_copy())

    def delete_entry(self, block_id: str) -> EditOutcome:
        entry = self._find_entry(block_id)
        if entry is None:
            return EditOutcome.rejected("not_found", f"Entry {block_id} is not on the timetable")
        self.timetable.entries = [item for item in self.timetable.entries if item.blockId != block_id]
        self.timetable.deletedEntries.append(SessionBlock(**entry.model_dump(exclude={"day", "slotIndex"})))
        return EditOutcome.accepted(message=f"{entry.subjectName} moved to the removed pool")

    def restore_entry(self, block_id: str, day: str, slot_index: int) -> EditOutcome:
        source = next((item for item in self.timetable.deletedEntries if item.blockId == block_id), None)
        if source is None:
            return EditOutcome.rejected("not_found", f"Removed entry {block_id} does not exist")
        restored = TimetableEntry(
            **source.model_dump(exclude={"blockId"}),
            blockId=new_block_id(),
            day=day,
            slotIndex=slot_index,
        )
        rejection = self._check(restored, day, slot_index)
        if rejection is not None:
            return rejection
        self.timetable.entries.append(restored)
        self.timetable.deletedEntries = [item for item in self.timetable.deletedEntries if item.blockId != block_id]
        return EditOutcome.accepted(restored.model_copy())

    def add_from_pool(self, template_block_id: str, day: str, slot_index: int) -> EditOutcome:
        template = next((item for item in self.timetable.addedEntries if item.blockId == template_block_id), None)
        if template is None:
            return EditOutcome.rejected("not_found", f"Pool template {template_block_id} does not exist")
        if template.frequencyPerWeek <= 0:
            return EditOutcome.rejected("pool_exhausted", f"No {template.subjectName} sessions left to place")
        created = TimetableEntry(
            blockId=new_block_id(),
            subjectName=template.subjectName,
            teacherName=template.teacherName,
            type=template.type,
            duration=safe_duration(template.duration),
            color=template.color or color_for_lecture(template.subjectName, template.type, template.teacherName),
            day=day,
            slotIndex=slot_index,
        )
        rejection = self._check(created, day, slot_index)
        if rejection is not None:
            return rejection
        self.timetable.entries.append(created)
        remaining: list[PoolTemplate] = []
        for item in self.timetable.addedEntries:
            if item.blockId == template_block_id:
                item = item.model_copy(update={"frequencyPerWeek": item.frequencyPerWeek - 1})
            if item.frequencyPerWeek > 0:
                remaining.append(item)
        self.timetable.addedEntries = remaining
        return EditOutcome.accepted(created.model_copy())

    def discard_deleted(self, block_id: str) -> EditOutcome:
        if not any(item.blockId == block_id for item in self.timetable.deletedEntries):
            return EditOutcome.rejected("not_found", f"Removed entry {block_id} does not exist")
        self.timetable.deletedEntries = [item for item in self.timetable.deletedEntries if item.blockId != block_id]
        return EditOutcome.accepted()

    def add_template(self, payload: PoolTemplateIn) -> EditOutcome:
        template = PoolTemplate(
            subjectName=payload.subjectName,
            teacherName=payload.teacherName,
            type=payload.type,
            frequencyPerWeek=payload.frequencyPerWeek,
            duration=payload.duration or duration_for_type(payload.type),
            color=color_for_lecture(payload.subjectName, payload.type, payload.teacherName),
        )
        self.timetable.addedEntries.append(template)
        return EditOutcome(ok=True, template=template.model_copy())

    def remove_template(self, block_id: str) -> EditOutcome:
        if not any(item.blockId == block_id for item in self.timetable.addedEntries):
            return EditOutcome.rejected("not_found", f"Pool template {block_id} does not exist")
        self.timetable.addedEntries = [item for item in self.timetable.addedEntries if item.blockId != block_id]
        return EditOutcome.accepted()
