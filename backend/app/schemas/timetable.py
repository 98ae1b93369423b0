from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.services.timetable_grid import (
    DAYS,
    SLOT_COUNT,
    color_for_lecture,
    duration_for_type,
)

SessionType = Literal["SUBJECT", "LAB"]
DayName = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

SEMESTERS_BY_YEAR: dict[int, tuple[int, int]] = {1: (1, 2), 2: (3, 4), 3: (5, 6), 4: (7, 8)}


def new_block_id(prefix: str = "tb") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _clean_name(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("Value cannot be blank")
    return cleaned


class RequirementIn(BaseModel):
    subjectName: str = Field(min_length=1, max_length=200)
    teacherName: str = Field(min_length=1, max_length=200)
    type: SessionType = "SUBJECT"
    frequencyPerWeek: int = Field(ge=1, le=100)

    @field_validator("subjectName", "teacherName")
    @classmethod
    def validate_names(cls, value: str) -> str:
        return _clean_name(value)


class SessionRequirement(RequirementIn):
    id: str = Field(default_factory=lambda: new_block_id("tc"), min_length=1, max_length=64)
    duration: int | None = Field(default=None, ge=1, le=SLOT_COUNT)
    color: str | None = Field(default=None, max_length=64)

    @model_validator(mode="after")
    def fill_derived_fields(self) -> "SessionRequirement":
        if self.duration is None:
            self.duration = duration_for_type(self.type)
        if not self.color:
            self.color = color_for_lecture(self.subjectName, self.type, self.teacherName)
        return self


class SessionBlock(BaseModel):
    blockId: str = Field(default_factory=new_block_id, min_length=1, max_length=64)
    subjectName: str = Field(min_length=1, max_length=200)
    teacherName: str = Field(min_length=1, max_length=200)
    type: SessionType = "SUBJECT"
    duration: int = Field(default=1, ge=1, le=SLOT_COUNT)
    color: str | None = Field(default=None, max_length=64)


class TimetableEntry(SessionBlock):
    day: DayName
    slotIndex: int = Field(ge=0, le=SLOT_COUNT - 1)


class PoolTemplate(SessionBlock):
    blockId: str = Field(default_factory=lambda: new_block_id("extra"), min_length=1, max_length=64)
    frequencyPerWeek: int = Field(default=1, ge=0, le=100)


class PoolTemplateIn(RequirementIn):
    frequencyPerWeek: int = Field(default=1, ge=1, le=100)
    duration: int | None = Field(default=None, ge=1, le=SLOT_COUNT)


class ClassKey(BaseModel):
    department: str = Field(min_length=1, max_length=200)
    collegeYear: int = Field(ge=1, le=4)
    semester: int = Field(ge=1, le=8)
    division: str = Field(min_length=1, max_length=20)

    @field_validator("department", "division")
    @classmethod
    def validate_labels(cls, value: str) -> str:
        return _clean_name(value)

    @model_validator(mode="after")
    def validate_semester_for_year(self) -> "ClassKey":
        allowed = SEMESTERS_BY_YEAR.get(self.collegeYear, ())
        if self.semester not in allowed:
            raise ValueError(f"Semester {self.semester} is not offered in year {self.collegeYear}")
        return self

    def as_dict(self) -> dict:
        return {
            "department": self.department,
            "collegeYear": self.collegeYear,
            "semester": self.semester,
            "division": self.division,
        }


class ClassTimetablePayload(ClassKey):
    id: str | None = None
    lunchSlotIndex: int = Field(default=3, ge=0, le=SLOT_COUNT - 1)
    constraints: list[SessionRequirement] = Field(default_factory=list)
    entries: list[TimetableEntry] = Field(default_factory=list)
    deletedEntries: list[SessionBlock] = Field(default_factory=list)
    addedEntries: list[PoolTemplate] = Field(default_factory=list)
    createdByName: str | None = None
    version: int | None = None
    createdAt: datetime | None = None
    updatedAt: datetime | None = None

    @model_validator(mode="after")
    def validate_unique_block_ids(self) -> "ClassTimetablePayload":
        seen: set[str] = set()
        for entry in self.entries:
            if entry.blockId in seen:
                raise ValueError(f"Duplicate blockId {entry.blockId}")
            seen.add(entry.blockId)
        return self


class TimetableCreateRequest(ClassKey):
    lunchSlotIndex: int | None = Field(default=None, ge=0, le=SLOT_COUNT - 1)
    constraints: list[RequirementIn] = Field(default_factory=list, max_length=100)
    attempts: int | None = Field(default=None, ge=1, le=500)
    seed: int | None = Field(default=None, ge=0)
    createdByName: str | None = Field(default=None, max_length=200)


class TimetableUpdateRequest(BaseModel):
    lunchSlotIndex: int = Field(ge=0, le=SLOT_COUNT - 1)
    constraints: list[SessionRequirement] = Field(default_factory=list)
    entries: list[TimetableEntry] = Field(default_factory=list)
    deletedEntries: list[SessionBlock] = Field(default_factory=list)
    addedEntries: list[PoolTemplate] = Field(default_factory=list)
    version: int | None = None


class RegenerateRequest(BaseModel):
    attempts: int | None = Field(default=None, ge=1, le=500)
    seed: int | None = Field(default=None, ge=0)
    version: int | None = None


class PlacementTarget(BaseModel):
    day: DayName
    slotIndex: int = Field(ge=0, le=SLOT_COUNT - 1)
    version: int | None = None


class VersionedRequest(BaseModel):
    version: int | None = None


class ConflictInfo(BaseModel):
    timetableId: str
    department: str
    collegeYear: int
    semester: int
    division: str
    subjectName: str
    slotIndex: int
    duration: int


class TeacherConflict(BaseModel):
    teacherName: str
    day: str
    slotIndex: int
    duration: int
    conflictWith: ConflictInfo


class ShortfallItem(BaseModel):
    constraintId: str
    subjectName: str
    teacherName: str
    type: SessionType
    requested: int
    placed: int


class GenerationReport(BaseModel):
    requestedBlocks: int
    placedBlocks: int
    fixedBlocks: int = 0
    attempts: int
    seed: int
    complete: bool
    warning: str | None = None
    shortfall: list[ShortfallItem] = Field(default_factory=list)


class TimetableGenerationResponse(BaseModel):
    timetable: ClassTimetablePayload
    report: GenerationReport


class TimetableEditResponse(BaseModel):
    timetable: ClassTimetablePayload
    entry: TimetableEntry | None = None
    template: PoolTemplate | None = None


class GridCell(BaseModel):
    day: str
    slotIndex: int
    slotLabel: str
    isLunch: bool = False
    isHead: bool = False
    isContinuation: bool = False
    entry: TimetableEntry | None = None


class TimetableGrid(BaseModel):
    timetableId: str
    days: list[str] = Field(default_factory=lambda: list(DAYS))
    slotLabels: list[str]
    lunchSlotIndex: int
    cells: list[GridCell]


class TeacherScheduleItem(BaseModel):
    timetableId: str
    department: str
    collegeYear: int
    semester: int
    division: str
    blockId: str
    day: str
    slotIndex: int
    duration: int
    subjectName: str
    type: SessionType
