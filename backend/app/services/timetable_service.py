from __future__ import annotations

from collections.abc import Callable, Sequence
import logging
from time import perf_counter

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import (
    AppError,
    ConcurrencyConflictError,
    PlacementRejectedError,
    RequirementValidationError,
    TimetableExistsError,
)
from app.schemas.conflict import ConflictReport
from app.schemas.timetable import (
    ClassTimetablePayload,
    GenerationReport,
    GridCell,
    RegenerateRequest,
    RequirementIn,
    SessionRequirement,
    TeacherScheduleItem,
    TimetableCreateRequest,
    TimetableEditResponse,
    TimetableGenerationResponse,
    TimetableGrid,
    TimetableUpdateRequest,
)
from app.services.conflict_service import ConflictService
from app.services.manual_edit import EditOutcome, TimetableEditor
from app.services.placement_solver import AutoPlacementSolver, PlacementResult
from app.services.regeneration import regenerate
from app.services.timetable_grid import (
    DAY_ORDER,
    DAYS,
    SLOT_COUNT,
    SLOT_LABELS,
    build_grid,
    normalize_text,
)
from app.services.timetable_store import TimetableStore

logger = logging.getLogger(__name__)

PARTIAL_PLACEMENT_WARNING = "Some lectures could not be auto-placed due to teacher time conflicts or slot limits."


def build_constraints(items: Sequence[RequirementIn | dict]) -> list[SessionRequirement]:
    if not items:
        raise RequirementValidationError("Add at least one subject constraint before creating timetable.")
    constraints: list[SessionRequirement] = []
    for index, item in enumerate(items):
        raw = item.model_dump() if isinstance(item, RequirementIn) else dict(item)
        try:
            constraints.append(SessionRequirement.model_validate(raw))
        except ValidationError as exc:
            raise RequirementValidationError(
                f"Constraint #{index + 1} is invalid",
                details={"index": index, "errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
    return constraints


def build_report(placement: PlacementResult) -> GenerationReport:
    return GenerationReport(
        requestedBlocks=placement.requested_blocks,
        placedBlocks=placement.placed_blocks,
        fixedBlocks=placement.fixed_blocks,
        attempts=placement.attempts_run,
        seed=placement.seed,
        complete=placement.is_complete,
        warning=None if placement.is_complete else PARTIAL_PLACEMENT_WARNING,
        shortfall=placement.shortfall,
    )


def _check_version(current: ClassTimetablePayload, expected_version: int | None) -> int | None:
    if expected_version is not None and current.version != expected_version:
        raise ConcurrencyConflictError(str(current.id), expected_version, current.version)
    return current.version if expected_version is None else expected_version


def create_timetable(db: Session, request: TimetableCreateRequest, settings: Settings) -> TimetableGenerationResponse:
    started = perf_counter()
    store = TimetableStore(db)
    existing = store.get_by_class_key(request.department, request.collegeYear, request.semester, request.division)
    if existing is not None:
        raise TimetableExistsError(request.as_dict(), str(existing.id))

    constraints = build_constraints(request.constraints)
    lunch_slot_index = (
        request.lunchSlotIndex if request.lunchSlotIndex is not None else settings.default_lunch_slot_index
    )
    logger.info(
        "TIMETABLE GENERATION START | class=%s/%s/%s/%s | constraints=%s | lunch=%s",
        request.department,
        request.collegeYear,
        request.semester,
        request.division,
        len(constraints),
        lunch_slot_index,
    )

    placement = AutoPlacementSolver(
        constraints=constraints,
        lunch_slot_index=lunch_slot_index,
        all_timetables=store.list(),
        attempts=request.attempts or settings.solver_attempts,
        seed=request.seed if request.seed is not None else settings.solver_seed,
    ).solve()

    payload = ClassTimetablePayload(
        **request.as_dict(),
        lunchSlotIndex=lunch_slot_index,
        constraints=constraints,
        entries=placement.entries,
        createdByName=request.createdByName,
    )
    created = store.create(payload)
    logger.info(
        "TIMETABLE GENERATION DONE | timetable_id=%s | placed=%s/%s | elapsed_ms=%.1f",
        created.id,
        placement.placed_blocks,
        placement.requested_blocks,
        (perf_counter() - started) * 1000,
    )
    return TimetableGenerationResponse(timetable=created, report=build_report(placement))


def save_timetable(db: Session, timetable_id: str, request: TimetableUpdateRequest) -> ClassTimetablePayload:
    store = TimetableStore(db)
    current = store.get(timetable_id)
    expected_version = _check_version(current, request.version)
    try:
        payload = ClassTimetablePayload.model_validate(
            {**current.model_dump(), **request.model_dump(exclude={"version"})}
        )
    except ValidationError as exc:
        raise RequirementValidationError(
            "Timetable payload is invalid",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
    return store.update(timetable_id, payload, expected_version)


def regenerate_timetable(
    db: Session,
    timetable_id: str,
    request: RegenerateRequest,
    settings: Settings,
) -> TimetableGenerationResponse:
    store = TimetableStore(db)
    current = store.get(timetable_id)
    expected_version = _check_version(current, request.version)
    result = regenerate(
        current,
        store.list(),
        attempts=request.attempts or settings.solver_attempts,
        seed=request.seed if request.seed is not None else settings.solver_seed,
    )
    updated = store.update(timetable_id, result.timetable, expected_version)
    return TimetableGenerationResponse(timetable=updated, report=build_report(result.placement))


def apply_edit(
    db: Session,
    timetable_id: str,
    operation: Callable[[TimetableEditor], EditOutcome],
    expected_version: int | None = None,
) -> TimetableEditResponse:
    """Run one edit against a fresh snapshot and persist it as a unit."""
    store = TimetableStore(db)
    current = store.get(timetable_id)
    version = _check_version(current, expected_version)
    editor = TimetableEditor(current, store.list())
    outcome = operation(editor)
    if not outcome.ok:
        logger.info(
            "TIMETABLE EDIT REJECTED | timetable_id=%s | reason=%s | message=%s",
            timetable_id,
            outcome.reason,
            outcome.message,
        )
        if outcome.reason == "not_found":
            raise AppError(outcome.message, status_code=404, details={"reason": outcome.reason})
        raise PlacementRejectedError(
            outcome.message,
            reason=outcome.reason or "rejected",
            conflict=outcome.conflict.model_dump() if outcome.conflict is not None else None,
        )
    updated = store.update(timetable_id, editor.timetable, version)
    return TimetableEditResponse(timetable=updated, entry=outcome.entry, template=outcome.template)


def detect_conflicts(db: Session, timetable_id: str) -> ConflictReport:
    store = TimetableStore(db)
    timetable = store.get(timetable_id)
    service = ConflictService(timetable, store.list())
    report = service.detect_conflicts()
    for conflict in report.conflicts:
        report.suggested_resolutions.extend(service.generate_resolutions(conflict))
    return report


def build_timetable_grid(timetable: ClassTimetablePayload) -> TimetableGrid:
    lookup = build_grid(timetable.entries)
    cells: list[GridCell] = []
    for day in DAYS:
        for slot_index in range(SLOT_COUNT):
            cell = lookup.get((day, slot_index))
            cells.append(
                GridCell(
                    day=day,
                    slotIndex=slot_index,
                    slotLabel=SLOT_LABELS[slot_index],
                    isLunch=slot_index == timetable.lunchSlotIndex,
                    isHead=bool(cell and cell["isHead"]),
                    isContinuation=bool(cell and cell["isContinuation"]),
                    entry=cell["entry"] if cell else None,
                )
            )
    return TimetableGrid(
        timetableId=str(timetable.id),
        slotLabels=list(SLOT_LABELS),
        lunchSlotIndex=timetable.lunchSlotIndex,
        cells=cells,
    )


def teacher_schedule(timetables: Sequence[ClassTimetablePayload], teacher_name: str) -> list[TeacherScheduleItem]:
    teacher = normalize_text(teacher_name)
    rows: list[TeacherScheduleItem] = []
    for timetable in timetables:
        for entry in timetable.entries:
            if normalize_text(entry.teacherName) != teacher:
                continue
            rows.append(
                TeacherScheduleItem(
                    timetableId=str(timetable.id),
                    department=timetable.department,
                    collegeYear=timetable.collegeYear,
                    semester=timetable.semester,
                    division=timetable.division,
                    blockId=entry.blockId,
                    day=entry.day,
                    slotIndex=entry.slotIndex,
                    duration=entry.duration,
                    subjectName=entry.subjectName,
                    type=entry.type,
                )
            )
    rows.sort(key=lambda item: (DAY_ORDER.get(item.day, 99), item.slotIndex))
    return rows
