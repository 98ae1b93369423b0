from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_app_settings, get_db
from app.core.config import Settings
from app.core.exceptions import ResourceNotFoundError
from app.schemas.timetable import (
    ClassTimetablePayload,
    PlacementTarget,
    PoolTemplateIn,
    RegenerateRequest,
    TeacherScheduleItem,
    TimetableCreateRequest,
    TimetableEditResponse,
    TimetableGenerationResponse,
    TimetableGrid,
    TimetableUpdateRequest,
    VersionedRequest,
)
from app.services import timetable_service
from app.services.timetable_store import TimetableStore

router = APIRouter()


@router.get("", response_model=list[ClassTimetablePayload])
def list_timetables(db: Session = Depends(get_db)) -> list[ClassTimetablePayload]:
    return TimetableStore(db).list()


@router.get("/lookup", response_model=ClassTimetablePayload)
def lookup_timetable(
    department: str = Query(min_length=1),
    college_year: int = Query(alias="collegeYear", ge=1, le=4),
    semester: int = Query(ge=1, le=8),
    division: str = Query(min_length=1),
    db: Session = Depends(get_db),
) -> ClassTimetablePayload:
    timetable = TimetableStore(db).get_by_class_key(department.strip(), college_year, semester, division.strip())
    if timetable is None:
        raise ResourceNotFoundError("Timetable", f"{department}/{college_year}/{semester}/{division}")
    return timetable


@router.get("/teachers/{teacher_name}/schedule", response_model=list[TeacherScheduleItem])
def get_teacher_schedule(teacher_name: str, db: Session = Depends(get_db)) -> list[TeacherScheduleItem]:
    return timetable_service.teacher_schedule(TimetableStore(db).list(), teacher_name)


@router.post("", response_model=TimetableGenerationResponse, status_code=status.HTTP_201_CREATED)
def create_timetable(
    payload: TimetableCreateRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TimetableGenerationResponse:
    return timetable_service.create_timetable(db, payload, settings)


@router.get("/{timetable_id}", response_model=ClassTimetablePayload)
def get_timetable(timetable_id: str, db: Session = Depends(get_db)) -> ClassTimetablePayload:
    return TimetableStore(db).get(timetable_id)


@router.get("/{timetable_id}/grid", response_model=TimetableGrid)
def get_timetable_grid(timetable_id: str, db: Session = Depends(get_db)) -> TimetableGrid:
    return timetable_service.build_timetable_grid(TimetableStore(db).get(timetable_id))


@router.put("/{timetable_id}", response_model=ClassTimetablePayload)
def save_timetable(
    timetable_id: str,
    payload: TimetableUpdateRequest,
    db: Session = Depends(get_db),
) -> ClassTimetablePayload:
    return timetable_service.save_timetable(db, timetable_id, payload)


@router.delete("/{timetable_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_timetable(timetable_id: str, db: Session = Depends(get_db)) -> None:
    TimetableStore(db).delete(timetable_id)


@router.post("/{timetable_id}/regenerate", response_model=TimetableGenerationResponse)
def regenerate_timetable(
    timetable_id: str,
    payload: RegenerateRequest | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TimetableGenerationResponse:
    return timetable_service.regenerate_timetable(db, timetable_id, payload or RegenerateRequest(), settings)


@router.post("/{timetable_id}/entries/{block_id}/move", response_model=TimetableEditResponse)
def move_entry(
    timetable_id: str,
    block_id: str,
    payload: PlacementTarget,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(
        db,
        timetable_id,
        lambda editor: editor.move_entry(block_id, payload.day, payload.slotIndex),
        payload.version,
    )


@router.post("/{timetable_id}/entries/{block_id}/delete", response_model=TimetableEditResponse)
def delete_entry(
    timetable_id: str,
    block_id: str,
    payload: VersionedRequest | None = None,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(
        db,
        timetable_id,
        lambda editor: editor.delete_entry(block_id),
        payload.version if payload else None,
    )


@router.post("/{timetable_id}/deleted/{block_id}/restore", response_model=TimetableEditResponse)
def restore_entry(
    timetable_id: str,
    block_id: str,
    payload: PlacementTarget,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(
        db,
        timetable_id,
        lambda editor: editor.restore_entry(block_id, payload.day, payload.slotIndex),
        payload.version,
    )


@router.delete("/{timetable_id}/deleted/{block_id}", response_model=TimetableEditResponse)
def discard_deleted_entry(
    timetable_id: str,
    block_id: str,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(db, timetable_id, lambda editor: editor.discard_deleted(block_id))


@router.post("/{timetable_id}/pool", response_model=TimetableEditResponse, status_code=status.HTTP_201_CREATED)
def add_pool_template(
    timetable_id: str,
    payload: PoolTemplateIn,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(db, timetable_id, lambda editor: editor.add_template(payload))


@router.delete("/{timetable_id}/pool/{block_id}", response_model=TimetableEditResponse)
def remove_pool_template(
    timetable_id: str,
    block_id: str,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(db, timetable_id, lambda editor: editor.remove_template(block_id))


@router.post("/{timetable_id}/pool/{block_id}/place", response_model=TimetableEditResponse)
def place_from_pool(
    timetable_id: str,
    block_id: str,
    payload: PlacementTarget,
    db: Session = Depends(get_db),
) -> TimetableEditResponse:
    return timetable_service.apply_edit(
        db,
        timetable_id,
        lambda editor: editor.add_from_pool(block_id, payload.day, payload.slotIndex),
        payload.version,
    )
