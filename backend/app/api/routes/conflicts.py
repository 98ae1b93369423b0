from fastapi import APIRouter, Depends
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.exceptions import RequirementValidationError
from app.schemas.conflict import ConflictReport
from app.schemas.resolution import DetectConflictsRequest, ResolveConflictRequest
from app.schemas.timetable import PlacementTarget, TimetableEditResponse
from app.services import timetable_service

router = APIRouter()


@router.post("/detect", response_model=ConflictReport)
def detect_conflicts(
    payload: DetectConflictsRequest,
    db: Session = Depends(get_db),
):
    return timetable_service.detect_conflicts(db, payload.timetableId)


@router.post("/resolve", response_model=TimetableEditResponse)
def apply_resolution(
    request: ResolveConflictRequest,
    db: Session = Depends(get_db),
):
    action = request.action
    block_id = action.target_block_id

    if action.action_type == "move_entry":
        try:
            target = PlacementTarget.model_validate(action.parameters)
        except ValidationError as exc:
            raise RequirementValidationError(
                "move_entry needs a valid day and slotIndex",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
        operation = lambda editor: editor.move_entry(block_id, target.day, target.slotIndex)  # noqa: E731
    else:
        operation = lambda editor: editor.delete_entry(block_id)  # noqa: E731

    return timetable_service.apply_edit(db, request.timetableId, operation, request.version)
