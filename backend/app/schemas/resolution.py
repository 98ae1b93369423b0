from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.conflict import ResolutionAction


class DetectConflictsRequest(BaseModel):
    timetableId: str = Field(min_length=1)


class ResolveConflictRequest(BaseModel):
    timetableId: str = Field(min_length=1)
    action: ResolutionAction
    version: Optional[int] = Field(default=None, ge=1)
