from pydantic import BaseModel
from typing import Literal, Optional, List

class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal[
        "slot_overlap",
        "lunch_slot",
        "out_of_bounds",
        "teacher_conflict",
    ]
    description: str
    severity: Literal["hard", "soft"]
    affected_blocks: List[str]  # blockIds inside the audited timetable
    day: Optional[str] = None
    slot_index: Optional[int] = None
    other_timetable_id: Optional[str] = None

class ResolutionAction(BaseModel):
    action_type: Literal["move_entry", "remove_entry"]
    description: str
    target_block_id: str
    parameters: dict  # e.g. {"day": "Tuesday", "slotIndex": 2}

class ConflictReport(BaseModel):
    timetable_id: Optional[str] = None
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction]
