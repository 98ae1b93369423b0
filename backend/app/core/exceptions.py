class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class RequirementValidationError(AppError):
    """Raised when operator-supplied requirements or class keys are invalid."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class TimetableExistsError(AppError):
    """Raised when a timetable already exists for the requested class key."""
    def __init__(self, class_key: dict, timetable_id: str):
        super().__init__(
            "Timetable already exists for this class",
            status_code=409,
            details={"classKey": class_key, "timetableId": timetable_id},
        )

class PlacementRejectedError(AppError):
    """Raised at the service boundary when a manual edit fails a placement check."""
    def __init__(self, message: str, reason: str, conflict: dict | None = None):
        details = {"reason": reason}
        if conflict is not None:
            details["conflict"] = conflict
        super().__init__(message, status_code=409, details=details)

class TeacherConflictError(AppError):
    """Raised when a timetable would double-book a teacher held by another class."""
    def __init__(self, conflicts: list[dict]):
        super().__init__(
            "Teacher timetable conflict detected. Same teacher cannot have overlapping lectures across timetables.",
            status_code=409,
            details={"conflicts": conflicts},
        )

class ConcurrencyConflictError(AppError):
    """Raised when the stored timetable changed after the caller read it."""
    def __init__(self, timetable_id: str, expected_version: int | None, actual_version: int | None):
        super().__init__(
            "Timetable was modified by another request; reload and retry",
            status_code=409,
            details={
                "timetableId": timetable_id,
                "expectedVersion": expected_version,
                "actualVersion": actual_version,
            },
        )

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)
