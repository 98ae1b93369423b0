from app.models.timetable import ClassTimetable  # noqa: F401
