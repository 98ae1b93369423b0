import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class ClassTimetable(Base):
    __tablename__ = "class_timetables"
    __table_args__ = (
        UniqueConstraint("department", "college_year", "semester", "division", name="uq_class_timetables_class_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    department: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    college_year: Mapped[int] = mapped_column(Integer, nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    division: Mapped[str] = mapped_column(String(20), nullable=False)
    lunch_slot_index: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    constraints: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    entries: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    deleted_entries: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    added_entries: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    created_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
