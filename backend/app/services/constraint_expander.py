from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from app.schemas.timetable import PoolTemplate, SessionRequirement
from app.services.timetable_grid import duration_for_type, lecture_key, safe_duration


@dataclass(frozen=True)
class SessionInstance:
    requirement: SessionRequirement
    constraint_index: int
    occurrence: int

    @property
    def duration(self) -> int:
        return requirement_duration(self.requirement)


def requirement_duration(requirement: SessionRequirement) -> int:
    return safe_duration(requirement.duration or duration_for_type(requirement.type))


def requirement_key(requirement: SessionRequirement) -> str:
    return lecture_key(requirement.subjectName, requirement.type, requirement.teacherName)


def sort_constraints(constraints: Iterable[SessionRequirement]) -> list[SessionRequirement]:
    # Frequent and long sessions first: they are the hardest to fit.
    return sorted(
        constraints,
        key=lambda item: (
            -max(1, item.frequencyPerWeek),
            -requirement_duration(item),
            requirement_key(item),
        ),
    )


def expand_constraints(constraints: Iterable[SessionRequirement]) -> list[SessionInstance]:
    """One instance per weekly occurrence, grouped by requirement in sorted order."""
    return [
        SessionInstance(requirement=requirement, constraint_index=index, occurrence=occurrence)
        for index, requirement in enumerate(sort_constraints(constraints))
        for occurrence in range(max(1, requirement.frequencyPerWeek))
    ]


def requested_block_count(constraints: Iterable[SessionRequirement]) -> int:
    return sum(max(1, item.frequencyPerWeek) for item in constraints)


def templates_as_constraints(templates: Sequence[PoolTemplate]) -> list[SessionRequirement]:
    """Reinterpret ad-hoc pool templates as requirements for the solver."""
    return [
        SessionRequirement(
            id=template.blockId,
            subjectName=template.subjectName,
            teacherName=template.teacherName,
            type=template.type,
            frequencyPerWeek=max(1, template.frequencyPerWeek),
            duration=safe_duration(template.duration or duration_for_type(template.type)),
            color=template.color,
        )
        for template in templates
    ]
