from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
import random
from time import perf_counter

from app.schemas.timetable import (
    ClassTimetablePayload,
    SessionRequirement,
    ShortfallItem,
    TimetableEntry,
)
from app.services.conflict_service import can_place, find_teacher_conflict
from app.services.constraint_expander import (
    SessionInstance,
    expand_constraints,
    requested_block_count,
    requirement_key,
)
from app.services.timetable_grid import (
    DAY_ORDER,
    DAYS,
    SLOT_COUNT,
    color_from_index,
    day_gap_count,
    is_contiguous_day,
    safe_duration,
)

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 20
MAX_BASE_SEED = 2_000_000_000


@dataclass(frozen=True)
class _Probe:
    day: str
    slotIndex: int
    duration: int


@dataclass(frozen=True)
class SlotCandidate:
    slot_index: int
    gaps: int
    keeps_contiguous: bool
    tie_break: float


@dataclass
class PlacementResult:
    entries: list[TimetableEntry]
    requested_blocks: int
    placed_blocks: int
    fixed_blocks: int
    attempts_run: int
    seed: int
    shortfall: list[ShortfallItem] = field(default_factory=list)
    placed_by_constraint_id: dict[str, int] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.placed_blocks >= self.requested_blocks

    @property
    def missing_blocks(self) -> int:
        return max(0, self.requested_blocks - self.placed_blocks)


@dataclass
class _TrialState:
    entries: list[TimetableEntry]
    day_load: dict[str, int]
    placed_by_constraint: Counter[int]
    used_block_ids: set[str]


class AutoPlacementSolver:
    """Randomized multi-attempt greedy placement of weekly sessions.

    Each trial walks the requirements once and commits the first day/slot
    that passes both the intra-timetable and the cross-timetable teacher
    checks. Trials differ only by their RNG (``seed + trial``); the trial
    that places the most blocks wins, earliest trial on ties.
    """

    def __init__(
        self,
        *,
        constraints: Sequence[SessionRequirement],
        lunch_slot_index: int,
        all_timetables: Sequence[ClassTimetablePayload] = (),
        exclude_timetable_id: str | None = None,
        attempts: int = DEFAULT_ATTEMPTS,
        seed: int | None = None,
        fixed_entries: Sequence[TimetableEntry] = (),
    ) -> None:
        constraints = list(constraints)
        self.instances = expand_constraints(constraints)
        self.instances_by_constraint: dict[int, list[SessionInstance]] = {}
        for instance in self.instances:
            self.instances_by_constraint.setdefault(instance.constraint_index, []).append(instance)
        self.constraints = [items[0].requirement for items in self.instances_by_constraint.values()]
        lecture_keys = list(dict.fromkeys(requirement_key(item) for item in constraints))
        self.lecture_colors = {
            key: color_from_index(index, len(lecture_keys)) for index, key in enumerate(lecture_keys)
        }
        self.lunch_slot_index = lunch_slot_index
        self.exclude_timetable_id = exclude_timetable_id
        self.all_timetables = [
            item
            for item in all_timetables
            if not exclude_timetable_id or str(item.id) != str(exclude_timetable_id)
        ]
        self.attempts = max(1, attempts)
        self.seed = seed if seed is not None else random.randrange(1, MAX_BASE_SEED)
        self.fixed_entries = [entry.model_copy() for entry in fixed_entries]
        self.fixed_block_ids = {entry.blockId for entry in self.fixed_entries}
        self.requested_blocks = requested_block_count(self.constraints)

    def solve(self) -> PlacementResult:
        started = perf_counter()
        best = self._run_trial(0)
        attempts_run = 1

        for trial in range(1, self.attempts):
            if self._placed_count(best) >= self.requested_blocks:
                break
            attempts_run += 1
            state = self._run_trial(trial)
            if len(state.entries) > len(best.entries):
                best = state

        result = PlacementResult(
            entries=best.entries,
            requested_blocks=self.requested_blocks,
            placed_blocks=self._placed_count(best),
            fixed_blocks=len(self.fixed_entries),
            attempts_run=attempts_run,
            seed=self.seed,
            shortfall=self._shortfall(best),
            placed_by_constraint_id=self._placed_by_constraint_id(best),
        )
        logger.info(
            "PLACEMENT SOLVE | requested=%s | placed=%s | fixed=%s | attempts=%s | seed=%s | elapsed_ms=%.1f",
            result.requested_blocks,
            result.placed_blocks,
            result.fixed_blocks,
            attempts_run,
            self.seed,
            (perf_counter() - started) * 1000,
        )
        if not result.is_complete:
            logger.warning(
                "PLACEMENT PARTIAL | missing=%s | unsatisfied=%s",
                result.missing_blocks,
                ", ".join(f"{item.subjectName}/{item.teacherName}" for item in result.shortfall),
            )
        return result

    def _placed_count(self, state: _TrialState) -> int:
        return len(state.entries) - len(self.fixed_entries)

    def _run_trial(self, trial: int) -> _TrialState:
        rng = random.Random(self.seed + trial)
        state = _TrialState(
            entries=[entry.model_copy() for entry in self.fixed_entries],
            day_load={day: 0 for day in DAYS},
            placed_by_constraint=Counter(),
            used_block_ids=set(self.fixed_block_ids),
        )
        for entry in self.fixed_entries:
            if entry.day in state.day_load:
                state.day_load[entry.day] += safe_duration(entry.duration)

        lecture_day_load: dict[str, dict[str, int]] = {}
        order = list(self.instances_by_constraint)
        rng.shuffle(order)

        for constraint_index in order:
            for instance in self.instances_by_constraint[constraint_index]:
                per_day = lecture_day_load.setdefault(
                    requirement_key(instance.requirement), {day: 0 for day in DAYS}
                )
                entry = self._place_occurrence(rng=rng, state=state, lecture_day_load=per_day, instance=instance, trial=trial)
                if entry is None:
                    continue
                state.entries.append(entry)
                state.used_block_ids.add(entry.blockId)
                state.day_load[entry.day] += entry.duration
                per_day[entry.day] += 1
                state.placed_by_constraint[constraint_index] += 1
        return state

    def _place_occurrence(
        self,
        *,
        rng: random.Random,
        state: _TrialState,
        lecture_day_load: dict[str, int],
        instance: SessionInstance,
        trial: int,
    ) -> TimetableEntry | None:
        requirement = instance.requirement
        duration = instance.duration
        for day in self._candidate_days(rng, state.day_load, lecture_day_load, instance.occurrence):
            for slot_index in self._candidate_slots(rng, state.entries, day, duration):
                if not can_place(state.entries, requirement, day, slot_index, self.lunch_slot_index):
                    continue
                if find_teacher_conflict(
                    self.all_timetables,
                    requirement.teacherName,
                    day,
                    slot_index,
                    duration,
                    self.exclude_timetable_id,
                ) is not None:
                    continue
                return TimetableEntry(
                    blockId=self._block_id(state.used_block_ids, trial, instance.constraint_index, instance.occurrence),
                    subjectName=requirement.subjectName,
                    teacherName=requirement.teacherName,
                    type=requirement.type,
                    duration=duration,
                    color=self.lecture_colors.get(requirement_key(requirement), requirement.color),
                    day=day,
                    slotIndex=slot_index,
                )
        return None

    def _candidate_days(
        self,
        rng: random.Random,
        day_load: dict[str, int],
        lecture_day_load: dict[str, int],
        occurrence: int,
    ) -> list[str]:
        day_count = len(DAYS)
        pivot = (occurrence + rng.randrange(day_count)) % day_count
        ranked = [
            (
                lecture_day_load[day],
                day_load[day],
                (DAY_ORDER[day] - pivot) % day_count,
                rng.random(),
                day,
            )
            for day in DAYS
        ]
        ranked.sort()
        return [item[-1] for item in ranked]

    def _candidate_slots(
        self,
        rng: random.Random,
        entries: list[TimetableEntry],
        day: str,
        duration: int,
    ) -> list[int]:
        was_contiguous = is_contiguous_day(entries, day, self.lunch_slot_index)
        slot_indices = list(range(SLOT_COUNT))
        rng.shuffle(slot_indices)
        candidates: list[SlotCandidate] = []
        for slot_index in slot_indices:
            probe = _Probe(day=day, slotIndex=slot_index, duration=duration)
            gaps = day_gap_count([*entries, probe], day, self.lunch_slot_index)
            candidates.append(
                SlotCandidate(
                    slot_index=slot_index,
                    gaps=gaps,
                    keeps_contiguous=gaps == 0 if was_contiguous else True,
                    tie_break=rng.random(),
                )
            )
        candidates.sort(key=lambda item: (not item.keeps_contiguous, item.gaps, item.tie_break))
        return [item.slot_index for item in candidates]

    def _block_id(self, used_block_ids: set[str], trial: int, constraint_index: int, occurrence: int) -> str:
        base = f"tb_{self.seed:x}_{trial}_{constraint_index}_{occurrence}"
        block_id = base
        retry = 0
        while block_id in used_block_ids:
            retry += 1
            block_id = f"{base}_r{retry}"
        return block_id

    def _placed_by_constraint_id(self, state: _TrialState) -> dict[str, int]:
        placed: dict[str, int] = {}
        for index, requirement in enumerate(self.constraints):
            placed[requirement.id] = placed.get(requirement.id, 0) + state.placed_by_constraint[index]
        return placed

    def _shortfall(self, state: _TrialState) -> list[ShortfallItem]:
        shortfall: list[ShortfallItem] = []
        for index, requirement in enumerate(self.constraints):
            requested = max(1, requirement.frequencyPerWeek)
            placed = state.placed_by_constraint[index]
            if placed >= requested:
                continue
            shortfall.append(
                ShortfallItem(
                    constraintId=requirement.id,
                    subjectName=requirement.subjectName,
                    teacherName=requirement.teacherName,
                    type=requirement.type,
                    requested=requested,
                    placed=placed,
                )
            )
        return shortfall
