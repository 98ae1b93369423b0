"""Weekly grid coordinates and slot arithmetic.

A timetable is addressed as ``(day, slotIndex)`` over five teaching days and
eight one-hour slots starting at 9:00. Entries store their start slot and a
duration, so a block occupies ``[slotIndex, slotIndex + duration)``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

DAYS: tuple[str, ...] = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
DAY_ORDER: dict[str, int] = {day: index for index, day in enumerate(DAYS)}
SLOT_HOURS: tuple[int, ...] = (9, 10, 11, 12, 13, 14, 15, 16)
SLOT_COUNT = len(SLOT_HOURS)

LAB_DURATION = 2


def format_hour_12(hour_24: int) -> str:
    period = "PM" if hour_24 >= 12 else "AM"
    hour_12 = 12 if hour_24 % 12 == 0 else hour_24 % 12
    return f"{hour_12}:00 {period}"


SLOT_LABELS: tuple[str, ...] = tuple(f"{format_hour_12(hour)} - {format_hour_12(hour + 1)}" for hour in SLOT_HOURS)


def normalize_text(value: Any) -> str:
    return str(value or "").strip().lower()


def duration_for_type(session_type: str | None) -> int:
    return LAB_DURATION if str(session_type or "").upper() == "LAB" else 1


def safe_duration(value: Any) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return 1


def lecture_key(subject_name: str, session_type: str, teacher_name: str = "") -> str:
    return f"{normalize_text(subject_name)}|{normalize_text(session_type)}|{normalize_text(teacher_name)}"


def slots_overlap(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    end_a = start_a + safe_duration(duration_a)
    end_b = start_b + safe_duration(duration_b)
    return start_a < end_b and start_b < end_a


def occupied_slots(slot_index: int, duration: int) -> range:
    return range(slot_index, slot_index + safe_duration(duration))


def in_bounds(slot_index: int, duration: int) -> bool:
    return slot_index >= 0 and slot_index + safe_duration(duration) <= SLOT_COUNT


def entry_occupies_lunch(entry: Any, lunch_slot_index: int) -> bool:
    return lunch_slot_index in occupied_slots(entry.slotIndex, entry.duration)


def day_gap_count(entries: Iterable[Any], day: str, lunch_slot_index: int) -> int:
    """Idle slots between the first and last occupied slot of ``day``.

    The lunch slot never counts as occupied; when it falls inside the span it
    is counted as idle like any other empty slot.
    """
    slots: set[int] = set()
    for entry in entries:
        if entry.day != day:
            continue
        slots.update(slot for slot in occupied_slots(entry.slotIndex, entry.duration) if slot != lunch_slot_index)
    if len(slots) <= 1:
        return 0
    return max(slots) - min(slots) + 1 - len(slots)


def is_contiguous_day(entries: Iterable[Any], day: str, lunch_slot_index: int) -> bool:
    return day_gap_count(entries, day, lunch_slot_index) == 0


def color_from_index(index: int, total: int) -> str:
    safe_total = max(1, total)
    hue = round(index * 360 / safe_total) % 360
    return f"hsl({hue}, 78%, 84%)"


def color_for_lecture(subject_name: str, session_type: str, teacher_name: str = "") -> str:
    key = lecture_key(subject_name, session_type, teacher_name)
    value = 0
    for char in key:
        # 32-bit signed rolling hash, stable across processes unlike hash().
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return f"hsl({abs(value) % 360}, 74%, 84%)"


def build_grid(entries: Iterable[Any]) -> dict[tuple[str, int], dict[str, Any]]:
    grid: dict[tuple[str, int], dict[str, Any]] = {}
    for entry in entries:
        for offset, slot in enumerate(occupied_slots(entry.slotIndex, entry.duration)):
            grid[(entry.day, slot)] = {
                "entry": entry,
                "isHead": offset == 0,
                "isContinuation": offset > 0,
            }
    return grid
