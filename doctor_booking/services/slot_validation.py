"""
Pure validation for weekly time slots.

Nothing here touches the database or raises for a rule violation. Every check
returns a ``SlotCheck`` so the caller decides what to do with a failure, which
keeps a rejected batch from ever being partially applied.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple
import re

from ..models.time_slot import WEEKDAYS

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


@dataclass(frozen=True)
class SlotWindow:
    """A candidate or stored slot reduced to what the rules look at."""
    day: str
    start_time: str
    end_time: str
    is_available: bool = True
    slot_id: Optional[int] = None

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "SlotWindow") -> bool:
        # Half-open intervals, so back-to-back slots do not collide
        return (
            self.day == other.day
            and self.start_minutes < other.end_minutes
            and other.start_minutes < self.end_minutes
        )

    def label(self) -> str:
        return f"{self.day} {self.start_time}-{self.end_time}"


@dataclass(frozen=True)
class SlotCheck:
    ok: bool
    slots: Tuple[SlotWindow, ...] = ()
    error: Optional[str] = None

    @classmethod
    def passed(cls, slots: Iterable[SlotWindow]) -> "SlotCheck":
        return cls(ok=True, slots=tuple(slots))

    @classmethod
    def failed(cls, error: str) -> "SlotCheck":
        return cls(ok=False, error=error)


def is_valid_time(value: Optional[str]) -> bool:
    return isinstance(value, str) and TIME_PATTERN.match(value) is not None


def to_minutes(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string that passed ``is_valid_time``."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def normalize_time(value: str) -> str:
    """``9:05`` -> ``09:05`` so stored values sort and compare consistently."""
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


def check_interval(start_time: str, end_time: str, min_duration_minutes: int) -> Optional[str]:
    """Return the violated rule for a well-formed interval, or None."""
    start = to_minutes(start_time)
    end = to_minutes(end_time)
    if start >= end:
        return "start time must be before end time"
    if end - start < min_duration_minutes:
        return f"minimum slot duration is {min_duration_minutes} minutes"
    return None


def find_overlap(window: SlotWindow, others: Iterable[SlotWindow]) -> Optional[SlotWindow]:
    for other in others:
        if other.slot_id is not None and other.slot_id == window.slot_id:
            continue
        if window.overlaps(other):
            return other
    return None


def validate_new_slots(
    candidates: Sequence,
    existing: Sequence[SlotWindow],
    min_duration_minutes: int,
) -> SlotCheck:
    """Validate a batch of new slots against the doctor's stored slots.

    ``candidates`` are objects exposing ``day``, ``start_time``, ``end_time``
    and ``is_available`` (the request schema). Format, day and duration rules
    run over the whole batch first, then overlaps are checked against stored
    slots and against earlier slots of the same batch. The first violation
    fails the batch and names the slot by its 1-based position.
    """
    if not candidates:
        return SlotCheck.failed("Please provide at least one time slot")

    windows = []
    for position, candidate in enumerate(candidates, start=1):
        day = candidate.day
        start_time = candidate.start_time
        end_time = candidate.end_time

        if not day or not start_time or not end_time:
            return SlotCheck.failed(
                f"Slot {position}: each slot must have day, startTime, and endTime"
            )
        if day not in WEEKDAYS:
            return SlotCheck.failed(
                f"Slot {position}: invalid day: {day}. Must be one of: {', '.join(WEEKDAYS)}"
            )
        if not is_valid_time(start_time) or not is_valid_time(end_time):
            return SlotCheck.failed(
                f"Slot {position}: time must be in HH:MM format (24-hour)"
            )

        problem = check_interval(start_time, end_time, min_duration_minutes)
        if problem:
            return SlotCheck.failed(f"Slot {position}: {problem}")

        windows.append(
            SlotWindow(
                day=day,
                start_time=normalize_time(start_time),
                end_time=normalize_time(end_time),
                is_available=candidate.is_available is not False,
            )
        )

    for position, window in enumerate(windows, start=1):
        clash = find_overlap(window, existing)
        if clash:
            return SlotCheck.failed(
                f"Slot {position}: overlaps with existing slot: {clash.label()}"
            )
        for earlier_position, earlier in enumerate(windows[:position - 1], start=1):
            if window.overlaps(earlier):
                return SlotCheck.failed(
                    f"Slot {position}: overlaps with slot {earlier_position} in the same request: {earlier.label()}"
                )

    return SlotCheck.passed(windows)


def validate_slot_change(
    current: SlotWindow,
    others: Sequence[SlotWindow],
    min_duration_minutes: int,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    is_available: Optional[bool] = None,
) -> SlotCheck:
    """Validate a partial update of one stored slot.

    Time rules and the overlap check only run when a time field is supplied,
    so toggling availability alone never fails on neighbouring slots.
    """
    new_start = current.start_time
    new_end = current.end_time

    if start_time is not None:
        if not is_valid_time(start_time):
            return SlotCheck.failed("Start time must be in HH:MM format (24-hour)")
        new_start = normalize_time(start_time)

    if end_time is not None:
        if not is_valid_time(end_time):
            return SlotCheck.failed("End time must be in HH:MM format (24-hour)")
        new_end = normalize_time(end_time)

    updated = SlotWindow(
        day=current.day,
        start_time=new_start,
        end_time=new_end,
        is_available=current.is_available if is_available is None else is_available,
        slot_id=current.slot_id,
    )

    if start_time is not None or end_time is not None:
        problem = check_interval(updated.start_time, updated.end_time, min_duration_minutes)
        if problem:
            return SlotCheck.failed(problem[0].upper() + problem[1:])

        clash = find_overlap(updated, others)
        if clash:
            return SlotCheck.failed(f"Updated slot overlaps with existing slot: {clash.label()}")

    return SlotCheck.passed([updated])
