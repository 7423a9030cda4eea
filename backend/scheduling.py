"""
Weekly schedule arithmetic.

A schedule slot is a dict {"day": "Monday", "start": "08:00", "end": "10:00"}.
Two slots conflict only when they share a day and their time ranges overlap:
    start < other_end AND end > other_start
Touching endpoints (end == other start) are not a conflict.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from errors import ScheduleConflictError

HHMM = re.compile(r"(\d{2}):(\d{2})", re.ASCII)


def to_minutes(hhmm: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    match = HHMM.fullmatch(str(hhmm))
    if not match:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h, m = int(match.group(1)), int(match.group(2))
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def slots_overlap(a: Dict[str, Any], b: Dict[str, Any]) -> bool:
    if a["day"] != b["day"]:
        return False
    return to_minutes(a["start"]) < to_minutes(b["end"]) and to_minutes(a["end"]) > to_minutes(b["start"])


def find_schedule_conflict(
    slots: Optional[List[Dict[str, Any]]],
    existing_subjects: Iterable[Any],
) -> Optional[Tuple[Dict[str, Any], Any, Dict[str, Any]]]:
    """
    Return the first (candidate slot, subject, existing slot) that collides,
    or None. Candidate slots are the outer loop, then subjects, then their slots.
    """
    if not slots:
        return None
    subjects = list(existing_subjects)
    for slot in slots:
        for subject in subjects:
            if not subject.schedule:
                continue
            for existing in subject.schedule:
                if slots_overlap(slot, existing):
                    return slot, subject, existing
    return None


def check_schedule_conflicts(slots, existing_subjects) -> None:
    hit = find_schedule_conflict(slots, existing_subjects)
    if hit is not None:
        slot, subject, existing = hit
        raise ScheduleConflictError(slot, subject.name, existing)
