from dataclasses import dataclass
from typing import Any, Dict, Iterable


def _round2(x: float) -> float:
    return round(x + 1e-9, 2)


@dataclass
class SessionStats:
    total_sessions: int = 0
    completed_sessions: int = 0
    total_minutes: int = 0
    total_breaks: int = 0
    average_minutes_per_session: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSessions": self.total_sessions,
            "completedSessions": self.completed_sessions,
            "totalMinutes": self.total_minutes,
            "totalBreaks": self.total_breaks,
            "averageMinutesPerSession": self.average_minutes_per_session,
        }


def aggregate_sessions(sessions: Iterable[Any]) -> SessionStats:
    """
    Fold the Pomodoro sessions of one task into counts, sums and the average
    length. Works on model rows or on anything with duration_min,
    breaks_taken and completed attributes. No sessions gives all zeros.
    """
    stats = SessionStats()
    for s in sessions:
        stats.total_sessions += 1
        if s.completed:
            stats.completed_sessions += 1
        stats.total_minutes += int(s.duration_min or 0)
        stats.total_breaks += int(s.breaks_taken or 0)
    if stats.total_sessions:
        stats.average_minutes_per_session = _round2(stats.total_minutes / stats.total_sessions)
    return stats
