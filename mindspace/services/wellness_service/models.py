"""Wellness domain models: journals, mood check-ins, summary."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

MIN_MOOD = 1
MAX_MOOD = 5


@dataclass(frozen=True)
class JournalEntry:
    """A private journal entry. Text is never logged."""
    entry_id: str
    owner_id: str
    text: str
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.entry_id,
            "text": self.text,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class MoodCheckin:
    """Self-reported mood on a 1 (low) to 5 (great) scale."""
    checkin_id: str
    owner_id: str
    mood: int
    note: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if not MIN_MOOD <= self.mood <= MAX_MOOD:
            raise ValueError(f"Mood must be {MIN_MOOD}-{MAX_MOOD}, got {self.mood}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.checkin_id,
            "mood": self.mood,
            "note": self.note,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class WellnessSummary:
    """Aggregate wellness metrics shown on the dashboard."""
    score: int
    checkins: int
    journals: int
    streak: int
    trend: Tuple[float, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "checkins": self.checkins,
            "journals": self.journals,
            "streak": self.streak,
            "trend": list(self.trend),
        }
