"""Wellness Service: journals, mood check-ins and the wellness summary.

Components:
- models.py: JournalEntry, MoodCheckin, WellnessSummary
- summary.py: score, streak and seven-day trend
- store.py: WellnessStore interface and in-memory implementation
- service.py: WellnessService (validation + recording)

HTTP routes are mounted by the chat service app.
"""

from .models import JournalEntry, MoodCheckin, WellnessSummary
from .service import WellnessService
from .store import InMemoryWellnessStore, WellnessStore
from .summary import summarize_wellness

__all__ = [
    "JournalEntry",
    "MoodCheckin",
    "WellnessSummary",
    "WellnessService",
    "InMemoryWellnessStore",
    "WellnessStore",
    "summarize_wellness",
]
