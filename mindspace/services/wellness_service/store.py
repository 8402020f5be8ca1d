"""Wellness record storage."""
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List

from .models import JournalEntry, MoodCheckin


class WellnessStore(ABC):
    """Async journal and mood persistence interface.

    Reads return newest records first.
    """

    @abstractmethod
    async def add_journal(self, entry: JournalEntry) -> None:
        pass

    @abstractmethod
    async def add_mood(self, checkin: MoodCheckin) -> None:
        pass

    @abstractmethod
    async def recent_journals(self, owner_id: str, limit: int) -> List[JournalEntry]:
        pass

    @abstractmethod
    async def recent_moods(self, owner_id: str, limit: int) -> List[MoodCheckin]:
        pass


class InMemoryWellnessStore(WellnessStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._journals: Dict[str, List[JournalEntry]] = defaultdict(list)
        self._moods: Dict[str, List[MoodCheckin]] = defaultdict(list)

    async def add_journal(self, entry: JournalEntry) -> None:
        self._journals[entry.owner_id].append(entry)

    async def add_mood(self, checkin: MoodCheckin) -> None:
        self._moods[checkin.owner_id].append(checkin)

    async def recent_journals(self, owner_id: str, limit: int) -> List[JournalEntry]:
        entries = sorted(self._journals.get(owner_id, []), key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    async def recent_moods(self, owner_id: str, limit: int) -> List[MoodCheckin]:
        moods = sorted(self._moods.get(owner_id, []), key=lambda m: m.created_at, reverse=True)
        return moods[:limit]
