"""Wellness service: journal entries, mood check-ins, dashboard summary."""
import logging
import uuid
from datetime import date, datetime
from typing import Optional

from mindspace.shared.errors import InvalidInput
from mindspace.shared.utils import hash_pii
from .models import MAX_MOOD, MIN_MOOD, JournalEntry, MoodCheckin, WellnessSummary
from .store import WellnessStore
from .summary import RECORD_LIMIT, summarize_wellness

logger = logging.getLogger(__name__)

MAX_JOURNAL_LENGTH = 5000
MAX_NOTE_LENGTH = 500


def _require_owner(owner_id: str) -> None:
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise InvalidInput("Owner id required")


class WellnessService:
    """Records wellness data and summarizes it per owner."""

    def __init__(self, store: WellnessStore):
        self.store = store

    async def record_journal(self, owner_id: str, text: str) -> JournalEntry:
        """Save a journal entry.

        Raises:
            InvalidInput: Empty text or longer than 5000 characters
        """
        _require_owner(owner_id)
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("Journal text required")
        if len(text) > MAX_JOURNAL_LENGTH:
            raise InvalidInput(f"Journal text exceeds {MAX_JOURNAL_LENGTH} characters")

        entry = JournalEntry(
            entry_id=f"jrn_{uuid.uuid4().hex[:12]}",
            owner_id=owner_id,
            text=text,
        )
        await self.store.add_journal(entry)

        logger.info(
            "JOURNAL_RECORDED",
            extra={
                "owner_id_hash": hash_pii(owner_id),
                "entry_id": entry.entry_id,
                "text_length": len(text),
            }
        )
        return entry

    async def record_mood(
        self,
        owner_id: str,
        mood: int,
        note: Optional[str] = None,
    ) -> MoodCheckin:
        """Save a mood check-in.

        Raises:
            InvalidInput: Mood outside 1-5, or oversized note
        """
        _require_owner(owner_id)
        if isinstance(mood, bool) or not isinstance(mood, int) or not MIN_MOOD <= mood <= MAX_MOOD:
            raise InvalidInput(f"Mood must be an integer {MIN_MOOD}-{MAX_MOOD}")
        if note is not None and (not isinstance(note, str) or len(note) > MAX_NOTE_LENGTH):
            raise InvalidInput(f"Note must be text up to {MAX_NOTE_LENGTH} characters")

        checkin = MoodCheckin(
            checkin_id=f"mood_{uuid.uuid4().hex[:12]}",
            owner_id=owner_id,
            mood=mood,
            note=note or None,
        )
        await self.store.add_mood(checkin)

        logger.info(
            "MOOD_RECORDED",
            extra={
                "owner_id_hash": hash_pii(owner_id),
                "checkin_id": checkin.checkin_id,
                "mood": mood,
            }
        )
        return checkin

    async def summary(self, owner_id: str, today: Optional[date] = None) -> WellnessSummary:
        _require_owner(owner_id)
        moods = await self.store.recent_moods(owner_id, RECORD_LIMIT)
        journals = await self.store.recent_journals(owner_id, RECORD_LIMIT)
        return summarize_wellness(moods, journals, today or datetime.utcnow().date())
