"""Wellness score, streak and seven-day mood trend.

Scoring:
- score = (average of the 10 most recent moods / 5) * 80
          + min(journal count, 10) * 2
- streak = consecutive days, ending today, with a mood check-in
- trend = daily mood averages for the last 7 days, oldest first;
  days without check-ins count as a neutral 3

Only the 50 most recent records of each kind are considered.
"""
import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Sequence

from .models import JournalEntry, MoodCheckin, WellnessSummary

DEFAULT_SCORE = 75
NEUTRAL_MOOD = 3.0
RECORD_LIMIT = 50
SCORE_WINDOW = 10
TREND_DAYS = 7


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _newest_first(records):
    return sorted(records, key=lambda r: r.created_at, reverse=True)[:RECORD_LIMIT]


def calculate_streak(moods: Sequence[MoodCheckin], today: date) -> int:
    days = {m.created_at.date() for m in moods}
    streak = 0
    day = today
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def summarize_trend(moods: Sequence[MoodCheckin], today: date) -> List[float]:
    by_day: Dict[date, List[int]] = defaultdict(list)
    for m in moods:
        by_day[m.created_at.date()].append(m.mood)

    trend = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        entries = by_day.get(today - timedelta(days=offset))
        value = sum(entries) / len(entries) if entries else NEUTRAL_MOOD
        trend.append(_round_half_up(value, 1))
    return trend


def summarize_wellness(
    moods: Sequence[MoodCheckin],
    journals: Sequence[JournalEntry],
    today: date,
) -> WellnessSummary:
    """Aggregate an owner's records into a WellnessSummary.

    Args:
        moods: Mood check-ins, any order
        journals: Journal entries, any order
        today: The owner's current date (streak and trend end here)
    """
    moods = _newest_first(moods)
    journals = _newest_first(journals)

    if not moods and not journals:
        return WellnessSummary(
            score=DEFAULT_SCORE,
            checkins=0,
            journals=0,
            streak=0,
            trend=(NEUTRAL_MOOD,) * TREND_DAYS,
        )

    recent = moods[:SCORE_WINDOW]
    mood_avg = sum(m.mood for m in recent) / len(recent) if recent else NEUTRAL_MOOD
    score = int(_round_half_up((mood_avg / 5) * 80 + min(len(journals), SCORE_WINDOW) * 2))

    return WellnessSummary(
        score=score,
        checkins=len(moods),
        journals=len(journals),
        streak=calculate_streak(moods, today),
        trend=tuple(summarize_trend(moods, today)),
    )
