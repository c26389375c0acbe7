"""Service for ranking learners across completed assignments."""

from __future__ import annotations

from dataclasses import dataclass, field
import math

from debug_arena.constants.quiz_constants import (
    PODIUM_SIZE,
    POINTS_PER_CORRECT_ANSWER,
    POSITION_BONUSES,
    SPEED_BONUS_BASE,
    SPEED_BONUS_DIVISOR,
)
from debug_arena.core.models import CompletedSubmission, Profile
from debug_arena.core.services.quiz_store import QuizStore


@dataclass(slots=True)
class LeaderboardEntry:
    """Mutable per-learner aggregate used internally."""

    user_id: str
    correct_count: int = 0
    total_time: int = 0
    total_questions: int = 0


@dataclass(slots=True)
class LeaderboardRow:
    """Ranked, scored snapshot returned to consumers."""

    rank: int
    user_id: str
    display_name: str
    email: str | None
    correct_count: int
    total_time: int
    total_questions: int
    position_bonus: int
    correctness_bonus: int
    speed_bonus: int
    score: int
    accuracy_percent: int = field(default=0)

    @property
    def formatted_time(self) -> str:
        return format_duration(self.total_time)


def format_duration(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


def position_bonus(rank: int) -> int:
    return POSITION_BONUSES[rank] if 0 <= rank < len(POSITION_BONUSES) else 0


def speed_bonus(total_time: int, total_questions: int) -> int:
    if total_questions <= 0:
        return 0
    average = total_time / total_questions
    return max(0, math.floor(SPEED_BONUS_BASE - average / SPEED_BONUS_DIVISOR + 0.5))


def aggregate(rows: list[CompletedSubmission]) -> list[LeaderboardEntry]:
    """Group submissions by learner and sort by correct count, then total time."""
    entries: dict[str, LeaderboardEntry] = {}
    for row in rows:
        entry = entries.get(row.user_id)
        if entry is None:
            entry = LeaderboardEntry(user_id=row.user_id)
            entries[row.user_id] = entry
        entry.total_questions += 1
        entry.total_time += row.time_taken
        if row.is_correct:
            entry.correct_count += 1
    return sorted(entries.values(), key=lambda e: (-e.correct_count, e.total_time))


def _display_name(user_id: str, profile: Profile | None) -> str:
    if profile is None:
        return "Anonymous"
    if profile.full_name:
        return profile.full_name
    return profile.email.split("@")[0] or "Anonymous"


def score_entries(
    entries: list[LeaderboardEntry],
    profiles: dict[str, Profile] | None = None,
) -> list[LeaderboardRow]:
    profiles = profiles or {}
    scored: list[LeaderboardRow] = []
    for rank, entry in enumerate(entries):
        profile = profiles.get(entry.user_id)
        position = position_bonus(rank)
        correctness = entry.correct_count * POINTS_PER_CORRECT_ANSWER
        speed = speed_bonus(entry.total_time, entry.total_questions)
        accuracy = (
            math.floor(entry.correct_count / entry.total_questions * 100 + 0.5) if entry.total_questions else 0
        )
        scored.append(
            LeaderboardRow(
                rank=rank,
                user_id=entry.user_id,
                display_name=_display_name(entry.user_id, profile),
                email=profile.email if profile else None,
                correct_count=entry.correct_count,
                total_time=entry.total_time,
                total_questions=entry.total_questions,
                position_bonus=position,
                correctness_bonus=correctness,
                speed_bonus=speed,
                score=position + correctness + speed,
                accuracy_percent=accuracy,
            )
        )
    return scored


class Leaderboard:
    """Stateless recomputation of the ranking from completed submissions."""

    def __init__(self, store: QuizStore) -> None:
        self._store = store

    def compute(self, quiz_id: str | None = None) -> list[LeaderboardRow]:
        entries = aggregate(self._store.list_completed_submissions(quiz_id))
        profiles = self._store.get_profiles([e.user_id for e in entries])
        return score_entries(entries, profiles)

    @staticmethod
    def podium(rows: list[LeaderboardRow]) -> list[LeaderboardRow]:
        return rows[:PODIUM_SIZE]
