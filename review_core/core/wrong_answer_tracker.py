"""
Mastery tracking for previously missed questions
"""

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from ..config import get_settings
from ..utils import calculate_success_rate, ensure_aware, utc_now
from .models import ActivityType, ReviewSession, WrongAnswer

logger = logging.getLogger(__name__)


@dataclass
class WrongAnswerStats:
    """Summary of the wrong answer collection"""

    total_wrong_answers: int = 0
    mastered_count: int = 0
    pending_review_count: int = 0
    average_review_count: float = 0.0
    mastery_rate: float = 0.0
    last_session_date: datetime | None = None


def record_review(
    answer: WrongAnswer,
    correct: bool,
    now: datetime | None = None,
    mastery_streak: int | None = None,
) -> WrongAnswer:
    """Return a new wrong answer with the review result applied"""
    if mastery_streak is None:
        mastery_streak = get_settings().wrong_answer_mastery_streak
    now = ensure_aware(now) if now is not None else utc_now()

    if correct:
        consecutive_correct = answer.consecutive_correct + 1
        mastered = answer.mastered or consecutive_correct >= mastery_streak
    else:
        consecutive_correct = 0
        mastered = answer.mastered

    if mastered and not answer.mastered:
        logger.info(f"Wrong answer {answer.id} mastered after {consecutive_correct} correct reviews")

    return replace(
        answer,
        review_count=answer.review_count + 1,
        last_reviewed_at=now,
        consecutive_correct=consecutive_correct,
        mastered=mastered,
    )


def _attempt_key(answer: WrongAnswer) -> datetime:
    if answer.attempted_at is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return ensure_aware(answer.attempted_at)


def select_for_review(answers: Iterable[WrongAnswer], limit: int | None = None) -> list[WrongAnswer]:
    """Unmastered answers, least reviewed first, then oldest attempt"""
    if limit is None:
        limit = get_settings().wrong_answer_review_limit
    pending = [wa for wa in answers if not wa.mastered]
    pending.sort(key=lambda wa: (wa.review_count, _attempt_key(wa)))
    return pending[:limit]


def pending_count(answers: Iterable[WrongAnswer]) -> int:
    return sum(1 for wa in answers if not wa.mastered)


def filter_by_type(answers: Iterable[WrongAnswer], activity_type: ActivityType | str) -> list[WrongAnswer]:
    activity_type = ActivityType(activity_type)
    return [wa for wa in answers if wa.type == activity_type and not wa.mastered]


def filter_by_lesson(answers: Iterable[WrongAnswer], lesson_id: str) -> list[WrongAnswer]:
    return [wa for wa in answers if wa.lesson_id == lesson_id and not wa.mastered]


def summarize(
    answers: Iterable[WrongAnswer],
    sessions: Iterable[ReviewSession] = (),
) -> WrongAnswerStats:
    """Summary statistics for a wrong answer collection"""
    answers = list(answers)
    completed = [ensure_aware(s.completed_at) for s in sessions if s.completed_at is not None]
    last_session_date = max(completed) if completed else None

    if not answers:
        return WrongAnswerStats(last_session_date=last_session_date)

    mastered_count = sum(1 for wa in answers if wa.mastered)
    total_reviews = sum(wa.review_count for wa in answers)

    return WrongAnswerStats(
        total_wrong_answers=len(answers),
        mastered_count=mastered_count,
        pending_review_count=len(answers) - mastered_count,
        average_review_count=total_reviews / len(answers),
        mastery_rate=calculate_success_rate(mastered_count, len(answers)),
        last_session_date=last_session_date,
    )


def generate_wrong_answer_id(now: datetime) -> str:
    millis = int(now.timestamp() * 1000)
    return f"wa_{millis}_{uuid.uuid4().hex[:7]}"


def add_wrong_answer(
    answers: Sequence[WrongAnswer],
    new: WrongAnswer,
    now: datetime | None = None,
) -> list[WrongAnswer]:
    """
    Return a new list with a freshly missed question recorded

    A repeat miss of the same exercise in the same lesson updates the
    existing entry: latest user answer and attempt time, streak reset and
    mastery revoked. Otherwise a new entry is appended with a fresh id.
    """
    now = ensure_aware(now) if now is not None else utc_now()
    attempted_at = new.attempted_at or now

    for index, existing in enumerate(answers):
        if existing.exercise_id == new.exercise_id and existing.lesson_id == new.lesson_id:
            if existing.mastered:
                logger.info(f"Wrong answer {existing.id} missed again, back in review")
            updated = list(answers)
            updated[index] = replace(
                existing,
                user_answer=new.user_answer,
                attempted_at=attempted_at,
                consecutive_correct=0,
                mastered=False,
            )
            return updated

    created = replace(
        new,
        id=new.id or generate_wrong_answer_id(now),
        attempted_at=attempted_at,
        review_count=0,
        last_reviewed_at=None,
        mastered=False,
        consecutive_correct=0,
    )
    return [*answers, created]


def remove_wrong_answer(answers: Iterable[WrongAnswer], answer_id: str) -> list[WrongAnswer]:
    return [wa for wa in answers if wa.id != answer_id]


def clear_mastered(answers: Iterable[WrongAnswer]) -> list[WrongAnswer]:
    return [wa for wa in answers if not wa.mastered]


def start_review_session(
    sessions: Sequence[ReviewSession],
    wrong_answer_ids: Sequence[str],
    now: datetime | None = None,
    max_sessions: int | None = None,
) -> tuple[ReviewSession, list[ReviewSession]]:
    """Start a session; returns it and the new session list (newest first)"""
    if max_sessions is None:
        max_sessions = get_settings().max_review_sessions
    now = ensure_aware(now) if now is not None else utc_now()

    session = ReviewSession(
        id=f"session_{int(now.timestamp() * 1000)}",
        started_at=now,
        wrong_answer_ids=list(wrong_answer_ids),
    )
    return session, [session, *sessions][:max_sessions]


def complete_review_session(
    sessions: Sequence[ReviewSession],
    session_id: str,
    correct_answers: int,
    now: datetime | None = None,
) -> list[ReviewSession]:
    """Return sessions with the given one marked completed"""
    now = ensure_aware(now) if now is not None else utc_now()

    updated = list(sessions)
    for index, session in enumerate(updated):
        if session.id == session_id:
            updated[index] = replace(session, completed_at=now, correct_answers=correct_answers)
            return updated

    logger.warning(f"Review session {session_id} not found")
    return updated


def recent_sessions(sessions: Iterable[ReviewSession], limit: int | None = None) -> list[ReviewSession]:
    """Completed sessions in stored order (newest first)"""
    if limit is None:
        limit = get_settings().recent_sessions_limit
    return [s for s in sessions if s.is_completed][:limit]
