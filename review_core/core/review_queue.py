"""
Review queue helpers built on the spaced repetition engine
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..config import get_settings
from ..spaced_repetition import SpacedRepetitionSystem, get_srs_system, rating_score
from .models import ReviewItem, ReviewRating, SrsData

logger = logging.getLogger(__name__)


@dataclass
class ReviewQueueEntry:
    """A due word ready to be shown in a review session"""

    word_id: str
    payload: Any
    due_date: datetime
    overdue_days: int


@dataclass
class ReviewStats:
    """Aggregate review statistics"""

    total_reviews: int = 0
    correct_reviews: int = 0
    average_ease_factor: float = 2.5
    longest_interval: int = 0
    last_review_date: datetime | None = None


@dataclass
class DailyProgress:
    """Reviews done today against the daily goal"""

    goal: int = 20
    done: int = 0
    day: date | None = None

    def __post_init__(self):
        self.goal = clamp_daily_goal(self.goal)

    def roll_over(self, today: date) -> None:
        """Reset the counter when the day has changed"""
        if self.day != today:
            self.day = today
            self.done = 0

    def record_review(self, today: date) -> None:
        self.roll_over(today)
        self.done += 1

    def set_goal(self, goal: int) -> None:
        self.goal = clamp_daily_goal(goal)

    @property
    def is_complete(self) -> bool:
        return self.done >= self.goal


def clamp_daily_goal(goal: int) -> int:
    return max(1, min(100, goal))


def add_words(
    items: Sequence[ReviewItem],
    words: Iterable[tuple[str, Any]],
    now: datetime | None = None,
    srs: SpacedRepetitionSystem | None = None,
) -> list[ReviewItem]:
    """
    Return a new list with (word_id, payload) pairs added as new words

    Words already present, or repeated within the batch, are skipped.
    """
    srs = srs or get_srs_system()
    now = now or srs.now()
    known = {item.record.word_id for item in items}

    added = []
    for word_id, payload in words:
        if word_id in known:
            continue
        known.add(word_id)
        added.append(ReviewItem(record=srs.create_initial_srs_data(word_id, now), payload=payload))

    if added:
        logger.debug(f"Added {len(added)} new words")
    return [*items, *added]


def select_due(
    items: Iterable[ReviewItem],
    now: datetime | None = None,
    srs: SpacedRepetitionSystem | None = None,
) -> list[ReviewItem]:
    """Get items due for review, sorted by priority"""
    srs = srs or get_srs_system()
    now = now or srs.now()
    due = [item for item in items if srs.is_due(item.record, now)]
    return srs.rank_by_priority(due, now)


def count_due(
    items: Iterable[ReviewItem],
    now: datetime | None = None,
    srs: SpacedRepetitionSystem | None = None,
) -> int:
    srs = srs or get_srs_system()
    now = now or srs.now()
    return sum(1 for item in items if srs.is_due(item.record, now))


def select_overdue(
    items: Iterable[ReviewItem],
    now: datetime | None = None,
    srs: SpacedRepetitionSystem | None = None,
) -> list[ReviewItem]:
    """Get items overdue by at least one day, most overdue first"""
    srs = srs or get_srs_system()
    now = now or srs.now()
    overdue = [item for item in items if srs.overdue_days(item.record, now) > 0]
    return srs.rank_by_priority(overdue, now)


def select_mastered(items: Iterable[ReviewItem], threshold: int | None = None) -> list[ReviewItem]:
    """Words whose interval reached the mastery threshold"""
    if threshold is None:
        threshold = get_settings().mastered_interval_days
    return [item for item in items if item.record.interval >= threshold]


def build_queue_entries(
    items: Iterable[ReviewItem],
    now: datetime | None = None,
    srs: SpacedRepetitionSystem | None = None,
) -> list[ReviewQueueEntry]:
    """Build review queue entries for due items in priority order"""
    srs = srs or get_srs_system()
    now = now or srs.now()
    return [
        ReviewQueueEntry(
            word_id=item.record.word_id,
            payload=item.payload,
            due_date=item.record.next_review_date,
            overdue_days=srs.overdue_days(item.record, now),
        )
        for item in select_due(items, now, srs)
    ]


def update_review_stats(
    stats: ReviewStats,
    records: Sequence[SrsData],
    rating: ReviewRating | str,
    now: datetime,
) -> ReviewStats:
    """
    Return new statistics after a review

    Args:
        stats: Statistics before the review
        records: All records, including the freshly updated one
        rating: Rating given in the review
        now: Review time
    """
    rating = ReviewRating.parse(rating)
    is_correct = rating is not ReviewRating.AGAIN

    if records:
        average_ease = sum(r.ease_factor for r in records) / len(records)
        longest_interval = max(r.interval for r in records)
    else:
        average_ease = stats.average_ease_factor
        longest_interval = stats.longest_interval

    return ReviewStats(
        total_reviews=stats.total_reviews + 1,
        correct_reviews=stats.correct_reviews + (1 if is_correct else 0),
        average_ease_factor=average_ease,
        longest_interval=longest_interval,
        last_review_date=now,
    )


def analyze_learning_progress(ratings: Sequence[ReviewRating | str]) -> dict[str, Any]:
    """
    Analyze learning progress from a rating history (oldest first)

    Heuristic summary for reporting only: the trend band (0.5 points) and the
    difficulty cut-offs (4.5 / 3.5 / 2.0 on the 0-5 score scale) are tuning
    choices, not part of the scheduling algorithm.
    """
    if not ratings:
        return {
            "total_reviews": 0,
            "avg_score": 0.0,
            "success_rate": 0.0,
            "learning_trend": "stable",
            "difficulty_level": "unknown",
        }

    total_reviews = len(ratings)
    scores = [rating_score(rating) for rating in ratings]
    avg_score = sum(scores) / total_reviews

    # Anything but "again" counts as a successful recall
    successful_reviews = sum(1 for score in scores if score > 0)
    success_rate = successful_reviews / total_reviews

    # Learning trend (compare recent vs older reviews)
    if total_reviews >= 4:
        recent_scores = scores[-3:]
        older_scores = scores[:-3]
        recent_avg = sum(recent_scores) / len(recent_scores)
        older_avg = sum(older_scores) / len(older_scores)

        if recent_avg > older_avg + 0.5:
            trend = "improving"
        elif recent_avg < older_avg - 0.5:
            trend = "declining"
        else:
            trend = "stable"
    else:
        trend = "insufficient_data"

    # Difficulty assessment on the 0-5 score scale
    if avg_score >= 4.5:
        difficulty = "easy"
    elif avg_score >= 3.5:
        difficulty = "moderate"
    elif avg_score >= 2.0:
        difficulty = "hard"
    else:
        difficulty = "very_hard"

    logger.debug(f"Progress over {total_reviews} reviews: trend={trend}, difficulty={difficulty}")

    return {
        "total_reviews": total_reviews,
        "avg_score": round(avg_score, 2),
        "success_rate": round(success_rate, 2),
        "learning_trend": trend,
        "difficulty_level": difficulty,
    }
