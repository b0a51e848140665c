"""
Spaced Repetition System implementation using a simplified SuperMemo 2 algorithm
"""

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any, TypeVar

from .core.models import ReviewRating, SrsData, SrsState
from .utils import ensure_aware, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]

# Statistics only; scheduling uses QUALITY_SCORES
RATING_SCORES = {
    ReviewRating.AGAIN: 0,
    ReviewRating.HARD: 2,
    ReviewRating.GOOD: 4,
    ReviewRating.EASY: 5,
}

QUALITY_SCORES = {
    ReviewRating.HARD: 2,
    ReviewRating.GOOD: 4,
    ReviewRating.EASY: 5,
}

ONE_DAY = timedelta(days=1)

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


def record_of_item(item: Any) -> SrsData:
    """Get the scheduling record of a queue item (object or mapping)"""
    if isinstance(item, Mapping):
        return item["record"]
    return item.record


class SpacedRepetitionSystem:
    """Simplified SuperMemo 2 spaced repetition algorithm implementation"""

    def __init__(self, clock: Clock | None = None):
        self.default_easiness = DEFAULT_EASE_FACTOR
        self.min_easiness = MIN_EASE_FACTOR
        self.clock = clock or utc_now

    def now(self) -> datetime:
        return ensure_aware(self.clock())

    def compute_next_state(
        self,
        previous: SrsData | SrsState | Mapping[str, Any] | None,
        rating: ReviewRating | str,
        now: datetime | None = None,
    ) -> SrsState:
        """
        Calculate the next scheduling state for a word

        Args:
            previous: Previous state of the word, None for the first review
            rating: User rating (again, hard, good, easy)
            now: Review time (defaults to the system clock)

        Returns:
            SrsState with the new parameters
        """
        rating = ReviewRating.parse(rating)
        now = ensure_aware(now) if now is not None else self.now()

        if previous is None:
            return self.initial_state(now)

        repetition, easiness, interval = self._read_previous(previous)

        logger.info(
            f"Calculating review: rating={rating.value}, reps={repetition}, "
            f"interval={interval}, ef={easiness}"
        )

        if rating is ReviewRating.AGAIN:
            # Ease factor is only recalculated on successful reviews
            repetition = 0
            interval = 1
        else:
            repetition += 1
            interval = self._calculate_new_interval(repetition, interval, easiness)
            easiness = self._calculate_new_easiness(rating, easiness)

        result = SrsState(
            repetition=repetition,
            ease_factor=easiness,
            interval=interval,
            next_review_date=now + timedelta(days=interval),
            updated_at=now,
        )

        logger.info(
            f"Review result: interval={result.interval}, "
            f"ef={result.ease_factor}, next={result.next_review_date.isoformat()}"
        )

        return result

    def initial_state(self, now: datetime | None = None) -> SrsState:
        """State of a word that has never been reviewed: due immediately"""
        now = ensure_aware(now) if now is not None else self.now()
        return SrsState(
            repetition=0,
            ease_factor=self.default_easiness,
            interval=0,
            next_review_date=now,
            updated_at=now,
        )

    def create_initial_srs_data(self, word_id: str, now: datetime | None = None) -> SrsData:
        """Create the scheduling record for a newly added word"""
        state = self.initial_state(now)
        return SrsData(
            word_id=word_id,
            repetition=state.repetition,
            ease_factor=state.ease_factor,
            interval=state.interval,
            next_review_date=state.next_review_date,
            created_at=state.updated_at,
            updated_at=state.updated_at,
        )

    def apply_review(
        self,
        record: SrsData | None,
        rating: ReviewRating | str,
        word_id: str | None = None,
        now: datetime | None = None,
    ) -> SrsData:
        """Return a new record with the review applied"""
        state = self.compute_next_state(record, rating, now)

        if record is None:
            if word_id is None:
                raise ValueError("word_id is required when there is no previous record")
            return SrsData(
                word_id=word_id,
                repetition=state.repetition,
                ease_factor=state.ease_factor,
                interval=state.interval,
                next_review_date=state.next_review_date,
                created_at=state.updated_at,
                updated_at=state.updated_at,
            )

        return SrsData(
            word_id=record.word_id,
            repetition=state.repetition,
            ease_factor=state.ease_factor,
            interval=state.interval,
            next_review_date=state.next_review_date,
            created_at=record.created_at,
            updated_at=state.updated_at,
        )

    def is_due(self, record: SrsData, now: datetime | None = None) -> bool:
        """Check if a word is due for review"""
        now = ensure_aware(now) if now is not None else self.now()
        return now >= ensure_aware(record.next_review_date)

    def overdue_days(self, record: SrsData, now: datetime | None = None) -> int:
        """Whole days since the word became due, never negative"""
        now = ensure_aware(now) if now is not None else self.now()
        elapsed = now - ensure_aware(record.next_review_date)
        return max(0, elapsed // ONE_DAY)

    def rank_by_priority(
        self,
        items: Iterable[T],
        now: datetime | None = None,
        record_of: Callable[[T], SrsData] = record_of_item,
    ) -> list[T]:
        """Sort items by review priority (most urgent first)"""
        now = ensure_aware(now) if now is not None else self.now()

        def priority(item: T) -> tuple[int, float]:
            record = record_of(item)
            # More overdue first, then lower ease factor
            return (-self.overdue_days(record, now), record.ease_factor)

        return sorted(items, key=priority)

    def _read_previous(
        self, previous: SrsData | SrsState | Mapping[str, Any]
    ) -> tuple[int, float, int]:
        """Extract repetition, ease factor and interval with defaults"""
        if isinstance(previous, Mapping):
            repetition = previous.get("repetition", 0)
            easiness = previous.get("ease_factor", previous.get("easeFactor", self.default_easiness))
            interval = previous.get("interval", 0)
        else:
            repetition = previous.repetition
            easiness = previous.ease_factor
            interval = previous.interval

        return int(repetition), float(easiness), int(interval)

    def _calculate_new_interval(
        self, repetition: int, current_interval: int, easiness_factor: float
    ) -> int:
        """Interval staircase: 1 day, 6 days, then previous interval * EF"""
        if repetition == 1:
            return 1
        elif repetition == 2:
            return 6
        return math.ceil(current_interval * easiness_factor)

    def _calculate_new_easiness(self, rating: ReviewRating, current_easiness: float) -> float:
        """SuperMemo 2 easiness update with a lower bound"""
        q = QUALITY_SCORES[rating]
        new_easiness = current_easiness + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        return max(self.min_easiness, new_easiness)


def rating_score(rating: ReviewRating | str) -> int:
    """Get rating score (for statistics)"""
    return RATING_SCORES[ReviewRating.parse(rating)]


# Global instance
_srs_system = None


def get_srs_system() -> SpacedRepetitionSystem:
    """Get global SRS system instance"""
    global _srs_system
    if _srs_system is None:
        _srs_system = SpacedRepetitionSystem()
    return _srs_system


def compute_next_state(
    previous: SrsData | SrsState | Mapping[str, Any] | None,
    rating: ReviewRating | str,
    now: datetime | None = None,
) -> SrsState:
    """Convenience function to calculate the next scheduling state"""
    return get_srs_system().compute_next_state(previous, rating, now)


def create_initial_srs_data(word_id: str, now: datetime | None = None) -> SrsData:
    """Convenience function to create a record for a new word"""
    return get_srs_system().create_initial_srs_data(word_id, now)


def apply_review(
    record: SrsData | None,
    rating: ReviewRating | str,
    word_id: str | None = None,
    now: datetime | None = None,
) -> SrsData:
    """Convenience function to apply a review to a record"""
    return get_srs_system().apply_review(record, rating, word_id, now)


def is_due(record: SrsData, now: datetime | None = None) -> bool:
    return get_srs_system().is_due(record, now)


def overdue_days(record: SrsData, now: datetime | None = None) -> int:
    return get_srs_system().overdue_days(record, now)


def rank_by_priority(
    items: Iterable[T],
    now: datetime | None = None,
    record_of: Callable[[T], SrsData] = record_of_item,
) -> list[T]:
    return get_srs_system().rank_by_priority(items, now, record_of)
