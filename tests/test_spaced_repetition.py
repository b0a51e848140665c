"""
Unit tests for spaced repetition system
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from review_core.core.models import ReviewItem, ReviewRating, SrsData, SrsState
from review_core.spaced_repetition import (
    MIN_EASE_FACTOR,
    SpacedRepetitionSystem,
    compute_next_state,
    get_srs_system,
    is_due,
    overdue_days,
    rank_by_priority,
    rating_score,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_record(word_id="w1", ease_factor=2.5, next_review_date=NOW, interval=0, repetition=0):
    return SrsData(
        word_id=word_id,
        repetition=repetition,
        ease_factor=ease_factor,
        interval=interval,
        next_review_date=next_review_date,
        created_at=NOW - timedelta(days=30),
        updated_at=NOW - timedelta(days=interval),
    )


@pytest.fixture
def srs():
    """Create SRS instance with a fixed clock"""
    return SpacedRepetitionSystem(clock=lambda: NOW)


class TestComputeNextState:
    """Test next state calculation"""

    def test_first_review_returns_initial_state(self, srs):
        """First review (no previous data) gives defaults and is due now"""
        result = srs.compute_next_state(None, "good")

        assert isinstance(result, SrsState)
        assert result.repetition == 0
        assert result.ease_factor == 2.5
        assert result.interval == 0
        assert result.next_review_date == NOW
        assert result.updated_at == NOW

    def test_first_success(self, srs):
        """First good review -> repetition 1, interval 1 day"""
        result = srs.compute_next_state(
            {"repetition": 0, "easeFactor": 2.5, "interval": 0}, ReviewRating.GOOD
        )

        assert result.repetition == 1
        assert result.interval == 1
        assert result.ease_factor == pytest.approx(2.5)

    def test_second_success(self, srs):
        """Second good review -> interval 6 days"""
        result = srs.compute_next_state(
            {"repetition": 1, "ease_factor": 2.5, "interval": 1}, "good"
        )

        assert result.repetition == 2
        assert result.interval == 6

    def test_third_success_multiplies_previous_interval(self, srs):
        """Third good review -> ceil(previous interval * ease factor)"""
        result = srs.compute_next_state(
            {"repetition": 2, "ease_factor": 2.5, "interval": 6}, "good"
        )

        assert result.repetition == 3
        assert result.interval == 15

    def test_interval_uses_pre_update_ease_factor(self, srs):
        """Interval multiplication happens before the ease factor changes"""
        result = srs.compute_next_state(
            {"repetition": 2, "ease_factor": 2.5, "interval": 6}, "hard"
        )

        assert result.interval == 15
        assert result.ease_factor < 2.5

    def test_interval_rounds_up(self, srs):
        """Multiplicative step uses ceiling rounding"""
        result = srs.compute_next_state(
            {"repetition": 3, "ease_factor": 2.3, "interval": 7}, "good"
        )

        assert result.interval == math.ceil(7 * 2.3)
        assert isinstance(result.interval, int)

    def test_again_resets(self, srs):
        """Again resets repetition and interval"""
        result = srs.compute_next_state(
            {"repetition": 5, "ease_factor": 2.3, "interval": 30}, "again"
        )

        assert result.repetition == 0
        assert result.interval == 1
        assert result.next_review_date == NOW + timedelta(days=1)

    def test_again_keeps_ease_factor(self, srs):
        """Ease factor is only recalculated on successful reviews"""
        result = srs.compute_next_state(
            {"repetition": 4, "ease_factor": 1.9, "interval": 20}, "again"
        )

        assert result.ease_factor == 1.9

    @pytest.mark.parametrize("repetition,ease", [(1, 2.5), (3, 1.3), (12, 3.1)])
    def test_again_resets_regardless_of_history(self, srs, repetition, ease):
        result = srs.compute_next_state(
            {"repetition": repetition, "ease_factor": ease, "interval": 40}, "again"
        )

        assert result.repetition == 0
        assert result.interval == 1

    def test_hard_decreases_ease_factor(self, srs):
        """Hard (q=2): 2.5 + (0.1 - 3 * 0.14) = 2.18"""
        result = srs.compute_next_state(
            {"repetition": 0, "ease_factor": 2.5, "interval": 0}, "hard"
        )

        assert result.ease_factor == pytest.approx(2.18)

    def test_easy_increases_ease_factor(self, srs):
        """Easy (q=5): 2.5 + 0.1 = 2.6"""
        result = srs.compute_next_state(
            {"repetition": 0, "ease_factor": 2.5, "interval": 0}, "easy"
        )

        assert result.ease_factor == pytest.approx(2.6)

    def test_ease_factor_floor(self, srs):
        """Repeated hard ratings never push ease factor below 1.3"""
        state = {"repetition": 0, "ease_factor": 1.4, "interval": 0}

        for _ in range(10):
            result = srs.compute_next_state(state, "hard")
            assert result.ease_factor >= 1.3
            state = result

        assert state.ease_factor == 1.3

    def test_ease_factor_floor_ignores_environment(self, monkeypatch):
        """The 1.3 floor is fixed, not read from configuration"""
        monkeypatch.setenv("MIN_EASE_FACTOR", "1.0")
        srs = SpacedRepetitionSystem(clock=lambda: NOW)

        result = srs.compute_next_state({"repetition": 3, "ease_factor": 1.3, "interval": 10}, "hard")

        assert srs.min_easiness == MIN_EASE_FACTOR == 1.3
        assert result.ease_factor == 1.3

    def test_partial_previous_uses_defaults(self, srs):
        """Missing fields fall back to repetition 0, ease 2.5, interval 0"""
        result = srs.compute_next_state({}, "good")

        assert result.repetition == 1
        assert result.interval == 1
        assert result.ease_factor == pytest.approx(2.5)

    def test_next_review_date_matches_interval(self, srs):
        """next_review_date is exactly updated_at + interval days"""
        state = None
        for rating in ["good", "good", "hard", "again", "easy", "good", "good"]:
            state = srs.compute_next_state(state, rating)
            assert state.next_review_date == state.updated_at + timedelta(days=state.interval)

    def test_three_good_ratings_staircase(self, srs):
        """Fresh item: three good ratings give intervals 1, 6, 15"""
        state = {"repetition": 0, "ease_factor": 2.5, "interval": 0}
        intervals = []
        for _ in range(3):
            state = srs.compute_next_state(state, "good")
            intervals.append(state.interval)

        assert intervals == [1, 6, 15]

    def test_explicit_now_overrides_clock(self, srs):
        later = NOW + timedelta(hours=5)
        result = srs.compute_next_state({"repetition": 0}, "good", now=later)

        assert result.updated_at == later
        assert result.next_review_date == later + timedelta(days=1)

    def test_input_is_not_mutated(self, srs):
        previous = {"repetition": 2, "ease_factor": 2.5, "interval": 6}
        srs.compute_next_state(previous, "easy")

        assert previous == {"repetition": 2, "ease_factor": 2.5, "interval": 6}

    def test_invalid_rating(self, srs):
        """Unknown rating strings are rejected at the boundary"""
        with pytest.raises(ValueError):
            srs.compute_next_state(None, "perfect")


class TestRecords:
    """Test record creation and review application"""

    def test_create_initial_srs_data(self, srs):
        record = srs.create_initial_srs_data("word-1")

        assert record.word_id == "word-1"
        assert record.repetition == 0
        assert record.ease_factor == 2.5
        assert record.interval == 0
        assert record.next_review_date == NOW
        assert record.created_at == NOW
        assert record.updated_at == NOW

    def test_apply_review_preserves_identity(self, srs):
        record = make_record(word_id="haus", repetition=1, interval=1,
                             next_review_date=NOW - timedelta(days=1))

        updated = srs.apply_review(record, "good")

        assert updated is not record
        assert updated.word_id == "haus"
        assert updated.created_at == record.created_at
        assert updated.updated_at == NOW
        assert updated.repetition == 2
        assert updated.interval == 6
        assert record.repetition == 1

    def test_apply_review_without_record(self, srs):
        created = srs.apply_review(None, "good", word_id="new")

        assert created.word_id == "new"
        assert created.interval == 0

    def test_apply_review_without_record_requires_word_id(self, srs):
        with pytest.raises(ValueError):
            srs.apply_review(None, "good")

    def test_record_round_trip_accepts_camel_case(self):
        record = SrsData.from_dict({
            "wordId": "w9",
            "repetition": 3,
            "easeFactor": 2.2,
            "interval": 15,
            "nextReviewDate": "2025-06-10T08:30:00.000Z",
            "createdAt": "2025-05-01T08:30:00.000Z",
            "updatedAt": "2025-05-26T08:30:00.000Z",
        })

        assert record.next_review_date == datetime(2025, 6, 10, 8, 30, tzinfo=timezone.utc)
        assert record.to_dict()["next_review_date"] == "2025-06-10T08:30:00+00:00"

    def test_record_requires_next_review_date(self):
        with pytest.raises(ValueError):
            SrsData.from_dict({"wordId": "w9", "nextReviewDate": "not a date"})

    def test_record_requires_word_id(self):
        with pytest.raises(ValueError, match="word_id"):
            SrsData.from_dict({"nextReviewDate": "2024-01-01T00:00:00Z"})


class TestDueAndOverdue:
    """Test due date queries"""

    def test_is_due_inclusive(self, srs):
        assert srs.is_due(make_record(next_review_date=NOW)) is True
        assert srs.is_due(make_record(next_review_date=NOW - timedelta(seconds=1))) is True
        assert srs.is_due(make_record(next_review_date=NOW + timedelta(seconds=1))) is False

    def test_overdue_days_past(self, srs):
        record = make_record(next_review_date=NOW - timedelta(days=2))
        assert srs.overdue_days(record) == 2

    def test_overdue_days_floors_partial_days(self, srs):
        record = make_record(next_review_date=NOW - timedelta(days=2, hours=23))
        assert srs.overdue_days(record) == 2

    def test_overdue_days_future(self, srs):
        record = make_record(next_review_date=NOW + timedelta(days=3))
        assert srs.overdue_days(record) == 0

    def test_naive_timestamps_are_treated_as_utc(self, srs):
        record = make_record(next_review_date=datetime(2025, 5, 30, 12, 0))
        assert srs.overdue_days(record) == 2


class TestRatingScore:
    """Test rating score lookup"""

    @pytest.mark.parametrize(
        "rating,score",
        [("again", 0), ("hard", 2), ("good", 4), ("easy", 5), (ReviewRating.EASY, 5)],
    )
    def test_rating_score(self, rating, score):
        assert rating_score(rating) == score


class TestRankByPriority:
    """Test review priority ordering"""

    def test_more_overdue_first(self, srs):
        one = ReviewItem(make_record("one", next_review_date=NOW - timedelta(days=1)), "eins")
        two = ReviewItem(make_record("two", next_review_date=NOW - timedelta(days=2)), "zwei")

        ranked = srs.rank_by_priority([one, two])

        assert [item.payload for item in ranked] == ["zwei", "eins"]

    def test_lower_ease_first_on_ties(self, srs):
        easy = ReviewItem(make_record("easy", ease_factor=2.5))
        hard = ReviewItem(make_record("hard", ease_factor=1.5))

        ranked = srs.rank_by_priority([easy, hard])

        assert [item.record.word_id for item in ranked] == ["hard", "easy"]

    def test_stable_for_equal_keys(self, srs):
        items = [ReviewItem(make_record(f"w{i}")) for i in range(5)]

        ranked = srs.rank_by_priority(items)

        assert [item.record.word_id for item in ranked] == ["w0", "w1", "w2", "w3", "w4"]

    def test_does_not_mutate_input(self, srs):
        items = [
            ReviewItem(make_record("a", next_review_date=NOW)),
            ReviewItem(make_record("b", next_review_date=NOW - timedelta(days=4))),
        ]
        original = list(items)

        ranked = srs.rank_by_priority(items)

        assert items == original
        assert ranked is not items

    def test_custom_record_accessor(self, srs):
        words = [
            {"word": "a", "srs": make_record("a", ease_factor=2.0)},
            {"word": "b", "srs": make_record("b", ease_factor=1.4)},
        ]

        ranked = srs.rank_by_priority(words, record_of=lambda w: w["srs"])

        assert [w["word"] for w in ranked] == ["b", "a"]

    def test_plain_dict_items(self, srs):
        """Items given as {"record", "payload"} mappings rank like ReviewItem"""
        items = [
            {"record": make_record("a", next_review_date=NOW - timedelta(days=1)), "payload": 1},
            {"record": make_record("b", next_review_date=NOW - timedelta(days=2)), "payload": 2},
            {"record": make_record("c", ease_factor=1.5, next_review_date=NOW - timedelta(days=1)),
             "payload": 3},
        ]

        ranked = srs.rank_by_priority(items)

        assert [item["payload"] for item in ranked] == [2, 3, 1]
        assert [item["payload"] for item in rank_by_priority(items, now=NOW)] == [2, 3, 1]


class TestGlobalFunctions:
    """Test global SRS functions"""

    def test_get_srs_system(self):
        srs1 = get_srs_system()
        srs2 = get_srs_system()

        assert srs1 is srs2
        assert isinstance(srs1, SpacedRepetitionSystem)

    def test_module_functions_with_explicit_now(self):
        state = compute_next_state({"repetition": 1, "ease_factor": 2.5, "interval": 1}, "good", now=NOW)
        record = make_record(next_review_date=NOW - timedelta(days=2))

        assert state.interval == 6
        assert is_due(record, now=NOW) is True
        assert overdue_days(record, now=NOW) == 2
        assert rank_by_priority([], now=NOW) == []

    def test_first_review_without_clock(self):
        before = datetime.now(timezone.utc)
        state = compute_next_state(None, "good")
        after = datetime.now(timezone.utc)

        assert before <= state.next_review_date <= after


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
