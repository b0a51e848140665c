"""
Distractor generation for wrong answer review

Rebuilds a multiple-choice question from a previously missed answer:
correct answer + the user's wrong answer + peer distractors, topped up from
a static fallback bank so that at least four options are offered.

Two safety knobs keep the distractors sensible:
    same_type_only - only use answers from the same activity type
    level_cap - limit fallback difficulty by CEFR level
"""

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .config import Settings, get_settings
from .core.models import (
    ActivityType,
    CEFRLevel,
    DistractorDifficulty,
    GeneratedOptions,
    WrongAnswer,
)

logger = logging.getLogger(__name__)

RandomSource = Callable[[], float]

DIFFICULTY_ORDER = [
    DistractorDifficulty.SIMPLE,
    DistractorDifficulty.MODERATE,
    DistractorDifficulty.ADVANCED,
]

DEFAULT_LEVEL_CAP = {
    CEFRLevel.A1: DistractorDifficulty.SIMPLE,  # spelling/form differences only
    CEFRLevel.A2: DistractorDifficulty.SIMPLE,
    CEFRLevel.B1: DistractorDifficulty.MODERATE,  # semantic similarity allowed
    CEFRLevel.B2: DistractorDifficulty.MODERATE,
    CEFRLevel.C1: DistractorDifficulty.ADVANCED,  # nuance and collocations
    CEFRLevel.C2: DistractorDifficulty.ADVANCED,
}

# Used when the pool and the content index do not provide enough distractors
FALLBACK_DISTRACTORS: dict[ActivityType, dict[DistractorDifficulty, list[str]]] = {
    ActivityType.VOCABULARY: {
        DistractorDifficulty.SIMPLE: [
            "apple", "book", "car", "dog", "house", "water", "friend", "school", "family", "work",
        ],
        DistractorDifficulty.MODERATE: [
            "accomplish", "beneficial", "consider", "determine", "establish", "facilitate",
            "generate",
        ],
        DistractorDifficulty.ADVANCED: [
            "ubiquitous", "paradigm", "quintessential", "ephemeral", "conundrum", "serendipity",
        ],
    },
    ActivityType.GRAMMAR: {
        DistractorDifficulty.SIMPLE: [
            "is", "are", "was", "were", "am", "be", "do", "does", "did", "have", "has", "had",
        ],
        DistractorDifficulty.MODERATE: [
            "would", "could", "should", "might", "must", "shall", "will", "can", "may",
        ],
        DistractorDifficulty.ADVANCED: [
            "would have been", "could have been", "should have been", "might have been",
            "must have been",
        ],
    },
    ActivityType.READING: {
        DistractorDifficulty.SIMPLE: ["Yes", "No", "True", "False", "Maybe"],
        DistractorDifficulty.MODERATE: [
            "It is mentioned in the passage", "It is not mentioned", "The author agrees",
            "The author disagrees",
        ],
        DistractorDifficulty.ADVANCED: [
            "The author implies", "It can be inferred", "The passage suggests",
            "Based on the context",
        ],
    },
    ActivityType.LISTENING: {
        DistractorDifficulty.SIMPLE: ["Yes", "No", "True", "False", "Maybe"],
        DistractorDifficulty.MODERATE: [
            "The speaker mentioned", "The speaker did not mention", "According to the speaker",
        ],
        DistractorDifficulty.ADVANCED: [
            "The speaker implies", "It can be inferred", "The speaker suggests",
        ],
    },
    ActivityType.SPEAKING: {
        DistractorDifficulty.SIMPLE: ["Hello", "Goodbye", "Thank you", "Please", "Sorry"],
        DistractorDifficulty.MODERATE: [
            "I would like to", "Could you please", "Would you mind", "I appreciate",
        ],
        DistractorDifficulty.ADVANCED: [
            "I would be grateful if", "It would be my pleasure to", "I cannot help but notice",
        ],
    },
    ActivityType.WRITING: {
        DistractorDifficulty.SIMPLE: ["I think", "I believe", "In my opinion", "I feel"],
        DistractorDifficulty.MODERATE: [
            "Furthermore", "Moreover", "In addition", "On the other hand", "However",
            "Nevertheless",
        ],
        DistractorDifficulty.ADVANCED: [
            "Notwithstanding", "Consequently", "Correspondingly", "Paradoxically", "Ostensibly",
        ],
    },
}


class SimilarItemIndex(Protocol):
    """Content index used as an extra source of peer distractors"""

    def find_similar_items(
        self, item_id: str, *, same_level: bool = True, max_count: int = 5
    ) -> list[str]:
        """Return ids of items similar to item_id, within the same activity type"""
        ...

    def resolve_answer(self, item_id: str) -> str | None:
        """Return the correct answer of an item, or None if unknown"""
        ...


@dataclass
class DistractorConfig:
    """Distractor generation settings"""

    same_type_only: bool = True
    level_cap: dict[CEFRLevel, DistractorDifficulty] = field(
        default_factory=lambda: dict(DEFAULT_LEVEL_CAP)
    )


def default_config() -> DistractorConfig:
    """Get a fresh copy of the default configuration"""
    return DistractorConfig()


def shuffle(items: Sequence[str], rng: RandomSource) -> list[str]:
    """Fisher-Yates shuffle returning a new list"""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


class DistractorGenerator:
    """Builds multiple-choice option sets for wrong answer review"""

    def __init__(
        self,
        settings: Settings | None = None,
        similar_items: SimilarItemIndex | None = None,
        rng: RandomSource | None = None,
    ):
        settings = settings or get_settings()
        self.min_options = settings.min_options
        self.max_peer_distractors = settings.max_peer_distractors
        self.similar_items_max_count = settings.similar_items_max_count
        self.similar_items = similar_items
        self.rng = rng or random.random

    def generate_options(
        self,
        target: WrongAnswer,
        pool: Sequence[WrongAnswer],
        level: CEFRLevel | str,
        config: DistractorConfig | None = None,
    ) -> GeneratedOptions:
        """
        Generate shuffled options for a wrong answer

        Args:
            target: The wrong answer being reviewed
            pool: All known wrong answers (used for peer distractors)
            level: User CEFR level
            config: Generation settings (defaults to default_config())

        Returns:
            GeneratedOptions with at least min_options entries when material allows
        """
        config = config or default_config()
        level = CEFRLevel(level)
        difficulty = config.level_cap.get(level, DistractorDifficulty.SIMPLE)
        activity_type = ActivityType(target.type)

        correct_answer = target.correct_answer
        user_answer = target.user_answer
        has_user_answer = bool(user_answer) and user_answer != correct_answer

        # Base options: correct answer + user's wrong answer
        options = [correct_answer]
        if has_user_answer:
            options.append(user_answer)

        options.extend(self._find_peer_distractors(target, pool, options, config.same_type_only))
        self._ensure_minimum_options(options, activity_type, difficulty)

        if len(options) < self.min_options:
            logger.warning(
                f"Only {len(options)} options available for wrong answer {target.id} "
                f"({activity_type.value}, {difficulty.value})"
            )

        shuffled = shuffle(options, self.rng)
        return GeneratedOptions(
            options=shuffled,
            correct_index=shuffled.index(correct_answer),
            user_wrong_index=shuffled.index(user_answer) if has_user_answer else -1,
        )

    def _find_peer_distractors(
        self,
        target: WrongAnswer,
        pool: Sequence[WrongAnswer],
        exclude: list[str],
        same_type_only: bool,
    ) -> list[str]:
        """Collect correct answers of other wrong answers as distractors"""
        distractors: list[str] = []

        candidates = [
            wa for wa in pool
            if wa.id != target.id
            and not wa.mastered
            and (not same_type_only or wa.type == target.type)
        ]

        for wa in candidates:
            if len(distractors) >= self.max_peer_distractors:
                break
            answer = wa.correct_answer
            if answer and answer not in exclude and answer not in distractors:
                distractors.append(answer)

        if len(distractors) < self.max_peer_distractors and target.exercise_id:
            distractors.extend(
                self._find_indexed_distractors(target, exclude + distractors,
                                               self.max_peer_distractors - len(distractors))
            )

        logger.debug(f"Peer distractors for {target.id}: {distractors}")
        return distractors

    def _find_indexed_distractors(
        self, target: WrongAnswer, exclude: list[str], needed: int
    ) -> list[str]:
        """Look up answers of similar items in the content index"""
        if self.similar_items is None or needed <= 0:
            return []

        found: list[str] = []
        try:
            item_ids = self.similar_items.find_similar_items(
                target.exercise_id,
                same_level=True,
                max_count=self.similar_items_max_count,
            )
            for item_id in item_ids:
                answer = self.similar_items.resolve_answer(item_id)
                if answer and answer not in exclude and answer not in found:
                    found.append(answer)
                    if len(found) >= needed:
                        break
        except Exception as e:
            logger.warning(f"Similar item lookup failed for {target.exercise_id}: {e}")

        return found

    def _ensure_minimum_options(
        self,
        options: list[str],
        activity_type: ActivityType,
        difficulty: DistractorDifficulty,
    ) -> None:
        """Top up options from the fallback bank, other bands last"""
        if len(options) >= self.min_options:
            return

        bank = FALLBACK_DISTRACTORS.get(activity_type, {})

        for fallback in shuffle(bank.get(difficulty, []), self.rng):
            if fallback not in options:
                options.append(fallback)
                if len(options) >= self.min_options:
                    return

        for other in DIFFICULTY_ORDER:
            if other == difficulty:
                continue
            for fallback in bank.get(other, []):
                if fallback not in options:
                    options.append(fallback)
                    if len(options) >= self.min_options:
                        return


def generate_options(
    target: WrongAnswer,
    pool: Sequence[WrongAnswer],
    level: CEFRLevel | str,
    config: DistractorConfig | None = None,
    *,
    similar_items: SimilarItemIndex | None = None,
    rng: RandomSource | None = None,
) -> GeneratedOptions:
    """Convenience function to generate options with default settings"""
    generator = DistractorGenerator(similar_items=similar_items, rng=rng)
    return generator.generate_options(target, pool, level, config)


def generate_four_options(
    target: WrongAnswer,
    pool: Sequence[WrongAnswer],
    level: CEFRLevel | str = CEFRLevel.A1,
) -> GeneratedOptions:
    """Simple four-option question with the default configuration"""
    return generate_options(target, pool, level)
