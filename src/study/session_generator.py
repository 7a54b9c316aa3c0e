"""
Adaptive Session Generator.

Builds an ordered practice set that mixes question patterns, weighted toward
the patterns a learner gets wrong, under a difficulty quota:

- 60% at the recommended difficulty
- 20% one level below, 20% one level above (dropped outside 1..5)

Selection is deterministic: the random source is seeded from the request
(mode, tags, target, size, user, pattern weights, and the date for daily
sessions), so the same request over the same history yields the same list.

No pattern is picked three times in a row while another pattern still has
items. Review sessions lead with a small block drawn from previously missed
patterns one level below the recommended difficulty.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Protocol

from loguru import logger

from src.core.errors import GenerationError
from src.core.models import Attempt, QuestionIndexEntry, SessionMode
from src.core.time_budget import DEFAULT_TIME_BUDGETS, TimeBudgetTable
from src.study.rng import Mulberry32, serialize_weights


class CatalogReader(Protocol):
    def get_question_index(self, question_id: str) -> QuestionIndexEntry | None: ...

    def get_all_question_ids(self) -> list[str]: ...

    def question_ids_for_tags(self, tags: Sequence[str]) -> list[str]: ...


@dataclass
class SessionConfig:
    """Configuration for session generation."""

    history_window: int = 50
    default_difficulty: int = 3
    min_difficulty: int = 1
    max_difficulty: int = 5
    low_share: float = 0.2
    current_share: float = 0.6
    max_streak: int = 2
    review_recent_exclusion: int = 5
    review_max_size: int = 3


@dataclass(frozen=True)
class Candidate:
    """A question eligible for selection."""

    question_id: str
    pattern_id: str
    difficulty: int | None


@dataclass
class DifficultyPlan:
    """Remaining quota per difficulty bucket."""

    low: int = 0
    current: int = 0
    high: int = 0

    BUCKETS = ("low", "current", "high")

    def as_dict(self) -> dict[str, int]:
        return {"low": self.low, "current": self.current, "high": self.high}

    def draw_slot(self, rng: Mulberry32) -> str | None:
        """Pick a non-empty bucket uniformly and consume one slot from it."""
        open_buckets = [b for b in self.BUCKETS if getattr(self, b) > 0]
        if not open_buckets:
            return None
        bucket = rng.choice(open_buckets)
        setattr(self, bucket, getattr(self, bucket) - 1)
        return bucket


class PatternPool:
    """Items of one pattern; consumed items are swap-removed."""

    def __init__(self, items: list[Candidate]):
        self._items = items

    def __len__(self) -> int:
        return len(self._items)

    def pick_index(self, target_difficulty: int | None, rng: Mulberry32) -> int:
        """Index of a random item at the target difficulty, else of any item."""
        matching = [
            i for i, item in enumerate(self._items)
            if target_difficulty is None or item.difficulty == target_difficulty
        ]
        if not matching:
            matching = list(range(len(self._items)))
        return rng.choice(matching)

    def take(self, index: int) -> Candidate:
        items = self._items
        picked = items[index]
        items[index] = items[-1]
        items.pop()
        return picked


@dataclass
class CoreSelection:
    """Output of one weighted, quota-constrained selection run."""

    question_ids: list[str] = field(default_factory=list)
    pattern_counts: dict[str, int] = field(default_factory=dict)
    pattern_weights: dict[str, float] = field(default_factory=dict)
    difficulty_plan: dict[str, int] = field(default_factory=dict)
    last_pattern: str | None = None
    streak: int = 0


@dataclass
class GeneratedSession:
    """A session before it is assigned an id and persisted."""

    mode: SessionMode
    question_ids: list[str]
    recommended_difficulty: int
    time_budget: int  # seconds
    explain: dict[str, Any]


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class _Selector:
    """Mutable state for a single selection run."""

    def __init__(self, pools: dict[str, PatternPool], size: int, max_streak: int):
        self.pools = pools
        self.size = size
        self.max_streak = max_streak
        self.selected: list[str] = []
        self.counts: dict[str, int] = {}
        self.last_pattern: str | None = None
        self.streak = 0

    @property
    def full(self) -> bool:
        return len(self.selected) >= self.size

    def would_repeat(self, pattern_id: str) -> bool:
        return self.streak >= self.max_streak and pattern_id == self.last_pattern

    def consume(self, pattern_id: str, index: int) -> None:
        picked = self.pools[pattern_id].take(index)
        self.selected.append(picked.question_id)
        self.counts[pattern_id] = self.counts.get(pattern_id, 0) + 1
        if pattern_id == self.last_pattern:
            self.streak += 1
        else:
            self.last_pattern = pattern_id
            self.streak = 1


class SessionGenerator:
    """
    Deterministic, weighted, constraint-satisfying session sampler.

    The algorithm:
    1. Build the candidate pool (by tag, or the whole catalog)
    2. Recommend a difficulty from the learner's recent attempts
    3. Seed the generator from the request
    4. Plan a 20/60/20 difficulty quota
    5. Shuffle per-pattern pools
    6. Order patterns by weakness (1 - accuracy)
    7. One pass over the patterns, then weighted fill until full
    """

    def __init__(
        self,
        catalog: CatalogReader,
        time_budgets: TimeBudgetTable = DEFAULT_TIME_BUDGETS,
        config: SessionConfig | None = None,
    ):
        """
        Initialize generator.

        Args:
            catalog: Question catalog to draw from
            time_budgets: Budget table used for the session's total time
            config: SessionConfig or None for defaults
        """
        self.catalog = catalog
        self.time_budgets = time_budgets
        self.config = config or SessionConfig()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def recommended_difficulty(
        self,
        attempts: Sequence[Attempt],
        target_difficulty: int | None,
    ) -> int:
        """
        Explicit target, else the most frequent recent difficulty, else default.

        Ties between equally frequent levels go to the lower level.
        """
        if target_difficulty is not None:
            return target_difficulty
        recent = attempts[-self.config.history_window:] if self.config.history_window > 0 else []
        counts = Counter(a.difficulty for a in recent if a.difficulty is not None)
        if not counts:
            return self.config.default_difficulty
        return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]

    @staticmethod
    def pattern_weights(attempts: Sequence[Attempt]) -> dict[str, float]:
        """Weight per pattern = 1 - historical accuracy, rounded to 4 places."""
        totals: dict[str, list[int]] = {}
        for attempt in attempts:
            entry = totals.setdefault(attempt.pattern_key, [0, 0])
            entry[0] += 1
            if attempt.is_correct:
                entry[1] += 1
        return {
            pattern_id: round(1 - (correct / total if total else 0), 4)
            for pattern_id, (total, correct) in totals.items()
        }

    def candidate_ids(self, mode: SessionMode, tags: Sequence[str]) -> list[str]:
        if not tags:
            if mode is SessionMode.TAG:
                return []
            return self.catalog.get_all_question_ids()
        return self.catalog.question_ids_for_tags(tags)

    def build_candidates(self, question_ids: Sequence[str]) -> list[Candidate]:
        candidates = []
        for question_id in question_ids:
            entry = self.catalog.get_question_index(question_id)
            if entry is None:
                continue
            candidates.append(Candidate(question_id, entry.pattern_key, entry.difficulty))
        return candidates

    def build_difficulty_plan(self, size: int, current: int) -> DifficultyPlan:
        cfg = self.config
        current_count = _round_half_up(size * cfg.current_share)
        low_count = _round_half_up(size * cfg.low_share)
        high_count = size - current_count - low_count
        return DifficultyPlan(
            low=low_count if current - 1 >= cfg.min_difficulty else 0,
            current=current_count,
            high=high_count if current + 1 <= cfg.max_difficulty else 0,
        )

    def time_budget(self, question_ids: Sequence[str], recommended: int) -> int:
        """Total seconds for the selected questions."""
        total = 0
        for question_id in question_ids:
            entry = self.catalog.get_question_index(question_id)
            difficulty = entry.difficulty if entry else None
            total += self.time_budgets.seconds_for(difficulty, fallback=recommended)
        return total

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(
        self,
        candidates: Sequence[Candidate],
        size: int,
        recommended: int,
        weights: dict[str, float],
        seed_parts: Sequence[str],
        preceding: CoreSelection | None = None,
    ) -> CoreSelection:
        """
        Run one weighted, quota-constrained selection.

        Args:
            candidates: Eligible questions
            size: Maximum number of questions to select
            recommended: Difficulty the quota plan is centred on
            weights: Pattern weights (missing patterns default to 1.0)
            seed_parts: Request fields that seed the random source
            preceding: Selection this run continues; its trailing pattern
                streak carries over into the anti-repeat check

        Returns:
            CoreSelection (empty when there are no candidates)
        """
        if not candidates:
            return CoreSelection()

        plan = self.build_difficulty_plan(size, recommended)
        planned = plan.as_dict()
        patterns = list(dict.fromkeys(c.pattern_id for c in candidates))
        weights = dict(weights)
        for pattern_id in patterns:
            weights.setdefault(pattern_id, 1.0)

        rng = Mulberry32.from_parts(seed_parts)

        grouped: dict[str, list[Candidate]] = {}
        for candidate in candidates:
            grouped.setdefault(candidate.pattern_id, []).append(candidate)
        pools = {pattern_id: PatternPool(rng.shuffled(items)) for pattern_id, items in grouped.items()}

        # sorted() is stable, so the shuffle breaks weight ties
        ordered = sorted(rng.shuffled(patterns), key=lambda p: -weights[p])
        selector = _Selector(pools, size, self.config.max_streak)
        if preceding is not None:
            selector.last_pattern = preceding.last_pattern
            selector.streak = preceding.streak

        def target_for(slot: str | None) -> int | None:
            if slot is None:
                return None
            if slot == "low":
                return recommended - 1
            if slot == "high":
                return recommended + 1
            return recommended

        # First pass: one item per pattern, weakest first
        for pattern_id in ordered:
            if selector.full:
                break
            pool = pools[pattern_id]
            if not pool or selector.would_repeat(pattern_id):
                continue
            target = target_for(plan.draw_slot(rng))
            selector.consume(pattern_id, pool.pick_index(target, rng))

        # Fill pass: weighted by pattern until full or exhausted
        while not selector.full:
            target = target_for(plan.draw_slot(rng))
            pattern_id = self._pick_pattern(ordered, pools, weights, rng)
            if pattern_id is None:
                break
            if selector.would_repeat(pattern_id):
                fallback = next(
                    (p for p in ordered if p != selector.last_pattern and pools[p]),
                    None,
                )
                if fallback is not None:
                    pattern_id = fallback
            pool = pools[pattern_id]
            selector.consume(pattern_id, pool.pick_index(target, rng))

        return CoreSelection(
            question_ids=selector.selected,
            pattern_counts=selector.counts,
            pattern_weights=weights,
            difficulty_plan=planned,
            last_pattern=selector.last_pattern,
            streak=selector.streak,
        )

    @staticmethod
    def _pick_pattern(
        ordered: Sequence[str],
        pools: dict[str, PatternPool],
        weights: dict[str, float],
        rng: Mulberry32,
    ) -> str | None:
        available = [p for p in ordered if pools[p]]
        if not available:
            return None
        total = sum(weights.get(p, 0) for p in available)
        if total <= 0:
            return rng.choice(available)
        threshold = rng.random() * total
        for pattern_id in available:
            threshold -= weights.get(pattern_id, 0)
            if threshold <= 0:
                return pattern_id
        return available[-1]

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def generate(
        self,
        mode: SessionMode | str,
        tags: Sequence[str] | None,
        target_difficulty: int | None,
        size: int,
        user_id: str,
        attempts: Sequence[Attempt],
        today: date | None = None,
    ) -> GeneratedSession:
        """
        Generate a practice session.

        Args:
            mode: tag, review or daily
            tags: Tag filter (required non-empty for tag mode)
            target_difficulty: Explicit difficulty, or None to infer it
            size: Desired number of questions
            user_id: Requesting learner
            attempts: The learner's attempt history, oldest first
            today: Calendar date for daily seeding (defaults to today in UTC)

        Returns:
            GeneratedSession with at most ``size`` distinct question ids

        Raises:
            GenerationError: If the candidate pool is empty (NO_CANDIDATES)
        """
        mode = SessionMode(mode)
        tags = list(tags or [])
        recommended = self.recommended_difficulty(attempts, target_difficulty)

        if mode is SessionMode.REVIEW:
            if tags and not self.build_candidates(self.candidate_ids(mode, tags)):
                raise GenerationError(f"No candidates for mode={mode.value} tags={tags}")
            review = self._generate_review(tags, target_difficulty, size, user_id, attempts, recommended)
            if review is not None:
                return review
            fallback = SessionMode.TAG if tags else SessionMode.DAILY
            logger.info(f"Review pool empty for {user_id}; falling back to {fallback.value}")
            return self.generate(fallback, tags, target_difficulty, size, user_id, attempts, today)

        candidates = self.build_candidates(self.candidate_ids(mode, tags))
        if not candidates:
            raise GenerationError(f"No candidates for mode={mode.value} tags={tags}")

        weights = self.pattern_weights(attempts)
        seed_parts = [
            mode.value,
            ",".join(tags),
            "" if target_difficulty is None else str(target_difficulty),
            str(size),
            user_id,
            serialize_weights(weights),
        ]
        if mode is SessionMode.DAILY:
            seed_parts.append((today or datetime.now(UTC).date()).isoformat())

        core = self.select(candidates, size, recommended, weights, seed_parts)
        logger.info(
            f"Generated {mode.value} session for {user_id}: {len(core.question_ids)}/{size} "
            f"questions from {len(candidates)} candidates (difficulty {recommended})"
        )
        return GeneratedSession(
            mode=mode,
            question_ids=core.question_ids,
            recommended_difficulty=recommended,
            time_budget=self.time_budget(core.question_ids, recommended),
            explain={
                "mode": mode.value,
                "tags": tags,
                "difficulty_plan": core.difficulty_plan,
                "pattern_weights": core.pattern_weights,
                "pattern_counts": core.pattern_counts,
            },
        )

    def review_size(self, size: int) -> int:
        if size <= 2:
            return size
        if size <= 4:
            return 2
        return self.config.review_max_size

    def _generate_review(
        self,
        tags: list[str],
        target_difficulty: int | None,
        size: int,
        user_id: str,
        attempts: Sequence[Attempt],
        recommended: int,
    ) -> GeneratedSession | None:
        """Review block from missed patterns, then a main block; None to fall back."""
        cfg = self.config
        wrong_patterns: dict[str, int] = {}
        for attempt in attempts:
            if not attempt.is_correct:
                wrong_patterns[attempt.pattern_key] = wrong_patterns.get(attempt.pattern_key, 0) + 1

        review_difficulty = max(cfg.min_difficulty, recommended - 1)
        review_size = self.review_size(size)
        recent = attempts[-cfg.review_recent_exclusion:] if cfg.review_recent_exclusion > 0 else []
        recent_ids = {a.question_id for a in recent}

        pool_ids = self.candidate_ids(SessionMode.REVIEW, tags)
        review_ids = []
        for question_id in pool_ids:
            if question_id in recent_ids:
                continue
            entry = self.catalog.get_question_index(question_id)
            if entry is None or entry.pattern_key not in wrong_patterns:
                continue
            if entry.difficulty is not None and entry.difficulty != review_difficulty:
                continue
            review_ids.append(question_id)
        review_candidates = self.build_candidates(review_ids)

        if not wrong_patterns or not review_candidates:
            return None

        review = self.select(
            review_candidates,
            review_size,
            review_difficulty,
            dict(wrong_patterns),
            [
                SessionMode.REVIEW.value,
                str(review_difficulty),
                str(review_size),
                user_id,
                serialize_weights(wrong_patterns),
            ],
        )

        remaining = size - len(review.question_ids)
        if remaining <= 0:
            question_ids = review.question_ids
            explain = {
                "mode": SessionMode.REVIEW.value,
                "tags": tags,
                "difficulty_plan": review.difficulty_plan,
                "pattern_weights": review.pattern_weights,
                "pattern_counts": review.pattern_counts,
            }
        else:
            chosen = set(review.question_ids)
            main_candidates = [c for c in self.build_candidates(pool_ids) if c.question_id not in chosen]
            weights = self.pattern_weights(attempts)
            main = self.select(
                main_candidates,
                remaining,
                recommended,
                weights,
                [
                    "main",
                    ",".join(tags),
                    "" if target_difficulty is None else str(target_difficulty),
                    str(remaining),
                    user_id,
                    serialize_weights(weights),
                ],
                preceding=review,
            )
            question_ids = review.question_ids + main.question_ids
            combined_counts = dict(review.pattern_counts)
            for pattern_id, count in main.pattern_counts.items():
                combined_counts[pattern_id] = combined_counts.get(pattern_id, 0) + count
            explain = {
                "mode": SessionMode.REVIEW.value,
                "tags": tags,
                "difficulty_plan": {"review": review.difficulty_plan, "main": main.difficulty_plan},
                "pattern_weights": {"review": review.pattern_weights, "main": main.pattern_weights},
                "pattern_counts": combined_counts,
            }

        logger.info(
            f"Generated review session for {user_id}: {len(review.question_ids)} review + "
            f"{len(question_ids) - len(review.question_ids)} main questions"
        )
        return GeneratedSession(
            mode=SessionMode.REVIEW,
            question_ids=question_ids,
            recommended_difficulty=recommended,
            time_budget=self.time_budget(question_ids, recommended),
            explain=explain,
        )
