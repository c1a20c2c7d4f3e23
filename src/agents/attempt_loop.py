"""
Attempt loop -- bounded generate/validate retry with best-attempt tracking.

``AttemptTracker`` is a pure state machine: it never calls a service.  The
orchestrator records each attempt's ideas and validation outcome, asks
whether to stop, feeds :attr:`AttemptTracker.rejection_summary` into the
next generation prompt and finally reads :meth:`final_ideas`.

Ordering of attempts (strictly better replaces the best so far):

1. more valid ideas
2. then more concept-tutorial ideas
3. then a higher composite ``valid*100 + tutorials*10 + mean_score``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from src.config import FusionThresholds
from src.models import GeneratedIdea, ValidationOutcome, ValidationResult

logger = logging.getLogger("AttemptLoop")


@dataclass
class AttemptSnapshot:
    """Everything recorded about one generate/validate attempt."""

    attempt: int
    ideas: List[GeneratedIdea]
    outcome: ValidationOutcome
    concept_tutorial_count: int
    mean_score: float

    @property
    def valid_count(self) -> int:
        return self.outcome.valid_count

    @property
    def composite(self) -> float:
        return self.valid_count * 100 + self.concept_tutorial_count * 10 + self.mean_score

    def rank_key(self) -> Tuple[int, int, float]:
        return (self.valid_count, self.concept_tutorial_count, self.composite)

    def to_debug(self) -> dict:
        return {
            "attempt": self.attempt,
            "generatedCount": len(self.ideas),
            "conceptTutorialCount": self.concept_tutorial_count,
            "validCount": self.valid_count,
            "rejectedCount": self.outcome.rejected_count,
            "meanScore": round(self.mean_score, 2),
            "topRejectionReasons": list(self.outcome.top_rejection_reasons),
        }


def mean_overall_score(results: List[ValidationResult]) -> float:
    if not results:
        return 0.0
    return sum(r.scores.overall_score for r in results) / len(results)


def count_concept_tutorials(ideas: List[GeneratedIdea]) -> int:
    return sum(1 for idea in ideas if idea.counts_as_concept_tutorial)


def is_better(candidate: AttemptSnapshot, best: Optional[AttemptSnapshot]) -> bool:
    """True when ``candidate`` strictly outranks ``best``."""
    if best is None:
        return True
    return candidate.rank_key() > best.rank_key()


class AttemptTracker:
    """
    Track generate/validate attempts for one pipeline run.

    Args:
        thresholds: ``max_attempts``, ``min_valid_ideas``, ``trend_idea_min``
            and ``ideas_per_attempt`` are read from here.

    Usage::

        tracker = AttemptTracker(thresholds)
        while True:
            ideas = await generate(rejection_summary=tracker.rejection_summary)
            outcome = await validate(ideas)
            tracker.record(ideas, outcome)
            if not tracker.should_continue():
                break
        final = tracker.final_ideas()
    """

    def __init__(self, thresholds: Optional[FusionThresholds] = None) -> None:
        self.thresholds = thresholds or FusionThresholds()
        self.history: List[AttemptSnapshot] = []
        self.best: Optional[AttemptSnapshot] = None

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @property
    def attempts(self) -> int:
        return len(self.history)

    @property
    def next_attempt(self) -> int:
        return self.attempts + 1

    @property
    def latest(self) -> Optional[AttemptSnapshot]:
        return self.history[-1] if self.history else None

    def record(self, ideas: List[GeneratedIdea], outcome: ValidationOutcome) -> AttemptSnapshot:
        """Record one attempt and update the best attempt if it is strictly better."""
        snapshot = AttemptSnapshot(
            attempt=self.next_attempt,
            ideas=list(ideas),
            outcome=outcome,
            concept_tutorial_count=count_concept_tutorials(ideas),
            mean_score=mean_overall_score(outcome.results),
        )
        self.history.append(snapshot)
        if is_better(snapshot, self.best):
            self.best = snapshot
            logger.info(
                "[ATTEMPT] Attempt %d is the new best (%d valid, %d tutorials)",
                snapshot.attempt,
                snapshot.valid_count,
                snapshot.concept_tutorial_count,
            )
        return snapshot

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def is_satisfied(self, snapshot: Optional[AttemptSnapshot] = None) -> bool:
        """Enough valid ideas AND enough concept tutorials (latest attempt by default)."""
        snapshot = snapshot or self.latest
        if snapshot is None:
            return False
        return (
            snapshot.valid_count >= self.thresholds.min_valid_ideas
            and snapshot.concept_tutorial_count >= self.thresholds.trend_idea_min
        )

    def has_attempts_left(self) -> bool:
        return self.attempts < self.thresholds.max_attempts

    def should_continue(self) -> bool:
        return not self.is_satisfied() and self.has_attempts_left()

    @property
    def rejection_summary(self) -> Optional[str]:
        """Top rejection reasons of the latest attempt, joined with ``" | "``."""
        if self.latest is None or not self.latest.outcome.top_rejection_reasons:
            return None
        return " | ".join(self.latest.outcome.top_rejection_reasons)

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    @property
    def best_results(self) -> List[ValidationResult]:
        return list(self.best.outcome.results) if self.best else []

    @property
    def rejected_count(self) -> int:
        return sum(1 for r in self.best_results if not r.is_valid)

    def final_ideas(self) -> List[GeneratedIdea]:
        """
        Ideas to return from the best attempt.

        Top valid ideas when enough are valid; otherwise the top ideas by
        composite regardless of validity; otherwise the raw generated ideas.
        """
        limit = self.thresholds.ideas_per_attempt
        results = self.best_results
        valid = [r for r in results if r.is_valid]
        if len(valid) >= self.thresholds.min_valid_ideas:
            return [r.idea for r in valid[:limit]]
        ideas = [r.idea for r in results[:limit]]
        if not ideas and self.best is not None:
            ideas = self.best.ideas[:limit]
        return ideas

    @property
    def degraded_mode(self) -> bool:
        """True when the best attempt missed the valid or tutorial minimum."""
        if self.best is None:
            return True
        return (
            self.best.valid_count < self.thresholds.min_valid_ideas
            or self.best.concept_tutorial_count < self.thresholds.trend_idea_min
        )


__all__ = [
    "AttemptSnapshot",
    "AttemptTracker",
    "count_concept_tutorials",
    "is_better",
    "mean_overall_score",
]
