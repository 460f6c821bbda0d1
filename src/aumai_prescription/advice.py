"""Simulated AI advice over an evaluation.

The "AI" is a deterministic max-score lookup. Ties between best
conclusions are broken by an injected :class:`random.Random`, so a seeded
generator reproduces the same advice.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from .core import best_conclusions, rule_holds
from .models import EvaluationResult, Recommendation, Scenario, TreatmentRule

logger = logging.getLogger(__name__)


class AdviceSimulator:
    """Recommend a best-scoring medicine and cite a reason fact.

    Example:
        >>> advisor = AdviceSimulator(seed=3)
        >>> advice = advisor.recommend(scenario, evaluation)  # doctest: +SKIP
    """

    def __init__(
        self, rng: Optional[random.Random] = None, seed: Optional[int] = None
    ) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def recommend(
        self, scenario: Scenario, evaluation: EvaluationResult
    ) -> Recommendation:
        """Pick one conclusion from the tied best set.

        Args:
            scenario: The scenario that was evaluated.
            evaluation: Its evaluation result.

        Returns:
            Recommendation with ``conclusion=None`` when no medicine is eligible.
        """
        candidates = best_conclusions(evaluation.final_scores)
        if not candidates:
            logger.info("No eligible conclusion for task %d", scenario.task_id)
            return Recommendation()

        conclusion = self._rng.choice(candidates)
        reason, is_intermediate = self._reason_for(scenario, evaluation, conclusion)
        logger.debug(
            "Task %d: recommending %r from %d candidate(s)",
            scenario.task_id,
            conclusion,
            len(candidates),
        )
        return Recommendation(
            conclusion=conclusion,
            reason=reason,
            reason_is_intermediate=is_intermediate,
            candidates=candidates,
        )

    def _reason_for(
        self, scenario: Scenario, evaluation: EvaluationResult, conclusion: str
    ) -> tuple[Optional[str], bool]:
        """Prefer a derived intermediate fact from the rule, then an observed one."""
        rule = self._rule_for(scenario, evaluation, conclusion)
        if rule is None:
            return None, False

        for fact in rule.facts():
            if fact in evaluation.derived:
                return fact, True
        observed = set(scenario.observed)
        for fact in rule.facts():
            if fact in observed:
                return fact, False
        return None, False

    def _rule_for(
        self, scenario: Scenario, evaluation: EvaluationResult, conclusion: str
    ) -> Optional[TreatmentRule]:
        # Last eligible match: the rule whose score survived last-write-wins.
        known = set(scenario.observed) | evaluation.derived
        for rule in reversed(scenario.rules):
            if rule.intermediate or rule.result != conclusion:
                continue
            if rule_holds(rule, known):
                return rule
        return None

    def explain(self, recommendation: Recommendation) -> str:
        """Return a one-line, human-readable advice message."""
        if recommendation.conclusion is None:
            return "No medicine can be recommended."
        message = f"AI recommends {recommendation.conclusion}."
        if recommendation.reason is not None:
            kind = "intermediate symptom" if recommendation.reason_is_intermediate else "symptom"
            message += f" Reason: the patient shows the {kind} {recommendation.reason}."
        return message
