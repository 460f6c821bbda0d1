"""Core treatment-plan rule engine.

Provides:
- derive_closure / score_conclusions / evaluate: forward chaining over
  AND/OR rule groups and best-evidence scoring of final conclusions.
- best_conclusions / classify_answer: consumers of the score map.
- RuleEvaluator: settings-aware evaluator used by the CLI.
- PlanCompiler: parse/serialise plan text and scenario JSON.
- RuleSetValidator: report malformed rule sets.
"""

from __future__ import annotations

import functools
import itertools
import json
import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .config import EngineSettings, get_settings
from .models import Correctness, EvaluationResult, Scenario, TreatmentRule

logger = logging.getLogger(__name__)


class RuleSetError(ValueError):
    """Raised when a rule set or plan text is malformed."""

    def __init__(self, issues: Sequence[str]) -> None:
        self.issues = list(issues)
        super().__init__("; ".join(self.issues))


# ---------------------------------------------------------------------------
# Forward chaining
# ---------------------------------------------------------------------------


def rule_holds(rule: TreatmentRule, known: frozenset[str] | set[str]) -> bool:
    """True when every group has a known fact. A rule without groups never holds."""
    if not rule.groups:
        return False
    return all(any(fact in known for fact in group) for group in rule.groups)


def derive_closure(
    rules: Sequence[TreatmentRule], observed: Iterable[str]
) -> frozenset[str]:
    """Derive every intermediate fact reachable from *observed*.

    Passes over the intermediate rules repeat until a full pass adds
    nothing. Each pass either adds a fact or ends the loop, so at most
    one pass per intermediate rule (plus the final empty pass) runs.

    Args:
        rules: Ordered rule list; final rules are ignored here.
        observed: Directly observed facts.

    Returns:
        The set of derived intermediate facts.

    Example:
        >>> rules = [TreatmentRule(groups=[["a"]], result="x", intermediate=True)]
        >>> sorted(derive_closure(rules, {"a"}))
        ['x']
    """
    known: set[str] = set(observed)
    derived: set[str] = set()

    changed = True
    while changed:
        changed = False
        for rule in rules:
            if not rule.intermediate or rule.result in derived:
                continue
            if rule_holds(rule, known):
                derived.add(rule.result)
                known.add(rule.result)
                changed = True
                logger.debug("Derived intermediate fact %r", rule.result)

    return frozenset(derived)


# ---------------------------------------------------------------------------
# Best-evidence scoring
# ---------------------------------------------------------------------------


def _available_groups(
    rule: TreatmentRule, known: frozenset[str]
) -> Optional[list[list[str]]]:
    """Known facts per group, or None when some group has none."""
    if not rule.groups:
        return None
    available: list[list[str]] = []
    for group in rule.groups:
        facts = [fact for fact in group if fact in known]
        if not facts:
            return None
        available.append(facts)
    return available


def _best_combination(
    available: list[list[str]], observed: frozenset[str]
) -> tuple[int, frozenset[str]]:
    """Fold over one-pick-per-group combinations, keeping the first best.

    Combinations come out of ``itertools.product`` in group order, then
    in-group order, so a later combination replaces the current best only
    when its score is strictly higher.
    """

    def keep_best(
        best: tuple[int, frozenset[str]], combination: tuple[str, ...]
    ) -> tuple[int, frozenset[str]]:
        picked = frozenset(combination)
        score = len(picked & observed)
        return (score, picked) if score > best[0] else best

    combinations = itertools.product(*available)
    first = frozenset(next(combinations))
    return functools.reduce(keep_best, combinations, (len(first & observed), first))


def score_conclusions(
    rules: Sequence[TreatmentRule],
    observed: Iterable[str],
    derived: Iterable[str],
    warn_threshold: Optional[int] = None,
) -> tuple[dict[str, int], dict[str, frozenset[str]]]:
    """Score every eligible final conclusion by directly observed evidence.

    A conclusion is eligible when each group of its rule has at least one
    observed or derived fact. Its score is the highest count of distinct
    observed facts over all one-pick-per-group combinations; derived facts
    satisfy groups but never add to the score.

    The enumeration is exponential in the number of groups. When
    *warn_threshold* is given, rules whose combination count exceeds it are
    logged at WARNING.

    Args:
        rules: Ordered rule list; intermediate rules are ignored here.
        observed: Directly observed facts.
        derived: Facts returned by :func:`derive_closure`.
        warn_threshold: Optional combination count that triggers a warning.

    Returns:
        ``(final_scores, used_evidence)``. Ineligible conclusions are absent
        from both maps. When two final rules share a result, the later
        eligible one wins.
    """
    observed_set = frozenset(observed)
    known = observed_set | frozenset(derived)
    final_scores: dict[str, int] = {}
    used_evidence: dict[str, frozenset[str]] = {}

    for rule in rules:
        if rule.intermediate:
            continue
        available = _available_groups(rule, known)
        if available is None:
            logger.debug("Conclusion %r is not eligible", rule.result)
            continue

        if warn_threshold is not None:
            size = math.prod(len(group) for group in available)
            if size > warn_threshold:
                logger.warning(
                    "Conclusion %r enumerates %d evidence combinations (threshold %d)",
                    rule.result,
                    size,
                    warn_threshold,
                )

        if rule.result in final_scores:
            logger.warning(
                "Duplicate conclusion %r: later rule overrides the earlier score",
                rule.result,
            )

        score, used = _best_combination(available, observed_set)
        final_scores[rule.result] = score
        used_evidence[rule.result] = used

    return final_scores, used_evidence


# ---------------------------------------------------------------------------
# Evaluation entry points
# ---------------------------------------------------------------------------


def _engine_settings() -> EngineSettings:
    """Environment settings, or the defaults when the environment is invalid."""
    try:
        return get_settings()
    except ValidationError as exc:
        logger.warning("Ignoring invalid engine settings: %s", exc)
        return EngineSettings.model_construct()


class RuleEvaluator:
    """Evaluate treatment plans with the configured engine settings.

    Holds no state between calls: every evaluation builds a fresh,
    immutable :class:`EvaluationResult`.

    Example:
        >>> evaluator = RuleEvaluator()
        >>> rules = [TreatmentRule(groups=[["a", "b"]], result="m")]
        >>> dict(evaluator.evaluate(rules, {"a"}).final_scores)
        {'m': 1}
    """

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self._settings = settings or _engine_settings()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def evaluate(
        self, rules: Sequence[TreatmentRule], observed: Iterable[str]
    ) -> EvaluationResult:
        """Run forward chaining and scoring over *rules* and *observed*.

        Observed names are whitespace-stripped like rule facts; blank names
        are dropped.
        """
        observed_set = frozenset(fact.strip() for fact in observed if fact.strip())
        derived = derive_closure(rules, observed_set)
        final_scores, used_evidence = score_conclusions(
            rules,
            observed_set,
            derived,
            warn_threshold=self._settings.combination_warning_threshold,
        )
        logger.info(
            "Evaluated %d rule(s): %d derived, %d eligible conclusion(s)",
            len(rules),
            len(derived),
            len(final_scores),
        )
        return EvaluationResult(
            derived=derived,
            final_scores=final_scores,
            used_evidence=used_evidence,
        )

    def evaluate_scenario(self, scenario: Scenario) -> EvaluationResult:
        """Evaluate a :class:`Scenario`'s plan against its observed symptoms."""
        return self.evaluate(scenario.rules, scenario.observed)


def evaluate(
    rules: Sequence[TreatmentRule], observed: Iterable[str]
) -> EvaluationResult:
    """Evaluate *rules* against *observed* with the default settings."""
    return RuleEvaluator().evaluate(rules, observed)


# ---------------------------------------------------------------------------
# Score consumers
# ---------------------------------------------------------------------------


def best_conclusions(final_scores: Mapping[str, int]) -> list[str]:
    """Return every conclusion tied at the maximum score, in map order.

    The caller owns the tie-break policy; an empty map yields an empty list.
    """
    if not final_scores:
        return []
    best_score = max(final_scores.values())
    return [name for name, score in final_scores.items() if score == best_score]


def classify_answer(
    choice: Optional[str], final_scores: Mapping[str, int]
) -> Correctness:
    """Grade *choice* as best, suboptimal or wrong.

    Args:
        choice: The selected conclusion, or ``None`` for no answer.
        final_scores: Score map from an evaluation.

    Returns:
        ``BEST`` if the choice is in the tied best set, ``SUBOPTIMAL`` if it
        is eligible with a positive score, ``WRONG`` otherwise.
    """
    if choice is None:
        return Correctness.WRONG
    if choice in best_conclusions(final_scores):
        return Correctness.BEST
    if final_scores.get(choice, 0) > 0:
        return Correctness.SUBOPTIMAL
    return Correctness.WRONG


# ---------------------------------------------------------------------------
# PlanCompiler
# ---------------------------------------------------------------------------


class PlanCompiler:
    """Parse and serialise treatment-plan text.

    Rule syntax (one per line):
        result :- a | b, c.                  # final rule: (a or b) and c
        result :- a, b. % intermediate       # intermediate rule
        % comment                            # ignored

    Commas separate AND-groups and ``|`` separates OR-alternatives, so fact
    names may contain spaces.

    Example:
        >>> compiler = PlanCompiler()
        >>> rules = compiler.from_text("vitamins :- thirsty, vomiting | aching joints.")
        >>> rules[0].groups
        [['thirsty'], ['vomiting', 'aching joints']]
    """

    _RULE_PATTERN = re.compile(r"^(.+?)\s*:-\s*(.*?)\s*\.\s*(%.*)?$")
    _INTERMEDIATE_PATTERN = re.compile(r"%\s*intermediate\b", re.IGNORECASE)

    def _split_body(self, body_raw: str) -> list[list[str]]:
        """Split a rule body into AND-groups of OR-alternatives."""
        if not body_raw.strip():
            return []
        return [
            [alt.strip() for alt in part.split("|") if alt.strip()]
            for part in body_raw.split(",")
        ]

    def from_text(self, text: str) -> list[TreatmentRule]:
        """Parse plan text into an ordered rule list.

        Raises:
            RuleSetError: If a non-comment line is not a rule.
        """
        rules: list[TreatmentRule] = []
        errors: list[str] = []

        for number, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("%"):
                continue

            match = self._RULE_PATTERN.match(line)
            if not match:
                errors.append(f"line {number}: cannot parse {line!r}")
                continue

            comment = match.group(3) or ""
            rules.append(
                TreatmentRule(
                    groups=self._split_body(match.group(2)),
                    result=match.group(1),
                    intermediate=bool(self._INTERMEDIATE_PATTERN.search(comment)),
                )
            )

        if errors:
            raise RuleSetError(errors)
        return rules

    def to_text(self, rules: Sequence[TreatmentRule]) -> str:
        """Serialise rules back to plan text."""
        lines: list[str] = []
        for rule in rules:
            body = ", ".join(" | ".join(group) for group in rule.groups)
            line = f"{rule.result} :- {body}."
            if rule.intermediate:
                line += " % intermediate"
            lines.append(line)
        return "\n".join(lines)

    def describe(self, rule: TreatmentRule) -> str:
        """Human-readable form, e.g. ``(a or b) and (c) -> result``."""
        groups = " and ".join(f"({' or '.join(group)})" for group in rule.groups)
        return f"{groups} -> {rule.result}"

    def from_json(self, path: Path) -> Scenario:
        """Load a Scenario from a JSON file."""
        data = json.loads(path.read_text(encoding="utf-8"))
        return Scenario.model_validate(data)

    def to_json(self, scenario: Scenario, path: Path) -> None:
        """Write a Scenario to a JSON file."""
        path.write_text(scenario.model_dump_json(indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# RuleSetValidator
# ---------------------------------------------------------------------------


class RuleSetValidator:
    """Report rule sets the engine would evaluate ambiguously.

    The engine tolerates all of these; the validator exists so callers can
    refuse them up front.
    """

    def check(self, rules: Sequence[TreatmentRule]) -> list[str]:
        """Return a list of human-readable issues, empty when the set is clean."""
        issues: list[str] = []
        seen: dict[str, bool] = {}

        for index, rule in enumerate(rules):
            label = f"rule {index} ({rule.result!r})"
            if not rule.groups:
                issues.append(f"{label} has no groups and can never hold")
            for position, group in enumerate(rule.groups):
                if not group:
                    issues.append(f"{label} has an empty group at position {position}")

            if rule.result in seen:
                if seen[rule.result] == rule.intermediate:
                    issues.append(f"{label} duplicates an earlier result")
                else:
                    issues.append(
                        f"{label} is used as both an intermediate fact and a final conclusion"
                    )
            else:
                seen[rule.result] = rule.intermediate

        return issues

    def ensure_valid(self, rules: Sequence[TreatmentRule]) -> None:
        """Raise :class:`RuleSetError` when :meth:`check` reports anything."""
        issues = self.check(rules)
        if issues:
            raise RuleSetError(issues)
