"""Pydantic v2 models for the treatment-plan rule engine."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class TreatmentRule(BaseModel):
    """A propositional rule made of AND-ed groups of OR-ed facts.

    The rule holds when every group has at least one fact that is observed
    or derived. Group order and the order of facts inside a group define
    the enumeration order used for evidence scoring.

    Attributes:
        groups: Ordered AND-list of OR-groups of fact names.
        result: The fact produced when the rule holds.
        intermediate: ``True`` for intermediate symptoms, ``False`` for
            final conclusions (medicines).

    Example:
        >>> rule = TreatmentRule(groups=[["brain fog", "slurred speech"], ["bloating"]],
        ...                      result="fast heart rate", intermediate=True)
    """

    model_config = ConfigDict(frozen=True)

    groups: list[list[str]] = Field(default_factory=list)
    result: str = Field(..., min_length=1)
    intermediate: bool = False

    @field_validator("result")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        """Strip surrounding whitespace from the result fact."""
        return value.strip()

    @field_validator("groups")
    @classmethod
    def strip_group_elements(cls, value: list[list[str]]) -> list[list[str]]:
        """Strip whitespace from each fact and drop repeats inside a group."""
        cleaned: list[list[str]] = []
        for group in value:
            seen: list[str] = []
            for fact in group:
                fact = fact.strip()
                if fact and fact not in seen:
                    seen.append(fact)
            cleaned.append(seen)
        return cleaned

    def facts(self) -> list[str]:
        """Every fact mentioned in the groups, in enumeration order."""
        return [fact for group in self.groups for fact in group]


class Scenario(BaseModel):
    """A treatment plan together with the symptoms observed on one patient.

    Attributes:
        task_id: Identifier of the scenario.
        rules: Ordered list of rules forming the treatment plan.
        observed: Symptoms given as directly observed.
    """

    model_config = ConfigDict(frozen=True)

    task_id: int = 0
    rules: list[TreatmentRule] = Field(default_factory=list)
    observed: list[str] = Field(default_factory=list)

    @field_validator("observed")
    @classmethod
    def strip_observed(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]

    def final_results(self) -> list[str]:
        """Distinct final conclusions named by the plan, in rule order."""
        names: list[str] = []
        for rule in self.rules:
            if not rule.intermediate and rule.result not in names:
                names.append(rule.result)
        return names

    def intermediate_results(self) -> list[str]:
        """Distinct intermediate facts named by the plan, in rule order."""
        names: list[str] = []
        for rule in self.rules:
            if rule.intermediate and rule.result not in names:
                names.append(rule.result)
        return names


class EvaluationResult(BaseModel):
    """Outcome of evaluating a rule set against observed facts.

    Attributes:
        derived: Intermediate facts proven true by forward chaining.
        final_scores: Best evidence score for every eligible conclusion.
            A conclusion missing from this map is not achievable.
        used_evidence: The fact combination that achieved each score.

    Both maps are read-only views.

    Example:
        >>> res = EvaluationResult(derived=frozenset({"broken bones"}),
        ...                        final_scores={"vitamins": 2},
        ...                        used_evidence={"vitamins": frozenset({"thirsty", "vomiting"})})
    """

    model_config = ConfigDict(frozen=True)

    derived: frozenset[str] = Field(default_factory=frozenset)
    final_scores: Mapping[str, int] = Field(default_factory=dict, validate_default=True)
    used_evidence: Mapping[str, frozenset[str]] = Field(
        default_factory=dict, validate_default=True
    )

    @field_validator("final_scores", "used_evidence")
    @classmethod
    def read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        """Copy the map into a read-only view."""
        return MappingProxyType(dict(value))

    @field_serializer("final_scores", "used_evidence")
    def plain_dict(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)


class Correctness(str, Enum):
    """Grade of a chosen conclusion against the evaluation scores."""

    BEST = "best"
    SUBOPTIMAL = "suboptimal"
    WRONG = "wrong"


class AssistMode(str, Enum):
    """When simulated advice is shown to the participant."""

    NONE = "none"
    BEFORE = "before"
    AFTER = "after"
    MIXED = "mixed"


class Recommendation(BaseModel):
    """Simulated advice for one scenario.

    Attributes:
        conclusion: Recommended medicine, or ``None`` when nothing is eligible.
        reason: Fact cited as the reason for the recommendation.
        reason_is_intermediate: Whether the reason is a derived intermediate fact.
        candidates: The full tied best set the pick was drawn from.
    """

    model_config = ConfigDict(frozen=True)

    conclusion: Optional[str] = None
    reason: Optional[str] = None
    reason_is_intermediate: bool = False
    candidates: list[str] = Field(default_factory=list)


class AnswerRecord(BaseModel):
    """A graded answer to a single scenario."""

    model_config = ConfigDict(frozen=True)

    task_id: int
    assist: AssistMode = AssistMode.NONE
    selected: Optional[str] = None
    correctness: Correctness = Correctness.WRONG
    recommendation: Optional[str] = None
    ai_correct: Optional[bool] = None


class ResultSummary(BaseModel):
    """Aggregate grading over a run of answers.

    The confusion counts only cover answers where advice was shown and a
    recommendation existed; a user answer counts as correct only when it
    was graded ``best``.
    """

    total: int = Field(default=0, ge=0)
    best: int = Field(default=0, ge=0)
    suboptimal: int = Field(default=0, ge=0)
    wrong: int = Field(default=0, ge=0)
    ai_correct_user_correct: int = Field(default=0, ge=0)
    ai_correct_user_wrong: int = Field(default=0, ge=0)
    ai_wrong_user_correct: int = Field(default=0, ge=0)
    ai_wrong_user_wrong: int = Field(default=0, ge=0)
