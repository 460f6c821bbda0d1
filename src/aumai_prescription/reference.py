"""Built-in reference scenarios.

All four tasks share one treatment plan and differ only in the observed
symptoms.
"""

from __future__ import annotations

from .models import Scenario, TreatmentRule

_PLAN: tuple[tuple[list[list[str]], str, bool], ...] = (
    ([["shortness of breath", "seizures", "brain fog", "neck pain"]], "broken bones", True),
    (
        [["brain fog", "slurred speech"], ["slurred speech", "seizures", "sleepy"], ["bloating"]],
        "fast heart rate",
        True,
    ),
    ([["seizures", "shortness of breath", "brain fog", "confusion"]], "low blood pressure", True),
    ([["shortness of breath", "sleepy", "aching joints"]], "stimulants", False),
    ([["migraine"], ["thirsty"], ["bloating"], ["low blood pressure"]], "tranquilizers", False),
    ([["shortness of breath", "aching joints", "jaundice", "confusion"]], "antibiotics", False),
    (
        [["broken bones", "seizures"], ["thirsty"], ["vomiting", "aching joints"]],
        "vitamins",
        False,
    ),
    ([["neck pain", "rash", "jaundice"], ["slurred speech", "rash"]], "laxatives", False),
)

_OBSERVED: dict[int, list[str]] = {
    1: ["thirsty", "vomiting", "bloating", "migraine", "brain fog"],
    2: ["seizures", "thirsty", "vomiting", "bloating", "neck pain"],
    3: ["shortness of breath", "sleepy", "jaundice", "rash"],
    4: ["seizures", "slurred speech", "sleepy", "bloating"],
}


def reference_plan() -> list[TreatmentRule]:
    """Return a fresh copy of the shared treatment plan."""
    return [
        TreatmentRule(groups=[list(group) for group in groups], result=result, intermediate=flag)
        for groups, result, flag in _PLAN
    ]


def reference_scenarios() -> list[Scenario]:
    """Return the reference scenarios ordered by task id."""
    return [
        Scenario(task_id=task_id, rules=reference_plan(), observed=list(observed))
        for task_id, observed in sorted(_OBSERVED.items())
    ]


def get_reference_scenario(task_id: int) -> Scenario:
    """Look up one reference scenario.

    Raises:
        KeyError: If *task_id* is not a reference task.
    """
    if task_id not in _OBSERVED:
        raise KeyError(f"unknown reference task: {task_id}")
    return Scenario(task_id=task_id, rules=reference_plan(), observed=list(_OBSERVED[task_id]))
