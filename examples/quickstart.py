"""Quickstart examples for aumai-prescription.

Run this file directly to verify your installation and see the engine in action:

    python examples/quickstart.py

This file demonstrates:
  1. Evaluating the built-in reference scenarios
  2. Parsing a treatment plan from text
  3. Simulating seeded AI advice with ties
  4. Grading a run of answers
"""

from __future__ import annotations

import random

from aumai_prescription.advice import AdviceSimulator
from aumai_prescription.core import PlanCompiler, best_conclusions, evaluate
from aumai_prescription.grading import grade_answer, resolve_assist_mode, summarize
from aumai_prescription.models import AssistMode, Scenario
from aumai_prescription.reference import reference_scenarios


# ---------------------------------------------------------------------------
# Demo 1: Reference scenarios
# ---------------------------------------------------------------------------


def demo_reference_tasks() -> None:
    """Evaluate the four reference tasks and print their scores."""
    print("=" * 60)
    print("Demo 1: Reference Scenarios")
    print("=" * 60)

    for scenario in reference_scenarios():
        result = evaluate(scenario.rules, scenario.observed)
        best = best_conclusions(result.final_scores)
        print(f"Task {scenario.task_id}: observed {', '.join(scenario.observed)}")
        print(f"  derived: {', '.join(sorted(result.derived)) or '-'}")
        for name, score in result.final_scores.items():
            marker = "*" if name in best else " "
            evidence = ", ".join(sorted(result.used_evidence[name]))
            print(f"  {marker} {name:<14} {score}  [{evidence}]")
    print()


# ---------------------------------------------------------------------------
# Demo 2: Plan text
# ---------------------------------------------------------------------------


def demo_plan_text() -> Scenario:
    """Parse a small plan and show the human-readable rules."""
    print("=" * 60)
    print("Demo 2: Plan Text")
    print("=" * 60)

    plan = """
% intermediate symptoms
fever :- chills | sweating. % intermediate

% medicines
antipyretics :- fever, headache | chills.
antihistamines :- rash, sneezing | headache.
"""
    compiler = PlanCompiler()
    rules = compiler.from_text(plan)
    for rule in rules:
        print(f"  {compiler.describe(rule)}")

    scenario = Scenario(task_id=100, rules=rules, observed=["chills", "headache", "rash"])
    result = evaluate(scenario.rules, scenario.observed)
    print(f"  scores: {result.final_scores}")
    print()
    return scenario


# ---------------------------------------------------------------------------
# Demo 3: Seeded advice
# ---------------------------------------------------------------------------


def demo_advice(scenario: Scenario) -> None:
    """The same seed always breaks ties the same way."""
    print("=" * 60)
    print("Demo 3: Seeded Advice")
    print("=" * 60)

    result = evaluate(scenario.rules, scenario.observed)
    for seed in (1, 2, 3):
        advisor = AdviceSimulator(seed=seed)
        print(f"  seed={seed}: {advisor.explain(advisor.recommend(scenario, result))}")
    print()


# ---------------------------------------------------------------------------
# Demo 4: Grading
# ---------------------------------------------------------------------------


def demo_grading() -> None:
    """Grade one answer per reference task under mixed assistance."""
    print("=" * 60)
    print("Demo 4: Grading")
    print("=" * 60)

    rng = random.Random(7)
    advisor = AdviceSimulator(rng=rng)
    answers = {1: "tranquilizers", 2: "laxatives", 3: "stimulants", 4: None}
    records = []

    for scenario in reference_scenarios():
        result = evaluate(scenario.rules, scenario.observed)
        assist = resolve_assist_mode(AssistMode.MIXED, rng)
        recommendation = None
        if assist is not AssistMode.NONE:
            recommendation = advisor.recommend(scenario, result).conclusion
        record = grade_answer(
            scenario.task_id, result, answers[scenario.task_id], assist, recommendation
        )
        records.append(record)
        print(f"  task {record.task_id} [{record.assist.value}]: {record.correctness.value}")

    print(f"  summary: {summarize(records).model_dump()}")
    print()


def main() -> None:
    demo_reference_tasks()
    scenario = demo_plan_text()
    demo_advice(scenario)
    demo_grading()


if __name__ == "__main__":
    main()
