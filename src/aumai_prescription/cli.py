"""CLI entry point for aumai-prescription.

Commands:
    evaluate -- derive intermediate facts and score medicines for a scenario
    advise   -- simulate AI advice for a scenario
    grade    -- grade an answer as best, suboptimal or wrong
    compile  -- convert plan text plus observed symptoms to scenario JSON
    validate -- report malformed rules in a scenario
    tasks    -- list the built-in reference scenarios
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from .advice import AdviceSimulator
from .config import get_settings
from .core import PlanCompiler, RuleEvaluator, RuleSetError, RuleSetValidator, best_conclusions
from .grading import grade_answer
from .models import AssistMode, EvaluationResult, Scenario
from .reference import get_reference_scenario, reference_scenarios


def _load_scenario(scenario_path: Optional[Path], task_id: Optional[int]) -> Scenario:
    """Load a scenario from JSON or the reference set, exiting on failure."""
    if (scenario_path is None) == (task_id is None):
        click.echo("ERROR: pass exactly one of --scenario or --task-id", err=True)
        sys.exit(2)

    try:
        if scenario_path is not None:
            return PlanCompiler().from_json(scenario_path)
        return get_reference_scenario(task_id)
    except (OSError, ValueError, ValidationError, KeyError) as exc:
        click.echo(f"ERROR loading scenario: {exc}", err=True)
        sys.exit(1)


def _evaluate(scenario: Scenario, lenient: bool) -> EvaluationResult:
    settings = get_settings()
    if settings.strict_validation and not lenient:
        try:
            RuleSetValidator().ensure_valid(scenario.rules)
        except RuleSetError as exc:
            click.echo(f"ERROR invalid rule set: {exc}", err=True)
            sys.exit(1)
    return RuleEvaluator(settings).evaluate_scenario(scenario)


scenario_option = click.option(
    "--scenario",
    "scenario_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Path to a scenario JSON file.",
)
task_option = click.option(
    "--task-id",
    default=None,
    type=int,
    help="Use a built-in reference scenario instead of a file.",
)
lenient_option = click.option(
    "--lenient",
    is_flag=True,
    default=False,
    help="Evaluate even if the rule set has duplicate or empty rules.",
)


@click.group()
@click.version_option(package_name="aumai-prescription")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override AUMAI_PRESCRIPTION_LOG_LEVEL.",
)
def main(log_level: Optional[str]) -> None:
    """AumAI Prescription -- treatment-plan rule evaluation CLI."""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command("evaluate")
@scenario_option
@task_option
@lenient_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON output.")
def evaluate_command(
    scenario_path: Optional[Path], task_id: Optional[int], lenient: bool, as_json: bool
) -> None:
    """Derive intermediate facts and score every eligible medicine.

    Example:

        aumai-prescription evaluate --task-id 1
    """
    scenario = _load_scenario(scenario_path, task_id)
    evaluation = _evaluate(scenario, lenient)
    best = best_conclusions(evaluation.final_scores)

    if as_json:
        payload = {
            "task_id": scenario.task_id,
            "derived": sorted(evaluation.derived),
            "final_scores": dict(evaluation.final_scores),
            "used_evidence": {
                name: sorted(facts) for name, facts in evaluation.used_evidence.items()
            },
            "best": best,
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"Task {scenario.task_id}")
    click.echo(f"Observed: {', '.join(scenario.observed) or '-'}")
    click.echo(f"Derived: {', '.join(sorted(evaluation.derived)) or '-'}")
    if not evaluation.final_scores:
        click.echo("No eligible medicine.")
        return
    click.echo("Scores:")
    for name, score in evaluation.final_scores.items():
        marker = "*" if name in best else " "
        evidence = ", ".join(sorted(evaluation.used_evidence[name]))
        click.echo(f" {marker} {name:<16} {score}  [{evidence}]")


@main.command("advise")
@scenario_option
@task_option
@lenient_option
@click.option("--seed", default=None, type=int, help="Seed for the tie-break RNG.")
def advise_command(
    scenario_path: Optional[Path], task_id: Optional[int], lenient: bool, seed: Optional[int]
) -> None:
    """Simulate the AI recommendation for a scenario.

    Example:

        aumai-prescription advise --task-id 3 --seed 7
    """
    scenario = _load_scenario(scenario_path, task_id)
    evaluation = _evaluate(scenario, lenient)
    advisor = AdviceSimulator(seed=seed if seed is not None else get_settings().seed)
    click.echo(advisor.explain(advisor.recommend(scenario, evaluation)))


@main.command("grade")
@scenario_option
@task_option
@lenient_option
@click.option("--answer", default=None, type=str, help="Chosen medicine; omit for no answer.")
def grade_command(
    scenario_path: Optional[Path], task_id: Optional[int], lenient: bool, answer: Optional[str]
) -> None:
    """Grade ANSWER against the best-scoring medicines.

    Example:

        aumai-prescription grade --task-id 1 --answer tranquilizers
    """
    scenario = _load_scenario(scenario_path, task_id)
    evaluation = _evaluate(scenario, lenient)
    record = grade_answer(scenario.task_id, evaluation, answer, AssistMode.NONE)
    best = best_conclusions(evaluation.final_scores)
    click.echo(f"{record.correctness.value.upper()}: {answer or '(no answer)'}")
    click.echo(f"Best: {', '.join(best) or '-'}")


@main.command("compile")
@click.option(
    "--input",
    "input_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to a plan text file.",
)
@click.option(
    "--observed",
    default="",
    type=str,
    help='Comma-separated observed symptoms, e.g. "thirsty,migraine".',
)
@click.option("--task-id", default=0, type=int, help="Task id stored in the scenario.")
@click.option(
    "--output",
    "output_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Destination JSON path. Defaults to <input>.json.",
)
def compile_command(
    input_path: Path, observed: str, task_id: int, output_path: Optional[Path]
) -> None:
    """Compile a plan text file into a scenario JSON file.

    Example:

        aumai-prescription compile --input plan.txt --observed "thirsty,migraine"
    """
    compiler = PlanCompiler()
    try:
        rules = compiler.from_text(input_path.read_text(encoding="utf-8"))
    except RuleSetError as exc:
        click.echo(f"ERROR parsing plan: {exc}", err=True)
        sys.exit(1)

    symptoms = [item.strip() for item in observed.split(",") if item.strip()]
    scenario = Scenario(task_id=task_id, rules=rules, observed=symptoms)

    dest = output_path or input_path.with_suffix(".json")
    compiler.to_json(scenario, dest)

    click.echo(
        f"Compiled {len(scenario.rules)} rule(s) and {len(scenario.observed)} observed symptom(s) to {dest}"
    )


@main.command("validate")
@click.option(
    "--scenario",
    "scenario_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to a scenario JSON file.",
)
def validate_command(scenario_path: Path) -> None:
    """Report duplicate, conflicting or empty rules in a scenario."""
    scenario = _load_scenario(scenario_path, None)
    issues = RuleSetValidator().check(scenario.rules)
    if not issues:
        click.echo(f"OK: {len(scenario.rules)} rule(s)")
        return
    for issue in issues:
        click.echo(f"  {issue}")
    click.echo(f"{len(issues)} issue(s) found", err=True)
    sys.exit(1)


@main.command("tasks")
def tasks_command() -> None:
    """List the built-in reference scenarios."""
    compiler = PlanCompiler()
    scenarios = reference_scenarios()
    click.echo("Treatment plan:")
    for rule in scenarios[0].rules:
        click.echo(f"  {compiler.describe(rule)}")
    for scenario in scenarios:
        click.echo(f"Task {scenario.task_id}: {', '.join(scenario.observed)}")


if __name__ == "__main__":
    main()
