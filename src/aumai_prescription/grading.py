"""Answer grading and run summaries."""

from __future__ import annotations

import random
from collections.abc import Iterable
from typing import Optional

from .core import best_conclusions, classify_answer
from .models import AnswerRecord, AssistMode, Correctness, EvaluationResult, ResultSummary

_CONCRETE_MODES = (AssistMode.NONE, AssistMode.BEFORE, AssistMode.AFTER)


def resolve_assist_mode(mode: AssistMode, rng: random.Random) -> AssistMode:
    """Resolve ``MIXED`` to a uniformly chosen concrete mode."""
    if mode is AssistMode.MIXED:
        return rng.choice(_CONCRETE_MODES)
    return mode


def grade_answer(
    task_id: int,
    evaluation: EvaluationResult,
    selected: Optional[str],
    assist: AssistMode = AssistMode.NONE,
    recommendation: Optional[str] = None,
) -> AnswerRecord:
    """Grade one answer and record whether the shown advice was correct.

    Args:
        task_id: Scenario identifier.
        evaluation: The scenario's evaluation result.
        selected: The participant's final answer, ``None`` if none was given.
        assist: Concrete assist mode used for this scenario.
        recommendation: The advised conclusion, if advice was shown.

    Returns:
        A frozen AnswerRecord. ``ai_correct`` is ``None`` when no advice
        was shown.
    """
    if assist is AssistMode.MIXED:
        raise ValueError("resolve MIXED with resolve_assist_mode() before grading")

    ai_correct: Optional[bool] = None
    if assist is not AssistMode.NONE and recommendation is not None:
        ai_correct = recommendation in best_conclusions(evaluation.final_scores)

    return AnswerRecord(
        task_id=task_id,
        assist=assist,
        selected=selected,
        correctness=classify_answer(selected, evaluation.final_scores),
        recommendation=recommendation,
        ai_correct=ai_correct,
    )


def summarize(records: Iterable[AnswerRecord]) -> ResultSummary:
    """Count grades and build the AI-versus-user confusion counts."""
    counts = {
        "total": 0,
        "best": 0,
        "suboptimal": 0,
        "wrong": 0,
        "ai_correct_user_correct": 0,
        "ai_correct_user_wrong": 0,
        "ai_wrong_user_correct": 0,
        "ai_wrong_user_wrong": 0,
    }
    for record in records:
        counts["total"] += 1
        counts[record.correctness.value] += 1

        if record.assist is AssistMode.NONE or record.ai_correct is None:
            continue
        ai = "ai_correct" if record.ai_correct else "ai_wrong"
        user = "user_correct" if record.correctness is Correctness.BEST else "user_wrong"
        counts[f"{ai}_{user}"] += 1

    return ResultSummary(**counts)
