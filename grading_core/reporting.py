# grading_core/reporting.py
from __future__ import annotations
from typing import Any, Dict, Iterable

from .config import DISTRIBUTION_BUCKETS, NEGATIVE_MARKING, PASS_MARK
from .scoring import round_half_up
from .types import TestResult


def grade_letter(percent: float) -> str:
    s = float(percent)
    if s >= 90: return "A+"
    if s >= 80: return "A"
    if s >= 70: return "B+"
    if s >= 60: return "B"
    if s >= 50: return "C"
    if s >= 40: return "D"
    return "F"


def _attempted(value: Any) -> bool:
    return value is not None and value != ""


def summarize_result(result: TestResult) -> Dict[str, Any]:
    """Counts, grade and pass flag for one result.

    ``percentage`` is the stored marks-based score. The ``negative_marking``
    block (+4 per correct, -1 per wrong) is a display variant only and is
    never written back to the result.
    """
    rows = result.detailed_results
    total_questions = len(rows)
    attempted = sum(1 for d in rows if _attempted(result.answers.get(d.question_id)))
    correct = sum(1 for d in rows if d.is_correct)
    incorrect = max(0, attempted - correct)
    left_out = total_questions - attempted

    neg_obtained = correct * NEGATIVE_MARKING["correct"] + incorrect * NEGATIVE_MARKING["incorrect"]
    neg_total = total_questions * NEGATIVE_MARKING["correct"]

    return {
        "result_id": result.id,
        "test_id": result.test_id,
        "user_id": result.user_id,
        "total_questions": total_questions,
        "attempted": attempted,
        "correct": correct,
        "incorrect": incorrect,
        "left_out": left_out,
        "accuracy": round_half_up(100 * correct / attempted) if attempted else 0,
        "marks_obtained": sum(int(d.marks_awarded) for d in rows),
        "total_marks": sum(int(d.max_marks) for d in rows),
        "percentage": result.score,
        "grade": grade_letter(result.score),
        "passed": result.score >= PASS_MARK,
        "time_spent_seconds": result.time_spent_seconds,
        "negative_marking": {
            "marks_obtained": neg_obtained,
            "total_marks": neg_total,
            "percentage": round_half_up(100 * neg_obtained / neg_total) if neg_total else 0,
        },
    }


def results_overview(results: Iterable[TestResult]) -> Dict[str, Any]:
    scores = [int(r.score) for r in results]
    distribution = {name: 0 for name, _ in DISTRIBUTION_BUCKETS}
    distribution["poor"] = 0
    for s in scores:
        bucket = next((name for name, floor in DISTRIBUTION_BUCKETS if s >= floor), "poor")
        distribution[bucket] += 1
    return {
        "count": len(scores),
        "average": round_half_up(sum(scores) / len(scores)) if scores else 0,
        "highest": max(scores) if scores else 0,
        "distribution": distribution,
    }
