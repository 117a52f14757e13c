"""Helpers to export per-question grading rows in JSON/CSV formats."""
from __future__ import annotations

from typing import Any, Dict, List
import csv
import io

from .types import DetailedQuestionResult, TestResult

_FIELDS: tuple[str, ...] = (
    "question_id",
    "user_answer",
    "correct_answer",
    "is_correct",
    "similarity_score",
    "marks_awarded",
    "max_marks",
)


def _normalize_row(row: DetailedQuestionResult) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = getattr(row, key, None)
        if key in {"marks_awarded", "max_marks"}:
            try:
                out[key] = int(val)
            except (TypeError, ValueError):
                out[key] = 0
        elif key == "similarity_score":
            out[key] = None if val is None else round(float(val), 4)
        elif key == "is_correct":
            out[key] = bool(val)
        else:
            out[key] = "" if val is None else val
    return out


def to_json(result: TestResult) -> Dict[str, Any]:
    """Return a JSON-safe payload with one row per question."""

    rows: List[Dict[str, Any]] = [_normalize_row(d) for d in result.detailed_results]
    return {"result_id": result.id, "score": result.score, "rows": rows}


def to_csv(result: TestResult) -> str:
    """Render the per-question rows as CSV with a fixed header."""

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for d in result.detailed_results:
        row = _normalize_row(d)
        if row["similarity_score"] is None:
            row["similarity_score"] = ""
        writer.writerow(row)
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
