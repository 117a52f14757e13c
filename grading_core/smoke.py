from __future__ import annotations

import json
import logging
from typing import Dict

from .engine import grade_attempt_sync
from .question_bank import load_sample_test
from .reporting import summarize_result
from .similarity import backend_in_use
from .types import SubmittedAnswer


_CANNED_ANSWERS: Dict[str, SubmittedAnswer] = {
    "q1": 1,
    "q2": 0,
    "q3": "oxygen is released by plants",
    "q4": "au",
    "q5": "3.14159",
}


def run_smoke() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    test = load_sample_test()
    logging.info("Grading sample test %s with backend=%s", test.id, backend_in_use())

    result = grade_attempt_sync(test, "smoke-student", dict(_CANNED_ANSWERS), time_spent_seconds=120)
    for row in result.detailed_results:
        logging.info(
            "%s correct=%s marks=%d/%d similarity=%s",
            row.question_id,
            row.is_correct,
            row.marks_awarded,
            row.max_marks,
            row.similarity_score,
        )
    summary = summarize_result(result)
    logging.info("Score %d%% grade %s", result.score, summary["grade"])
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    run_smoke()
