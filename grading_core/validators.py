from __future__ import annotations
import math, re
from collections import Counter
from typing import List
from .types import QUESTION_TYPES, CHOICE_TYPES, TEXT_TYPES, Test

# test ids name files on disk
_SAFE_ID = re.compile(r"[A-Za-z0-9_.-]+")


def is_safe_id(value) -> bool:
    return isinstance(value, str) and bool(_SAFE_ID.fullmatch(value)) and value not in (".", "..")


def validate_test(test: Test) -> List[str]:
    """Data-integrity issues in a test definition; empty means clean."""
    issues: List[str] = []
    if not is_safe_id(test.id):
        issues.append(f"test id {test.id!r} must use only letters, digits, dot, dash or underscore")
    if not test.questions:
        issues.append("test has no questions")
    dupes = [qid for qid, n in Counter(q.id for q in test.questions).items() if n > 1]
    for qid in dupes:
        issues.append(f"duplicate question id {qid}")
    for q in test.questions:
        if q.type not in QUESTION_TYPES:
            issues.append(f"{q.id}: unknown type {q.type!r}")
            continue
        if isinstance(q.marks, bool) or not isinstance(q.marks, int) or q.marks <= 0:
            issues.append(f"{q.id}: marks must be a positive integer")
        if q.type in CHOICE_TYPES:
            idx = q.correct_option_index
            if isinstance(idx, bool) or not isinstance(idx, int):
                issues.append(f"{q.id}: missing correct option index")
            elif q.type == "multiple-choice" and not 0 <= idx < len(q.options):
                issues.append(f"{q.id}: correct option index {idx} outside options")
            elif q.type == "true-false" and idx not in (0, 1):
                issues.append(f"{q.id}: true-false answer must be 0 or 1")
        elif q.type in TEXT_TYPES:
            if not isinstance(q.expected_answer, str) or not q.expected_answer.strip():
                issues.append(f"{q.id}: missing expected answer")
        else:
            num = q.correct_number
            if isinstance(num, bool) or not isinstance(num, (int, float)) or not math.isfinite(num):
                issues.append(f"{q.id}: missing correct number")
    return issues
