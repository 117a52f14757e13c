"""Review requests and single-question mark overrides.

A request starts ``pending`` and is resolved exactly once, to ``approved`` or
``rejected``. An approval may carry new marks, applied to one entry of the
persisted result via :func:`apply_override`. Overrides never touch
``is_correct``, other entries, or the aggregate ``score``; callers that want
the percentage refreshed call :func:`recompute_score` themselves.
"""
from __future__ import annotations
from typing import Iterable, Optional
import logging, uuid

from .engine import utcnow_iso
from .errors import InvalidStateError, ValidationError
from .scoring import round_half_up
from .types import DetailedQuestionResult, ReviewRequest, TestResult

log = logging.getLogger(__name__)

DECISIONS = ("approved", "rejected")
_OPEN_STATES = ("pending", "approved")


def apply_override(result: TestResult, question_id: str, new_marks: int) -> DetailedQuestionResult:
    entry = result.entry(question_id)
    if entry is None:
        raise ValidationError(f"question {question_id} is not part of result {result.id}")
    if isinstance(new_marks, bool) or not isinstance(new_marks, int):
        raise ValidationError(f"new marks must be an integer, got {new_marks!r}")
    if not 0 <= new_marks <= int(entry.max_marks):
        raise ValidationError(
            f"new marks {new_marks} outside 0..{entry.max_marks} for question {question_id}"
        )
    log.info("override %s/%s: %d -> %d", result.id, question_id, entry.marks_awarded, new_marks)
    entry.marks_awarded = new_marks
    return entry


def recompute_score(result: TestResult) -> int:
    total = sum(int(d.max_marks) for d in result.detailed_results)
    if total <= 0:
        result.score = 0
    else:
        result.score = round_half_up(100 * sum(int(d.marks_awarded) for d in result.detailed_results) / total)
    return result.score


def create_review_request(
    result: TestResult,
    question_id: str,
    user_id: str,
    reason: str,
    existing: Iterable[ReviewRequest] = (),
) -> ReviewRequest:
    if result.entry(question_id) is None:
        raise ValidationError(f"question {question_id} is not part of result {result.id}")
    if user_id != result.user_id:
        raise ValidationError("only the student who took the test can request a review")
    if not (reason or "").strip():
        raise ValidationError("a reason is required")
    for other in existing:
        if (other.test_result_id == result.id and other.question_id == question_id
                and other.status in _OPEN_STATES):
            raise ValidationError(
                f"question {question_id} already has a {other.status} review request ({other.id})"
            )
    return ReviewRequest(
        id=str(uuid.uuid4()),
        test_result_id=result.id,
        question_id=question_id,
        user_id=user_id,
        reason=reason.strip(),
        status="pending",
        created_at=utcnow_iso(),
    )


def resolve_review_request(
    request: ReviewRequest,
    decision: str,
    reviewer_id: str,
    result: Optional[TestResult] = None,
    notes: Optional[str] = None,
    new_marks: Optional[int] = None,
    others: Iterable[ReviewRequest] = (),
) -> Optional[DetailedQuestionResult]:
    """Resolve a pending request; returns the patched entry when marks changed.

    All checks run before any mutation, so a failure leaves both the request
    (still ``pending``) and the result untouched.
    """
    if request.status != "pending":
        raise InvalidStateError(f"review request {request.id} is already {request.status}")
    if decision not in DECISIONS:
        raise ValidationError(f"decision must be one of {', '.join(DECISIONS)}")
    if not (reviewer_id or "").strip():
        raise ValidationError("a reviewer is required")
    if decision == "approved":
        for other in others:
            if (other.id != request.id and other.test_result_id == request.test_result_id
                    and other.question_id == request.question_id and other.status == "approved"):
                raise InvalidStateError(
                    f"question {request.question_id} already has an approved review request ({other.id})"
                )

    patched = None
    if new_marks is not None:
        if decision != "approved":
            raise ValidationError("new marks can only accompany an approval")
        if result is None or result.id != request.test_result_id:
            raise ValidationError(f"result {request.test_result_id} is required to apply new marks")
        patched = apply_override(result, request.question_id, new_marks)

    request.status = decision
    request.reviewed_by = reviewer_id
    request.reviewed_at = utcnow_iso()
    request.review_notes = (notes or "").strip() or None
    request.new_marks = new_marks
    return patched
