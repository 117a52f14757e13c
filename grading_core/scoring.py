from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Awaitable, Callable, Dict, Optional
import logging, math

from .config import CORRECT_THRESHOLD, PARTIAL_CREDIT_TIERS, REAL_NUMBER_DECIMALS
from .errors import DataIntegrityError
from .heuristics import normalize_text
from .similarity import SimilarityFn, similarity
from .types import QUESTION_TYPES, DetailedQuestionResult, Question, SubmittedAnswer

log = logging.getLogger(__name__)


def round_half_up(x: float) -> int:
    return int(Decimal(str(x)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# wide enough for any finite float quantized to a few decimals
_DECIMAL_PREC = 400


def _round_decimals(x: float, places: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PREC
        return Decimal(str(x)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def partial_credit_marks(score: float, marks: int) -> int:
    """Tiered credit for short answers; non-decreasing in ``score``."""
    for floor, fraction in PARTIAL_CREDIT_TIERS:
        if score >= floor:
            return round_half_up(marks * fraction)
    return 0


def _result(question: Question, submitted, reference, correct: bool, awarded: int,
            sim: Optional[float] = None) -> DetailedQuestionResult:
    return DetailedQuestionResult(
        question_id=question.id,
        user_answer=submitted,
        correct_answer=reference,
        is_correct=correct,
        marks_awarded=awarded,
        max_marks=int(question.marks),
        similarity_score=sim,
    )


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


async def _grade_choice(question: Question, submitted, _sim: SimilarityFn) -> DetailedQuestionResult:
    ref = question.correct_option_index
    if not _is_index(ref):
        raise DataIntegrityError(question.id, f"{question.type} question has no correct option index")
    correct = _is_index(submitted) and submitted == ref
    return _result(question, submitted, ref, correct, int(question.marks) if correct else 0)


async def _text_match(question: Question, submitted, sim_fn: SimilarityFn) -> tuple[bool, Optional[float]]:
    ref = question.expected_answer
    if not isinstance(ref, str) or not ref.strip():
        raise DataIntegrityError(question.id, f"{question.type} question has no expected answer")
    if not isinstance(submitted, str) or not submitted.strip():
        return False, None
    if normalize_text(submitted) == normalize_text(ref):
        return True, 1.0
    s = float(await sim_fn(submitted, ref))
    return s >= CORRECT_THRESHOLD, s


async def _grade_short_answer(question: Question, submitted, sim_fn: SimilarityFn) -> DetailedQuestionResult:
    correct, s = await _text_match(question, submitted, sim_fn)
    awarded = partial_credit_marks(s, int(question.marks)) if s is not None else 0
    return _result(question, submitted, question.expected_answer, correct, awarded, s)


async def _grade_fill_in_blank(question: Question, submitted, sim_fn: SimilarityFn) -> DetailedQuestionResult:
    correct, s = await _text_match(question, submitted, sim_fn)
    return _result(question, submitted, question.expected_answer, correct,
                   int(question.marks) if correct else 0, s)


def parse_number(value) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return num if math.isfinite(num) else None


async def _grade_real_number(question: Question, submitted, _sim: SimilarityFn) -> DetailedQuestionResult:
    ref = parse_number(question.correct_number)
    if ref is None:
        raise DataIntegrityError(question.id, "real-number question has no correct number")
    num = parse_number(submitted)
    try:
        correct = num is not None and (
            _round_decimals(num, REAL_NUMBER_DECIMALS) == _round_decimals(ref, REAL_NUMBER_DECIMALS)
        )
    except InvalidOperation:
        correct = False
    return _result(question, submitted, question.correct_number, correct,
                   int(question.marks) if correct else 0)


_GRADERS: Dict[str, Callable[[Question, object, SimilarityFn], Awaitable[DetailedQuestionResult]]] = {
    "multiple-choice": _grade_choice,
    "true-false": _grade_choice,
    "short-answer": _grade_short_answer,
    "fill-in-blank": _grade_fill_in_blank,
    "real-number": _grade_real_number,
}


def _check_graders(graders, question_types) -> None:
    missing = sorted(set(question_types) - set(graders))
    extra = sorted(set(graders) - set(question_types))
    if missing or extra:
        raise RuntimeError(f"grader table out of sync: missing {missing}, unknown {extra}")


_check_graders(_GRADERS, QUESTION_TYPES)


_REFERENCE_FIELD = {
    "multiple-choice": "correct_option_index",
    "true-false": "correct_option_index",
    "short-answer": "expected_answer",
    "fill-in-blank": "expected_answer",
    "real-number": "correct_number",
}


def _reference_of(question: Question):
    attr = _REFERENCE_FIELD.get(str(question.type))
    return getattr(question, attr, None) if attr else None


async def grade_question(
    question: Question,
    submitted: Optional[SubmittedAnswer],
    similarity_fn: Optional[SimilarityFn] = None,
) -> DetailedQuestionResult:
    """Grade one answer. Data problems on the question grade as incorrect, never raise."""
    grader = _GRADERS.get(str(question.type))
    try:
        if grader is None:
            raise DataIntegrityError(question.id, f"unknown question type {question.type!r}")
        return await grader(question, submitted, similarity_fn or similarity)
    except DataIntegrityError as exc:
        log.warning("data integrity: %s", exc)
        return _result(question, submitted, _reference_of(question), False, 0)
