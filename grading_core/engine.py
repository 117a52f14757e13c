# grading_core/engine.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence
import asyncio, logging, uuid

from .config import GRADING_CONCURRENCY
from .scoring import grade_question, round_half_up
from . import similarity as similarity_mod
from .similarity import SimilarityFn
from .types import AttemptScore, DetailedQuestionResult, Question, SubmittedAnswer, Test, TestResult


log = logging.getLogger(__name__)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def final_score_percent(detailed: Sequence[DetailedQuestionResult], questions: Sequence[Question]) -> int:
    total = sum(int(q.marks) for q in questions)
    if total <= 0:
        return 0
    awarded = sum(int(d.marks_awarded) for d in detailed)
    return round_half_up(100 * awarded / total)


async def _grade_guarded(
    question: Question,
    submitted: Optional[SubmittedAnswer],
    similarity_fn: Optional[SimilarityFn],
    gate: asyncio.Semaphore,
) -> DetailedQuestionResult:
    async with gate:
        try:
            return await grade_question(question, submitted, similarity_fn)
        except Exception:
            # one broken question must not sink the attempt
            log.exception("grading failed for question %s", question.id)
            return DetailedQuestionResult(
                question_id=question.id,
                user_answer=submitted,
                correct_answer=None,
                is_correct=False,
                marks_awarded=0,
                max_marks=int(question.marks),
            )


async def score_attempt(
    test: Test,
    answers: Mapping[str, SubmittedAnswer],
    similarity_fn: Optional[SimilarityFn] = None,
) -> AttemptScore:
    """Grade every question of ``test`` concurrently and aggregate.

    Results keep the test's question order no matter which grading call
    finishes first. Unattempted questions still get an entry.
    """
    if similarity_fn is None:
        # config files are read once per attempt, off the event loop
        backend = await asyncio.to_thread(similarity_mod.backend_in_use)
        similarity_fn = similarity_mod.bound_similarity(backend)
    gate = asyncio.Semaphore(GRADING_CONCURRENCY)
    detailed: List[DetailedQuestionResult] = list(await asyncio.gather(*(
        _grade_guarded(q, answers.get(q.id), similarity_fn, gate) for q in test.questions
    )))
    score = final_score_percent(detailed, test.questions)
    log.debug("scored test %s: %d questions, %d%%", test.id, len(detailed), score)
    return AttemptScore(detailed_results=detailed, score=score)


async def submit_attempt(
    test: Test,
    user_id: str,
    answers: Mapping[str, SubmittedAnswer],
    started_at: Optional[str] = None,
    time_spent_seconds: int = 0,
    similarity_fn: Optional[SimilarityFn] = None,
    result_id: Optional[str] = None,
    completed_at: Optional[str] = None,
) -> TestResult:
    """Grade an attempt and build the complete ``TestResult`` for persistence."""
    scored = await score_attempt(test, answers, similarity_fn)
    return TestResult(
        id=result_id or str(uuid.uuid4()),
        test_id=test.id,
        user_id=user_id,
        answers=dict(answers),
        detailed_results=scored.detailed_results,
        score=scored.score,
        started_at=started_at,
        completed_at=completed_at or utcnow_iso(),
        time_spent_seconds=max(0, int(time_spent_seconds or 0)),
    )


def grade_attempt_sync(
    test: Test,
    user_id: str,
    answers: Dict[str, SubmittedAnswer],
    **kwargs,
) -> TestResult:
    """Run ``submit_attempt`` from sync code (CLI, scripts)."""
    return asyncio.run(submit_attempt(test, user_id, answers, **kwargs))
