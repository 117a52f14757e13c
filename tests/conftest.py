from __future__ import annotations

from typing import Dict

import pytest

from grading_core.types import Question, Test


def build_synthetic_test(
    *,
    test_id: str = "synthetic",
    mcq: int = 2,
    true_false: int = 1,
    short_answer: int = 1,
    fill_in_blank: int = 1,
    real_number: int = 1,
    marks: int = 1,
) -> Test:
    """Create a deterministic test covering every question type."""

    questions: list[Question] = []
    for idx in range(mcq):
        questions.append(
            Question(
                id=f"mcq_{idx}",
                type="multiple-choice",
                prompt=f"MCQ #{idx}",
                options=["A", "B", "C", "D"],
                correct_option_index=idx % 4,
                marks=marks,
            )
        )
    for idx in range(true_false):
        questions.append(
            Question(
                id=f"tf_{idx}",
                type="true-false",
                prompt=f"True or false #{idx}",
                options=["False", "True"],
                correct_option_index=1,
                marks=marks,
            )
        )
    for idx in range(short_answer):
        questions.append(
            Question(
                id=f"sa_{idx}",
                type="short-answer",
                prompt=f"Explain #{idx}",
                expected_answer="the mitochondria produces energy",
                marks=marks,
            )
        )
    for idx in range(fill_in_blank):
        questions.append(
            Question(
                id=f"fib_{idx}",
                type="fill-in-blank",
                prompt=f"Fill in #{idx}",
                expected_answer="Paris",
                marks=marks,
            )
        )
    for idx in range(real_number):
        questions.append(
            Question(
                id=f"num_{idx}",
                type="real-number",
                prompt=f"Number #{idx}",
                correct_number=3.1415,
                marks=marks,
            )
        )
    return Test(id=test_id, title="Synthetic", questions=questions)


def perfect_answers(test: Test) -> Dict[str, object]:
    answers: Dict[str, object] = {}
    for q in test.questions:
        if q.type in ("multiple-choice", "true-false"):
            answers[q.id] = q.correct_option_index
        elif q.type == "real-number":
            answers[q.id] = str(q.correct_number)
        else:
            answers[q.id] = q.expected_answer
    return answers


def fixed_similarity(value: float):
    """Similarity stub returning ``value`` for every pair."""

    async def _sim(candidate: str, reference: str) -> float:
        return value

    return _sim


@pytest.fixture(autouse=True)
def _no_remote_similarity(monkeypatch):
    for name in (
        "SIMILARITY_BACKEND",
        "HUGGINGFACE_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_API_VERSION",
        "AZURE_OPENAI_EMBEDDING_DEPLOYMENT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def synthetic_test() -> Test:
    return build_synthetic_test()
