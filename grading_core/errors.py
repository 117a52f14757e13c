"""Error taxonomy for the grading engine.

Question-level problems (``TransientScoringError``, ``DataIntegrityError``)
are absorbed inside the grader. Review problems (``ValidationError``,
``InvalidStateError``) always reach the caller.
"""
from __future__ import annotations


class GradingError(Exception):
    """Base class for grading engine errors."""


class TransientScoringError(GradingError):
    """The remote similarity service was unreachable, slow, or answered garbage."""


class DataIntegrityError(GradingError):
    """A question is missing the answer field its type needs."""

    def __init__(self, question_id: str, message: str):
        super().__init__(f"question {question_id}: {message}")
        self.question_id = question_id


class ValidationError(GradingError):
    """Rejected input; nothing was mutated."""


class InvalidStateError(GradingError):
    """The review request is no longer pending."""


__all__ = [
    "GradingError",
    "TransientScoringError",
    "DataIntegrityError",
    "ValidationError",
    "InvalidStateError",
]
