from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Literal, Union

QuestionType = Literal["multiple-choice", "true-false", "short-answer", "fill-in-blank", "real-number"]
QUESTION_TYPES: tuple[str, ...] = ("multiple-choice", "true-false", "short-answer", "fill-in-blank", "real-number")
CHOICE_TYPES = frozenset({"multiple-choice", "true-false"})
TEXT_TYPES = frozenset({"short-answer", "fill-in-blank"})

ReviewStatus = Literal["pending", "approved", "rejected"]
SubmittedAnswer = Union[int, float, str]


def _pick(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return default


@dataclass
class Question:
    id: str; type: QuestionType; prompt: str = ""
    options: List[str] = field(default_factory=list)
    correct_option_index: Optional[int] = None
    expected_answer: Optional[str] = None
    correct_number: Optional[float] = None
    marks: int = 1
    subject: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Question":
        # legacy records use camelCase and keep the option index under correctAnswer
        return cls(
            id=str(raw["id"]),
            type=raw["type"],
            prompt=str(_pick(raw, "prompt", "question", default="")),
            options=list(_pick(raw, "options", default=[]) or []),
            correct_option_index=_pick(raw, "correct_option_index", "correctOptionIndex", "correctAnswer"),
            expected_answer=_pick(raw, "expected_answer", "expectedAnswer"),
            correct_number=_pick(raw, "correct_number", "correctNumber"),
            marks=_pick(raw, "marks", default=1),
            subject=_pick(raw, "subject"),
        )


@dataclass
class Test:
    id: str; title: str
    questions: List[Question] = field(default_factory=list)
    description: str = ""
    duration_minutes: int = 0
    created_by: Optional[str] = None
    is_active: bool = True
    target_class: Optional[int] = None
    subject: Optional[str] = None

    @property
    def total_marks(self) -> int:
        return sum(int(q.marks) for q in self.questions)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Test":
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title", "")),
            questions=[Question.from_dict(q) for q in raw.get("questions") or []],
            description=str(raw.get("description") or ""),
            duration_minutes=int(_pick(raw, "duration_minutes", "duration", default=0)),
            created_by=_pick(raw, "created_by", "createdBy"),
            is_active=bool(_pick(raw, "is_active", "isActive", default=True)),
            target_class=_pick(raw, "target_class", "targetClass"),
            subject=_pick(raw, "subject"),
        )


@dataclass
class DetailedQuestionResult:
    question_id: str
    user_answer: Optional[SubmittedAnswer]
    correct_answer: Optional[SubmittedAnswer]
    is_correct: bool
    marks_awarded: int = 0
    max_marks: int = 1
    similarity_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DetailedQuestionResult":
        return cls(
            question_id=str(raw["question_id"]),
            user_answer=raw.get("user_answer"),
            correct_answer=raw.get("correct_answer"),
            is_correct=bool(raw.get("is_correct", False)),
            marks_awarded=int(raw.get("marks_awarded") or 0),
            max_marks=int(raw.get("max_marks") or 1),
            similarity_score=raw.get("similarity_score"),
        )


@dataclass
class AttemptScore:
    detailed_results: List[DetailedQuestionResult]
    score: int


@dataclass
class TestResult:
    id: str; test_id: str; user_id: str
    answers: Dict[str, SubmittedAnswer]
    detailed_results: List[DetailedQuestionResult]
    score: int
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    time_spent_seconds: int = 0

    def entry(self, question_id: str) -> Optional[DetailedQuestionResult]:
        return next((d for d in self.detailed_results if d.question_id == question_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TestResult":
        return cls(
            id=str(raw["id"]),
            test_id=str(raw["test_id"]),
            user_id=str(raw["user_id"]),
            answers=dict(raw.get("answers") or {}),
            detailed_results=[DetailedQuestionResult.from_dict(d) for d in raw.get("detailed_results") or []],
            score=int(raw.get("score") or 0),
            started_at=raw.get("started_at"),
            completed_at=raw.get("completed_at"),
            time_spent_seconds=int(raw.get("time_spent_seconds") or 0),
        )


@dataclass
class ReviewRequest:
    id: str; test_result_id: str; question_id: str; user_id: str; reason: str
    status: ReviewStatus = "pending"
    created_at: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    review_notes: Optional[str] = None
    new_marks: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ReviewRequest":
        fields = {k: raw.get(k) for k in (
            "id", "test_result_id", "question_id", "user_id", "reason",
            "created_at", "reviewed_by", "reviewed_at", "review_notes", "new_marks",
        )}
        return cls(status=raw.get("status") or "pending", **fields)
