"""JSON-file persistence for tests, graded results and review requests.

Each record lives in its own file under ``DATA_DIR``; writes go through a
temp file and an atomic replace so readers never see half a record. Results
are only ever written whole after scoring, and review overrides patch a
single detailed entry.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from grading_core.types import DetailedQuestionResult, ReviewRequest, Test, TestResult


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
TESTS_DIR = DATA_ROOT / "tests"
RESULTS_DIR = DATA_ROOT / "results"
REVIEWS_DIR = DATA_ROOT / "review_requests"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    for d in (TESTS_DIR, RESULTS_DIR, REVIEWS_DIR):
        d.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _all(directory: Path) -> List[Dict[str, Any]]:
    if not directory.exists():
        return []
    out = []
    for p in sorted(directory.glob("*.json")):
        raw = _read_json(p, None)
        if isinstance(raw, dict):
            out.append(raw)
    return out


# ---- tests ----
def save_test(test: Test) -> None:
    _ensure_dirs()
    with _LOCK:
        _write_json(TESTS_DIR / f"{test.id}.json", test.to_dict())


def load_test(test_id: str) -> Optional[Test]:
    raw = _read_json(TESTS_DIR / f"{test_id}.json", None)
    return Test.from_dict(raw) if raw else None


def list_tests(active_only: bool = False) -> List[Test]:
    tests = [Test.from_dict(raw) for raw in _all(TESTS_DIR)]
    if active_only:
        tests = [t for t in tests if t.is_active]
    return tests


# ---- results ----
def save_result(result: TestResult) -> None:
    """Persist a fully graded result."""

    _ensure_dirs()
    with _LOCK:
        _write_json(RESULTS_DIR / f"{result.id}.json", result.to_dict())


def load_result(result_id: str) -> Optional[TestResult]:
    raw = _read_json(RESULTS_DIR / f"{result_id}.json", None)
    return TestResult.from_dict(raw) if raw else None


def list_results(user_id: str | None = None, test_id: str | None = None) -> List[TestResult]:
    out: List[TestResult] = []
    for raw in _all(RESULTS_DIR):
        if user_id and raw.get("user_id") != user_id:
            continue
        if test_id and raw.get("test_id") != test_id:
            continue
        out.append(TestResult.from_dict(raw))
    out.sort(key=lambda r: r.completed_at or "", reverse=True)
    return out


def patch_detailed_result(result_id: str, entry: DetailedQuestionResult, score: int | None = None) -> bool:
    """Point write of one detailed entry (and optionally the score)."""

    path = RESULTS_DIR / f"{result_id}.json"
    with _LOCK:
        raw = _read_json(path, None)
        if not raw:
            return False
        rows = raw.get("detailed_results") or []
        for idx, row in enumerate(rows):
            if row.get("question_id") == entry.question_id:
                rows[idx] = entry.to_dict()
                break
        else:
            return False
        if score is not None:
            raw["score"] = int(score)
        _write_json(path, raw)
    return True


# ---- review requests ----
def save_review_request(request: ReviewRequest) -> None:
    _ensure_dirs()
    with _LOCK:
        _write_json(REVIEWS_DIR / f"{request.id}.json", request.to_dict())


def load_review_request(request_id: str) -> Optional[ReviewRequest]:
    raw = _read_json(REVIEWS_DIR / f"{request_id}.json", None)
    return ReviewRequest.from_dict(raw) if raw else None


def list_review_requests(
    user_id: str | None = None,
    status: str | None = None,
    test_result_id: str | None = None,
) -> List[ReviewRequest]:
    out: List[ReviewRequest] = []
    for raw in _all(REVIEWS_DIR):
        if user_id and raw.get("user_id") != user_id:
            continue
        if status and raw.get("status") != status:
            continue
        if test_result_id and raw.get("test_result_id") != test_result_id:
            continue
        out.append(ReviewRequest.from_dict(raw))
    out.sort(key=lambda r: r.created_at or "", reverse=True)
    return out
