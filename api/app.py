from __future__ import annotations
from fastapi import FastAPI, HTTPException, Body, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, os, threading, typing as t

from grading_core.config import EXPORT_ENABLED, RECOMPUTE_SCORE_ON_OVERRIDE, get_backend, load_config
from grading_core.engine import submit_attempt
from grading_core.errors import InvalidStateError, ValidationError
from grading_core.export import to_csv as export_to_csv, to_json as export_to_json
from grading_core.reporting import results_overview, summarize_result
from grading_core.review import create_review_request, recompute_score, resolve_review_request
from grading_core.similarity import backend_in_use
from grading_core.types import Test
from grading_core.validators import validate_test
from .storage import (
    list_results,
    list_review_requests,
    list_tests,
    load_result,
    load_review_request,
    load_test,
    patch_detailed_result,
    save_result,
    save_review_request,
    save_test,
)

log = logging.getLogger(__name__)

# review requests are checked and written under one lock so a question
# never ends up with two open requests
_REVIEW_LOCK = threading.Lock()

app = FastAPI(title="Quiz Grading API")

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
class SubmitReq(BaseModel):
    user_id: str
    answers: dict[str, t.Union[int, float, str]] = Field(default_factory=dict)
    started_at: str | None = None
    time_spent_seconds: int = 0

class ReviewCreateReq(BaseModel):
    test_result_id: str
    question_id: str
    user_id: str
    reason: str

class ReviewResolveReq(BaseModel):
    decision: str                 # "approved" | "rejected"
    reviewer_id: str
    notes: str | None = None
    new_marks: int | None = None

# ---- Helpers ----
def _require_test(test_id: str) -> Test:
    test = load_test(test_id)
    if not test:
        raise HTTPException(404, "test not found")
    return test

def _require_result(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "result not found")
    return result

# ---- Health ----
@app.get("/")
def root():
    return {"status": "ok", "service": "quiz-grading-api"}

@app.get("/health")
def health():
    return {
        "similarity_backend": get_backend(load_config()) or "none",
        "backend_in_use": backend_in_use(),
        "recompute_score_on_override": RECOMPUTE_SCORE_ON_OVERRIDE,
    }

# ---- Tests ----
@app.post("/tests")
def create_test(payload: dict = Body(...)):
    try:
        test = Test.from_dict(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(422, f"malformed test: {exc}")
    issues = validate_test(test)
    if issues:
        raise HTTPException(422, {"issues": issues})
    save_test(test)
    return test.to_dict()

@app.get("/tests")
def get_tests(active_only: bool = Query(False)):
    return {"tests": [x.to_dict() for x in list_tests(active_only=active_only)]}

@app.get("/tests/{test_id}")
def get_test(test_id: str):
    return _require_test(test_id).to_dict()

@app.post("/tests/{test_id}/submit")
async def submit(test_id: str, req: SubmitReq):
    test = _require_test(test_id)
    result = await submit_attempt(
        test,
        req.user_id,
        req.answers,
        started_at=req.started_at,
        time_spent_seconds=req.time_spent_seconds,
    )
    save_result(result)
    log.info("result %s stored for test %s user %s: %d%%", result.id, test_id, req.user_id, result.score)
    return result.to_dict()

@app.get("/tests/{test_id}/overview")
def test_overview(test_id: str):
    _require_test(test_id)
    return {"test_id": test_id, **results_overview(list_results(test_id=test_id))}

# ---- Results ----
@app.get("/results/{result_id}")
def get_result(result_id: str):
    return _require_result(result_id).to_dict()

@app.get("/results/{result_id}/summary")
def get_summary(result_id: str):
    return summarize_result(_require_result(result_id))

@app.get("/results/{result_id}/export.json")
def get_export_json(result_id: str):
    if not EXPORT_ENABLED:
        raise HTTPException(404, "export disabled")
    return export_to_json(_require_result(result_id))

@app.get("/results/{result_id}/export.csv")
def get_export_csv(result_id: str):
    if not EXPORT_ENABLED:
        raise HTTPException(404, "export disabled")
    body = export_to_csv(_require_result(result_id))
    filename = f"{result_id}_results.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )

@app.get("/users/{user_id}/results")
def user_results(user_id: str):
    results = list_results(user_id=user_id)
    return {"results": [r.to_dict() for r in results], "overview": results_overview(results)}

# ---- Review requests ----
@app.post("/review-requests")
def create_review(req: ReviewCreateReq):
    result = _require_result(req.test_result_id)
    with _REVIEW_LOCK:
        existing = list_review_requests(test_result_id=result.id)
        try:
            request = create_review_request(result, req.question_id, req.user_id, req.reason, existing)
        except ValidationError as exc:
            raise HTTPException(422, str(exc))
        save_review_request(request)
    return request.to_dict()

@app.get("/review-requests")
def get_reviews(
    user_id: str | None = Query(None),
    status: str | None = Query(None),
    test_result_id: str | None = Query(None),
):
    found = list_review_requests(user_id=user_id, status=status, test_result_id=test_result_id)
    return {"requests": [r.to_dict() for r in found]}

@app.get("/review-requests/{request_id}")
def get_review(request_id: str):
    request = load_review_request(request_id)
    if not request:
        raise HTTPException(404, "review request not found")
    return request.to_dict()

@app.post("/review-requests/{request_id}/resolve")
def resolve_review(request_id: str, req: ReviewResolveReq):
    with _REVIEW_LOCK:
        request = load_review_request(request_id)
        if not request:
            raise HTTPException(404, "review request not found")
        result = load_result(request.test_result_id) if req.new_marks is not None else None
        try:
            patched = resolve_review_request(
                request,
                req.decision,
                req.reviewer_id,
                result=result,
                notes=req.notes,
                new_marks=req.new_marks,
                others=list_review_requests(test_result_id=request.test_result_id),
            )
        except InvalidStateError as exc:
            raise HTTPException(409, str(exc))
        except ValidationError as exc:
            raise HTTPException(422, str(exc))

        if patched is not None:
            score = recompute_score(result) if RECOMPUTE_SCORE_ON_OVERRIDE else None
            if not patch_detailed_result(result.id, patched, score=score):
                raise HTTPException(404, "result not found")
        save_review_request(request)
    return {"request": request.to_dict(), "patched": patched.to_dict() if patched else None}
