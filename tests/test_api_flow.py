from __future__ import annotations

import importlib
import os
import sys

from fastapi.testclient import TestClient

from grading_core.question_bank import load_sample_test


_DEF_MODULES = [
    "api.storage",
    "api.app",
]

_ANSWERS = {
    "q1": 1,
    "q2": 0,
    "q3": "oxygen is released by plants",
    "q4": "au",
    "q5": "3.14159",
}


def _reload_app(tmp_path) -> tuple[object, object]:
    os.environ["DATA_DIR"] = str(tmp_path)
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    storage = sys.modules["api.storage"]
    app_module = sys.modules["api.app"]
    return storage, app_module


def _client_with_result(tmp_path):
    storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    test = load_sample_test()
    resp = client.post("/tests", json=test.to_dict())
    assert resp.status_code == 200
    submitted = client.post(
        f"/tests/{test.id}/submit",
        json={"user_id": "student-1", "answers": _ANSWERS, "time_spent_seconds": 300},
    )
    assert submitted.status_code == 200
    return storage, app_module, client, submitted.json()


def test_health_reports_local_backend(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    body = client.get("/health").json()
    assert body["backend_in_use"] == "none"


def test_submit_grades_and_persists(tmp_path):
    storage, _app, client, result = _client_with_result(tmp_path)

    assert result["score"] == 60
    assert [d["question_id"] for d in result["detailed_results"]] == ["q1", "q2", "q3", "q4", "q5"]
    marks = {d["question_id"]: d["marks_awarded"] for d in result["detailed_results"]}
    assert marks == {"q1": 1, "q2": 0, "q3": 1, "q4": 2, "q5": 2}

    stored = storage.load_result(result["id"])
    assert stored is not None and stored.score == 60

    fetched = client.get(f"/results/{result['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == result


def test_create_test_rejects_integrity_problems(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)

    broken = {
        "id": "broken",
        "title": "Broken",
        "questions": [{"id": "a", "type": "real-number", "prompt": "?"}],
    }
    resp = client.post("/tests", json=broken)
    assert resp.status_code == 422
    assert "a: missing correct number" in resp.json()["detail"]["issues"]

    assert client.post("/tests", json={"title": "no id"}).status_code == 422
    assert client.post("/tests/unknown/submit", json={"user_id": "s"}).status_code == 404


def test_legacy_camel_case_tests_are_accepted(tmp_path):
    _storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    legacy = {
        "id": "legacy",
        "title": "Legacy",
        "duration": 10,
        "createdBy": "teacher-9",
        "isActive": True,
        "questions": [
            {"id": "l1", "question": "2+2?", "type": "multiple-choice", "options": ["3", "4"], "correctAnswer": 1},
            {"id": "l2", "question": "Capital of France", "type": "fill-in-blank", "options": [],
             "correctAnswer": 0, "expectedAnswer": "Paris", "marks": 2},
        ],
    }
    assert client.post("/tests", json=legacy).status_code == 200
    res = client.post("/tests/legacy/submit", json={"user_id": "s", "answers": {"l1": 1, "l2": "paris"}})
    assert res.json()["score"] == 100


def test_reports_and_exports(tmp_path):
    _storage, _app, client, result = _client_with_result(tmp_path)
    rid = result["id"]

    summary = client.get(f"/results/{rid}/summary").json()
    assert summary["percentage"] == 60
    assert summary["grade"] == "B"
    assert summary["correct"] == 3
    assert summary["left_out"] == 0

    csv_resp = client.get(f"/results/{rid}/export.csv")
    assert csv_resp.status_code == 200
    assert csv_resp.headers["content-type"].startswith("text/csv")
    assert csv_resp.text.splitlines()[0].startswith("question_id,")

    assert len(client.get(f"/results/{rid}/export.json").json()["rows"]) == 5

    overview = client.get("/tests/sample-general-science/overview").json()
    assert overview["count"] == 1 and overview["highest"] == 60

    mine = client.get("/users/student-1/results").json()
    assert [r["id"] for r in mine["results"]] == [rid]


def test_review_approval_patches_single_question(tmp_path):
    storage, _app, client, result = _client_with_result(tmp_path)
    rid = result["id"]

    created = client.post(
        "/review-requests",
        json={"test_result_id": rid, "question_id": "q3", "user_id": "student-1", "reason": "same meaning"},
    )
    assert created.status_code == 200
    req = created.json()
    assert req["status"] == "pending"

    dup = client.post(
        "/review-requests",
        json={"test_result_id": rid, "question_id": "q3", "user_id": "student-1", "reason": "again"},
    )
    assert dup.status_code == 422

    too_many = client.post(
        f"/review-requests/{req['id']}/resolve",
        json={"decision": "approved", "reviewer_id": "teacher-1", "new_marks": 5},
    )
    assert too_many.status_code == 422
    assert client.get(f"/review-requests/{req['id']}").json()["status"] == "pending"

    ok = client.post(
        f"/review-requests/{req['id']}/resolve",
        json={"decision": "approved", "reviewer_id": "teacher-1", "notes": "accepted", "new_marks": 4},
    )
    assert ok.status_code == 200
    assert ok.json()["patched"]["marks_awarded"] == 4

    after = storage.load_result(rid)
    assert after.entry("q3").marks_awarded == 4
    assert after.entry("q3").is_correct is False
    assert after.score == 60
    for before_row, after_row in zip(result["detailed_results"], after.to_dict()["detailed_results"]):
        if before_row["question_id"] != "q3":
            assert before_row == after_row

    again = client.post(
        f"/review-requests/{req['id']}/resolve",
        json={"decision": "approved", "reviewer_id": "teacher-1", "new_marks": 0},
    )
    assert again.status_code == 409
    assert storage.load_result(rid).entry("q3").marks_awarded == 4

    listed = client.get("/review-requests", params={"status": "approved"}).json()["requests"]
    assert [r["id"] for r in listed] == [req["id"]]
    by_result = client.get("/review-requests", params={"test_result_id": rid}).json()["requests"]
    assert [r["id"] for r in by_result] == [req["id"]]
    assert client.get("/review-requests", params={"test_result_id": "other"}).json()["requests"] == []


def test_review_rejection_and_optional_rescore(tmp_path, monkeypatch):
    storage, app_module, client, result = _client_with_result(tmp_path)
    rid = result["id"]

    def _open(question_id):
        return client.post(
            "/review-requests",
            json={"test_result_id": rid, "question_id": question_id, "user_id": "student-1", "reason": "please"},
        ).json()

    rejected = _open("q2")
    resp = client.post(
        f"/review-requests/{rejected['id']}/resolve",
        json={"decision": "rejected", "reviewer_id": "teacher-1"},
    )
    assert resp.status_code == 200
    assert resp.json()["patched"] is None
    assert storage.load_result(rid).entry("q2").marks_awarded == 0

    monkeypatch.setattr(app_module, "RECOMPUTE_SCORE_ON_OVERRIDE", True)
    approved = _open("q3")
    client.post(
        f"/review-requests/{approved['id']}/resolve",
        json={"decision": "approved", "reviewer_id": "teacher-1", "new_marks": 4},
    )
    assert storage.load_result(rid).score == 90


def test_review_request_by_other_user_is_rejected(tmp_path):
    _storage, _app, client, result = _client_with_result(tmp_path)
    resp = client.post(
        "/review-requests",
        json={"test_result_id": result["id"], "question_id": "q3", "user_id": "intruder", "reason": "x"},
    )
    assert resp.status_code == 422
    missing = client.post(
        "/review-requests",
        json={"test_result_id": "nope", "question_id": "q3", "user_id": "student-1", "reason": "x"},
    )
    assert missing.status_code == 404


def test_test_ids_cannot_escape_data_dir(tmp_path):
    _storage, app_module = _reload_app(tmp_path / "data")
    client = TestClient(app_module.app)
    for bad_id in ("../../escaped", "..", "nested/id", "back\\slash"):
        payload = load_sample_test().to_dict()
        payload["id"] = bad_id
        resp = client.post("/tests", json=payload)
        assert resp.status_code == 422
        assert any("test id" in issue for issue in resp.json()["detail"]["issues"])
    assert not (tmp_path / "escaped.json").exists()
    assert list((tmp_path / "data" / "tests").glob("*.json")) == []


def test_review_creation_checks_under_lock(tmp_path, monkeypatch):
    _storage, app_module, client, result = _client_with_result(tmp_path)
    seen = []
    real_list = app_module.list_review_requests

    def _list(**kwargs):
        seen.append(app_module._REVIEW_LOCK.locked())
        return real_list(**kwargs)

    monkeypatch.setattr(app_module, "list_review_requests", _list)
    resp = client.post(
        "/review-requests",
        json={"test_result_id": result["id"], "question_id": "q3", "user_id": "student-1", "reason": "x"},
    )
    assert resp.status_code == 200
    assert seen == [True]


def test_only_one_of_two_duplicate_requests_can_be_approved(tmp_path):
    from grading_core.types import ReviewRequest

    storage, _app, client, result = _client_with_result(tmp_path)
    first = client.post(
        "/review-requests",
        json={"test_result_id": result["id"], "question_id": "q3", "user_id": "student-1", "reason": "x"},
    ).json()
    # a duplicate that slipped in before the creation check
    storage.save_review_request(ReviewRequest.from_dict({**first, "id": "dup"}))

    ok = client.post(
        f"/review-requests/{first['id']}/resolve",
        json={"decision": "approved", "reviewer_id": "teacher-1", "new_marks": 3},
    )
    assert ok.status_code == 200
    clash = client.post(
        "/review-requests/dup/resolve",
        json={"decision": "approved", "reviewer_id": "teacher-2", "new_marks": 4},
    )
    assert clash.status_code == 409
    assert storage.load_review_request("dup").status == "pending"
    assert storage.load_result(result["id"]).entry("q3").marks_awarded == 3

    approved = client.get("/review-requests", params={"status": "approved"}).json()["requests"]
    assert [r["id"] for r in approved] == [first["id"]]


def test_health_reads_backend_from_config_file(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path)
    work = tmp_path / "work"
    work.mkdir()
    (work / "config.json").write_text('{"SIMILARITY_BACKEND": "huggingface"}', encoding="utf-8")
    monkeypatch.chdir(work)

    body = TestClient(app_module.app).get("/health").json()
    assert body["similarity_backend"] == "huggingface"
    assert body["backend_in_use"] == "none"
