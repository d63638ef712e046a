"""
Unit tests for dashboard figures and result breakdowns
"""
from datetime import datetime, timedelta, timezone

from quizmaster.models import StudentResult
from quizmaster.services.summary import breakdown, summarize


def _result(idx, score, grade, answers=None, is_correct=None):
    return StudentResult(
        id=f"r-{idx}",
        student_name=f"Student {idx}",
        answers=answers or {},
        is_correct=is_correct or {},
        score=score,
        total_questions=3,
        percentage=score / 3 * 100,
        grade=grade,
        checked_at=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=idx),
    )


def test_summary_of_nothing(master_key):
    summary = summarize(None, [])
    assert summary["master_key"] is None
    assert summary["total_students"] == 0
    assert summary["average_score"] == 0
    assert summary["top_score"] == 0
    assert [g["grade"] for g in summary["grade_breakdown"]] == ["A+", "A", "B", "C", "D", "F"]
    assert all(g["count"] == 0 for g in summary["grade_breakdown"])
    assert summary["recent_results"] == []


def test_summary_figures(master_key):
    results = [_result(1, 3, "A+"), _result(2, 2, "C"), _result(3, 2, "C"), _result(4, 0, "F")]
    summary = summarize(master_key, results)

    assert summary["master_key"]["total_questions"] == 3
    assert summary["total_students"] == 4
    assert summary["average_score"] == 1.8
    assert summary["top_score"] == 3
    counts = {g["grade"]: g["count"] for g in summary["grade_breakdown"]}
    assert counts == {"A+": 1, "A": 0, "B": 0, "C": 2, "D": 0, "F": 1}
    assert [r["id"] for r in summary["recent_results"]] == ["r-4", "r-3", "r-2", "r-1"]


def test_recent_results_capped_at_ten(master_key):
    results = [_result(i, 1, "F") for i in range(15)]
    recent = summarize(master_key, results)["recent_results"]
    assert len(recent) == 10
    assert recent[0]["id"] == "r-14"
    assert recent[-1]["id"] == "r-5"


def test_breakdown_rows(master_key):
    result = _result(1, 1, "F", answers={1: "A", 3: ""}, is_correct={1: True, 2: False, 3: False})
    rows = breakdown(master_key, result)

    assert [r["question_number"] for r in rows] == [1, 2, 3]
    assert rows[0] == {"question_number": 1, "student_answer": "A", "master_answer": "A", "is_correct": True}
    assert rows[1]["student_answer"] == "-"
    assert rows[2]["student_answer"] == "-"
    assert rows[2]["is_correct"] is False
