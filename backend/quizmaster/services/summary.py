"""
Dashboard figures and per-question breakdowns over stored results.
"""

from typing import List, Optional

from quizmaster.models import AnswerKey, GRADE_ORDER, StudentResult

RECENT_RESULTS_LIMIT = 10


def summarize(master_key: Optional[AnswerKey], results: List[StudentResult]) -> dict:
    """Totals, average/top score, grade distribution and most recent results"""
    grade_counts = {grade: 0 for grade in GRADE_ORDER}
    for r in results:
        grade_counts[r.grade] += 1

    average_score = round(sum(r.score for r in results) / len(results), 1) if results else 0
    top_score = max((r.score for r in results), default=0)

    return {
        "master_key": {
            "id": master_key.id,
            "name": master_key.name,
            "total_questions": master_key.total_questions,
        } if master_key else None,
        "total_students": len(results),
        "average_score": average_score,
        "top_score": top_score,
        "grade_breakdown": [{"grade": g, "count": grade_counts[g]} for g in GRADE_ORDER],
        "recent_results": [
            {
                "id": r.id,
                "student_name": r.student_name,
                "student_id": r.student_id,
                "score": r.score,
                "total_questions": r.total_questions,
                "percentage": r.percentage,
                "grade": r.grade,
                "checked_at": r.checked_at.isoformat(),
            }
            for r in reversed(results[-RECENT_RESULTS_LIMIT:])
        ],
    }


def breakdown(master_key: AnswerKey, result: StudentResult) -> List[dict]:
    """One row per key question, sorted by question number"""
    rows = []
    for q_num in master_key.sorted_questions():
        rows.append({
            "question_number": q_num,
            "student_answer": result.answers.get(q_num) or "-",
            "master_answer": master_key.answers[q_num],
            "is_correct": result.is_correct.get(q_num, False),
        })
    return rows
