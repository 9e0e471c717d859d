"""
Progress & Quiz Scoring

Pure functions; no database access. Progress is always derived from the
completed-lecture set and the course's *current* curriculum, so lectures
removed from a course stop counting on the next read.
"""

from typing import Any, Dict, Iterable, List, Tuple


def calculate_progress(completed_ids: Iterable[str], lecture_ids: Iterable[str]) -> int:
    """
    Percentage of the current lectures that are completed, rounded down

    Returns 0 for a course without lectures. Completed ids that are no
    longer part of the curriculum are ignored.
    """
    current = set(lecture_ids)
    if not current:
        return 0
    done = len(current.intersection(completed_ids))
    return (100 * done) // len(current)


def score_quiz(questions: List[Dict[str, Any]], answers: List[Any]) -> Tuple[int, int]:
    """
    Score submitted answers against a lecture's questions

    Each answer is {question_id, selected_answer}. Unknown question ids and
    malformed entries score nothing. Every submitted answer is scored on its
    own, so repeating a correct answer scores it again.

    Returns:
        (score, total_questions)
    """
    correct_by_id = {q["question_id"]: q.get("correct_answer") for q in questions}
    score = 0

    for answer in answers:
        if not isinstance(answer, dict):
            continue
        question_id = answer.get("question_id")
        if not isinstance(question_id, str) or question_id not in correct_by_id:
            continue
        if answer.get("selected_answer") == correct_by_id[question_id]:
            score += 1

    return score, len(questions)


def quiz_percentage(score: int, total_questions: int) -> int:
    if total_questions <= 0:
        return 0
    return (100 * score) // total_questions
