"""
services/grading.py

Quiz auto-grading and assignment point totals.
"""
from __future__ import annotations

from typing import Iterable

from models import AssignmentType, QuestionType, QuizAnswer, QuizQuestion, RubricCriterion


def _is_blank(answer) -> bool:
    if answer is None:
        return True
    if isinstance(answer, (list, tuple)):
        return len(answer) == 0
    return str(answer) == ""


def _as_list(value) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(v).strip().lower() for v in value]
    return [str(value).strip().lower()]


def auto_grade_answer(question: QuizQuestion, answer) -> tuple[bool, float]:
    """Return (is_correct, score) for one student answer."""
    if _is_blank(answer):
        return False, 0

    if question.question_type in (QuestionType.TRUE_FALSE, QuestionType.MULTIPLE_CHOICE):
        expected = question.correct_answer
        if isinstance(expected, list):
            expected = expected[0] if expected else ""
        given = answer[0] if isinstance(answer, (list, tuple)) else answer
        is_correct = str(given).strip().lower() == str(expected).strip().lower()
    elif question.question_type == QuestionType.SHORT_ANSWER:
        keywords = _as_list(question.correct_answer)
        given = _as_list(answer)
        is_correct = any(keyword in given for keyword in keywords)
    else:
        is_correct = False

    return is_correct, (question.points if is_correct else 0)


def grade_quiz(questions: Iterable[QuizQuestion], answers: Iterable[QuizAnswer]) -> tuple[list[QuizAnswer], float]:
    """Grade every answer against its question; unknown question ids score 0."""
    by_id = {q.id: q for q in questions}
    graded: list[QuizAnswer] = []
    total = 0.0
    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            graded.append(QuizAnswer(answer.question_id, answer.student_answer, False, 0))
            continue
        is_correct, score = auto_grade_answer(question, answer.student_answer)
        graded.append(QuizAnswer(answer.question_id, answer.student_answer, is_correct, score))
        total += score
    return graded, total


def assignment_total_points(
    assignment_type: AssignmentType,
    questions: list[QuizQuestion] | None = None,
    rubric: list[RubricCriterion] | None = None,
    manual_total: float | None = None,
) -> float:
    # Quiz questions win for quizzes, rubric wins for standard work, manual otherwise.
    if assignment_type == AssignmentType.QUIZ and questions:
        return float(sum(q.points for q in questions))
    if assignment_type == AssignmentType.STANDARD and rubric:
        return float(sum(r.points for r in rubric))
    if manual_total is not None:
        return float(manual_total)
    return 0.0
