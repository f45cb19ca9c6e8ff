from __future__ import annotations

from typing import Iterable, Mapping

from assessments.models.question import Question
from assessments.models.result import QuizOutcome
from assessments.models.session import AnswerRecord

NO_ANSWER = "no answer submitted."
NEEDS_REVIEW = "free-text answer recorded for qualitative review; not auto-graded."


def _is_unanswered(record: AnswerRecord | None) -> bool:
    return record is None or not record.raw_answer.strip()


def grade(question: Question, record: AnswerRecord | None) -> QuizOutcome:
    if not question.is_exact_match:
        # Free text stays outside the gradable set whether or not it was answered.
        explanation = NO_ANSWER if _is_unanswered(record) else NEEDS_REVIEW
        return QuizOutcome(question_id=question.id, is_correct=None, explanation=explanation)

    if _is_unanswered(record):
        return QuizOutcome(question_id=question.id, is_correct=False, explanation=NO_ANSWER)

    # Exact and case-sensitive, no normalization.
    ok = record.raw_answer == question.correct_answer
    if question.explanation:
        explanation = question.explanation
    elif ok:
        explanation = "correct."
    else:
        explanation = f"incorrect. expected: {question.correct_answer}"
    return QuizOutcome(question_id=question.id, is_correct=ok, explanation=explanation)


def grade_all(questions: Iterable[Question], answers: Mapping[str, AnswerRecord]) -> list[QuizOutcome]:
    return [grade(q, answers.get(q.id)) for q in questions]


def correctness_score(outcomes: Iterable[QuizOutcome]) -> tuple[float, int, int]:
    """Return ``(score, correct, gradable)``; ungradable outcomes are left out of the denominator."""
    gradable = [o for o in outcomes if o.is_correct is not None]
    correct = sum(1 for o in gradable if o.is_correct)
    total = len(gradable)
    score = round(100.0 * correct / total, 2) if total > 0 else 0.0
    return score, correct, total


def is_passing(score: float, passing_score: float) -> bool:
    return float(score) >= float(passing_score)
