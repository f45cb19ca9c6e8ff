from assessments.models.question import Question, QuestionKind
from assessments.models.result import FeedbackResult, FeedbackScores, QuestionResult, QuizOutcome, SessionReport
from assessments.models.session import AnswerRecord, InterviewConfig, Session, SessionKind, SessionStatus

__all__ = [
    "AnswerRecord",
    "FeedbackResult",
    "FeedbackScores",
    "InterviewConfig",
    "Question",
    "QuestionKind",
    "QuestionResult",
    "QuizOutcome",
    "Session",
    "SessionKind",
    "SessionReport",
    "SessionStatus",
]
