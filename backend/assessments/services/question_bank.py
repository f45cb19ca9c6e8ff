from __future__ import annotations

import random

from assessments.core.errors import ValidationError
from assessments.models.question import Question, QuestionKind


_INTERVIEW_BANK: dict[QuestionKind, list[dict]] = {
    QuestionKind.behavioral: [
        {
            "id": "b1",
            "text": "Tell me about a time when you had to overcome a significant challenge at work.",
            "expected_duration_seconds": 180,
            "follow_ups": ("What would you do differently?", "How did this experience change your approach?"),
            "evaluation_criteria": (
                "STAR method usage",
                "Specific examples",
                "Learning outcomes",
                "Problem-solving approach",
            ),
        },
        {
            "id": "b2",
            "text": "Describe a situation where you had to work with a difficult team member.",
            "expected_duration_seconds": 180,
            "evaluation_criteria": (
                "Conflict resolution",
                "Communication skills",
                "Emotional intelligence",
                "Team collaboration",
            ),
        },
        {
            "id": "b3",
            "text": "Tell me about a decision you made with incomplete information. How did it turn out?",
            "expected_duration_seconds": 180,
            "evaluation_criteria": ("Judgement", "Risk awareness", "Ownership of outcome"),
        },
    ],
    QuestionKind.technical: [
        {
            "id": "t1",
            "text": "Explain the difference between synchronous and asynchronous programming. When would you use each?",
            "expected_duration_seconds": 240,
            "evaluation_criteria": (
                "Technical accuracy",
                "Real-world examples",
                "Trade-offs understanding",
                "Code examples",
            ),
        },
        {
            "id": "t2",
            "text": "How would you optimize a slow database query? Walk me through your approach.",
            "expected_duration_seconds": 300,
            "evaluation_criteria": (
                "Systematic approach",
                "Performance concepts",
                "Practical solutions",
                "Monitoring strategies",
            ),
        },
        {
            "id": "t3",
            "text": "How would you design a rate limiter for a public API?",
            "expected_duration_seconds": 300,
            "evaluation_criteria": ("Algorithm choice", "Distributed state", "Failure modes"),
        },
    ],
    QuestionKind.situational: [
        {
            "id": "s1",
            "text": "A production release breaks a key feature an hour before a demo. What do you do?",
            "expected_duration_seconds": 180,
            "evaluation_criteria": ("Prioritisation", "Communication", "Calm under pressure"),
        },
        {
            "id": "s2",
            "text": "Your manager asks you to take over a project that is two weeks behind. How do you start?",
            "expected_duration_seconds": 180,
            "evaluation_criteria": ("Stakeholder alignment", "Scope negotiation", "Planning"),
        },
        {
            "id": "s3",
            "text": "A customer reports data loss that you cannot reproduce. What are your next steps?",
            "expected_duration_seconds": 180,
            "evaluation_criteria": ("Empathy", "Investigation plan", "Escalation judgement"),
        },
    ],
    QuestionKind.case_study: [
        {
            "id": "c1",
            "text": "Sign-ups dropped 20% week over week. How would you investigate the cause?",
            "expected_duration_seconds": 300,
            "evaluation_criteria": ("Hypothesis structure", "Use of data", "Actionable conclusion"),
        },
        {
            "id": "c2",
            "text": "A team wants to move a monolith to microservices. How would you evaluate the proposal?",
            "expected_duration_seconds": 300,
            "evaluation_criteria": ("Cost and benefit framing", "Migration risk", "Clear recommendation"),
        },
        {
            "id": "c3",
            "text": "Support tickets doubled after a redesign. How would you decide whether to roll it back?",
            "expected_duration_seconds": 300,
            "evaluation_criteria": ("Metrics selection", "Trade-off reasoning", "Decision criteria"),
        },
    ],
}

_TYPE_KINDS: dict[str, tuple[QuestionKind, ...]] = {
    "behavioral": (QuestionKind.behavioral,),
    "technical": (QuestionKind.technical,),
    "situational": (QuestionKind.situational,),
    "case_study": (QuestionKind.case_study,),
    "mixed": (QuestionKind.behavioral, QuestionKind.technical),
}


_QUIZ_BANK: list[dict] = [
    {
        "id": "1",
        "kind": QuestionKind.multiple_choice,
        "text": "What is the correct way to declare a variable in JavaScript?",
        "options": ("var myVar = 5;", "variable myVar = 5;", "v myVar = 5;", "declare myVar = 5;"),
        "correct_answer": "var myVar = 5;",
        "explanation": '"var" is one of the ways to declare variables in JavaScript.',
    },
    {
        "id": "2",
        "kind": QuestionKind.true_false,
        "text": "JavaScript is a statically typed language.",
        "options": ("True", "False"),
        "correct_answer": "False",
        "explanation": "JavaScript is a dynamically typed language.",
    },
    {
        "id": "3",
        "kind": QuestionKind.short_answer,
        "text": 'Explain the difference between "let" and "var" in JavaScript.',
    },
    {
        "id": "4",
        "kind": QuestionKind.multiple_choice,
        "text": "Which method is used to add an element to the end of an array?",
        "options": ("push()", "pop()", "shift()", "unshift()"),
        "correct_answer": "push()",
        "explanation": "push() adds elements to the end of an array, while pop() removes the last element.",
    },
    {
        "id": "5",
        "kind": QuestionKind.true_false,
        "text": 'The "===" operator checks for both value and type equality.',
        "options": ("True", "False"),
        "correct_answer": "True",
        "explanation": "The strict equality operator (===) checks both value and type.",
    },
]


def interview_questions(
    *,
    interview_type: str,
    difficulty: str,
    count: int,
    rng: random.Random,
) -> list[Question]:
    """Draw canned interview questions when no generative provider is configured."""
    kinds = _TYPE_KINDS.get((interview_type or "").strip().lower(), _TYPE_KINDS["mixed"])

    pool: list[tuple[QuestionKind, dict]] = []
    for kind in kinds:
        pool.extend((kind, item) for item in _INTERVIEW_BANK[kind])
    rng.shuffle(pool)

    want = max(1, int(count or 1))
    if want > len(pool):
        raise ValidationError(f"the question bank has only {len(pool)} questions of type {interview_type!r}")
    return [Question(kind=kind, difficulty=difficulty, **item) for kind, item in pool[:want]]


def quiz_questions(*, rng: random.Random, shuffle: bool = False) -> list[Question]:
    items = [Question(**item) for item in _QUIZ_BANK]
    if shuffle:
        rng.shuffle(items)
    return items
