"""
Content Service
Read contract over authored quiz content

An attempt runs across many requests (and the countdown runs in a
background task), so the session works from a detached snapshot rather
than from ORM rows bound to one request's database session.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from parasha_quiz.extensions import db
from parasha_quiz.models import Quiz


@dataclass(frozen=True)
class ChoiceSnapshot:
    id: int
    text: str
    is_correct: bool


@dataclass(frozen=True)
class QuestionSnapshot:
    id: int
    text: str
    points: int
    choices: Tuple[ChoiceSnapshot, ...]
    aliyah_name: Optional[str] = None
    explanation: Optional[str] = None

    def find_choice(self, choice_id):
        return next((c for c in self.choices if c.id == choice_id), None)

    def to_public_dict(self):
        """Payload for the player: correctness flags stay on the server"""
        return {
            'id': self.id,
            'text': self.text,
            'points': self.points,
            'aliyah': self.aliyah_name,
            'choices': [{'id': c.id, 'text': c.text} for c in self.choices],
        }


@dataclass(frozen=True)
class QuizSnapshot:
    id: int
    title: str
    max_attempts: int
    time_limit_seconds: Optional[int]
    passing_score_percent: Optional[float]
    questions: Tuple[QuestionSnapshot, ...]
    parasha_name: Optional[str] = None

    @property
    def max_score(self):
        return sum(q.points for q in self.questions)


def _snapshot_question(question):
    choices = sorted(question.answer_choices, key=lambda c: (c.sort_order or 0, c.id))
    return QuestionSnapshot(
        id=question.id,
        text=question.question_text_hebrew,
        points=question.points or 0,
        choices=tuple(
            ChoiceSnapshot(id=c.id, text=c.choice_text_hebrew, is_correct=bool(c.is_correct))
            for c in choices
        ),
        aliyah_name=question.aliyah.name_hebrew if question.aliyah else None,
        explanation=question.explanation_hebrew,
    )


def snapshot_quiz(quiz):
    """Build an immutable snapshot of a Quiz row with ordered questions and choices"""
    questions = sorted(quiz.questions, key=lambda q: (q.sort_order or 0, q.id))
    return QuizSnapshot(
        id=quiz.id,
        title=quiz.title_hebrew,
        max_attempts=quiz.max_attempts,
        time_limit_seconds=quiz.time_limit_seconds or None,
        passing_score_percent=quiz.passing_score_percent,
        questions=tuple(_snapshot_question(q) for q in questions),
        parasha_name=quiz.parasha.name_hebrew if quiz.parasha else None,
    )


def load_quiz(quiz_id):
    """
    Fetch a published quiz with its ordered questions and choices

    Returns:
        QuizSnapshot, or None when the quiz is missing or unpublished
    """
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None or not quiz.is_published:
        return None
    return snapshot_quiz(quiz)
