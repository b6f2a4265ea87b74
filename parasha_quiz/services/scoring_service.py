"""
Scoring Service
Pure scoring of an attempt's answers against quiz content
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Answer:
    """One finalized answer collected by the session"""
    question_id: int
    choice_id: Optional[int]
    time_spent_seconds: int = 0


@dataclass(frozen=True)
class ScoredResponse:
    question_id: int
    selected_choice_id: Optional[int]
    is_correct: bool
    points_earned: int
    time_spent_seconds: int


@dataclass(frozen=True)
class ScoreResult:
    total_score: int
    max_score: int
    score_percent: float
    responses: List[ScoredResponse] = field(default_factory=list)

    @property
    def correct_count(self):
        return sum(1 for r in self.responses if r.is_correct)


class ScoringService:
    """Service for scoring answers"""

    @staticmethod
    def calculate_points(is_correct, points):
        """Full question points for a correct answer, nothing otherwise"""
        if not is_correct:
            return 0
        return points or 0

    @staticmethod
    def calculate_percent(total_score, max_score):
        if max_score <= 0:
            return 0.0
        return total_score / max_score * 100

    @staticmethod
    def score_answers(questions, answers):
        """
        Score a list of answers against the quiz questions

        Args:
            questions: every question of the quiz (QuestionSnapshot-like:
                id, points, find_choice)
            answers: Answer tuples in the order they were given

        Returns:
            ScoreResult. Questions without an answer earn nothing and get
            no response entry; answers to unknown questions are ignored.
            A question answered twice keeps its latest answer.
        """
        by_id = {q.id: q for q in questions}
        max_score = sum(q.points or 0 for q in questions)

        latest = {}
        for answer in answers:
            if answer.question_id in by_id:
                latest[answer.question_id] = answer

        responses = []
        total_score = 0
        for answer in latest.values():
            question = by_id[answer.question_id]

            choice = question.find_choice(answer.choice_id) if answer.choice_id is not None else None
            is_correct = bool(choice and choice.is_correct)
            points_earned = ScoringService.calculate_points(is_correct, question.points)
            total_score += points_earned

            responses.append(ScoredResponse(
                question_id=answer.question_id,
                selected_choice_id=answer.choice_id,
                is_correct=is_correct,
                points_earned=points_earned,
                time_spent_seconds=answer.time_spent_seconds,
            ))

        return ScoreResult(
            total_score=total_score,
            max_score=max_score,
            score_percent=ScoringService.calculate_percent(total_score, max_score),
            responses=responses,
        )
