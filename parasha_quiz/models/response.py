"""
QuestionResponse Model
Stores the answer given to one question within one attempt
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class QuestionResponse(db.Model):
    """Response ledger row"""
    __tablename__ = 'question_responses'

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey('quiz_attempts.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id'), nullable=False)
    selected_choice_id = db.Column(db.Integer, db.ForeignKey('answer_choices.id'), nullable=True)
    is_correct = db.Column(db.Boolean)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    time_spent_seconds = db.Column(db.Integer)
    answered_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    question = db.relationship('Question', lazy=True)
    selected_choice = db.relationship('AnswerChoice', lazy=True)

    __table_args__ = (
        db.UniqueConstraint(
            'attempt_id', 'question_id',
            name='unique_response_per_question'
        ),
    )

    def __repr__(self):
        return f'<QuestionResponse Q{self.question_id} in attempt {self.attempt_id}>'
