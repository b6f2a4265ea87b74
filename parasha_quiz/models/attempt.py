"""
QuizAttempt Model
One user's one pass through one quiz
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class QuizAttempt(db.Model):
    """Attempt ledger row"""
    __tablename__ = 'quiz_attempts'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # 1-based, strictly increasing per (user, quiz)
    attempt_number = db.Column(db.Integer, nullable=False)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=now_utc)

    # NULL while in progress
    completed_at = db.Column(db.DateTime(timezone=True))
    time_spent_seconds = db.Column(db.Integer)

    total_score = db.Column(db.Integer, nullable=False, default=0)
    max_possible_score = db.Column(db.Integer)
    score_percent = db.Column(db.Float)
    is_best_attempt = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    quiz = db.relationship('Quiz', lazy=True)
    responses = db.relationship(
        'QuestionResponse', backref='attempt', lazy=True,
        order_by='QuestionResponse.id'
    )

    __table_args__ = (
        db.UniqueConstraint(
            'quiz_id', 'user_id', 'attempt_number',
            name='unique_attempt_number_per_user_quiz'
        ),
    )

    def __repr__(self):
        return f'<QuizAttempt #{self.attempt_number} of quiz {self.quiz_id} by user {self.user_id}>'

    @property
    def is_completed(self):
        return self.completed_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'attempt_number': self.attempt_number,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'time_spent_seconds': self.time_spent_seconds,
            'total_score': self.total_score,
            'max_possible_score': self.max_possible_score,
            'score_percent': self.score_percent,
            'is_best_attempt': self.is_best_attempt,
        }
