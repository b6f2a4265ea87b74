"""
UserStats Model
Running aggregates per user, maintained by StatsService
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class UserStats(db.Model):
    """Aggregate row, one per user"""
    __tablename__ = 'user_stats'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    total_quizzes_completed = db.Column(db.Integer, nullable=False, default=0)
    total_questions_answered = db.Column(db.Integer, nullable=False, default=0)
    total_correct_answers = db.Column(db.Integer, nullable=False, default=0)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    average_score_percent = db.Column(db.Float, nullable=False, default=0.0)
    current_streak_weeks = db.Column(db.Integer, nullable=False, default=0)
    best_streak_weeks = db.Column(db.Integer, nullable=False, default=0)
    last_quiz_at = db.Column(db.DateTime(timezone=True))
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    def __repr__(self):
        return f'<UserStats user {self.user_id}: {self.total_quizzes_completed} quizzes>'

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'total_quizzes_completed': self.total_quizzes_completed,
            'total_questions_answered': self.total_questions_answered,
            'total_correct_answers': self.total_correct_answers,
            'total_points': self.total_points,
            'average_score_percent': self.average_score_percent,
            'current_streak_weeks': self.current_streak_weeks,
            'best_streak_weeks': self.best_streak_weeks,
            'last_quiz_at': self.last_quiz_at.isoformat() if self.last_quiz_at else None,
        }
