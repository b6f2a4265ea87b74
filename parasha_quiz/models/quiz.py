"""
Quiz Model
A gradable unit tied to one weekly portion
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class Quiz(db.Model):
    """Quiz model"""
    __tablename__ = 'quizzes'

    id = db.Column(db.Integer, primary_key=True)
    parasha_id = db.Column(db.Integer, db.ForeignKey('parshiyot.id'), nullable=False)
    title_hebrew = db.Column(db.String(200), nullable=False)
    title_english = db.Column(db.String(200))
    description_hebrew = db.Column(db.Text)

    max_attempts = db.Column(db.Integer, nullable=False, default=3)

    # NULL means untimed
    time_limit_seconds = db.Column(db.Integer, nullable=True)

    points_per_question = db.Column(db.Integer, nullable=False, default=10)

    # NULL falls back to DEFAULT_PASSING_SCORE_PERCENT
    passing_score_percent = db.Column(db.Float, nullable=True)

    is_published = db.Column(db.Boolean, default=False)
    available_from = db.Column(db.DateTime(timezone=True))
    available_until = db.Column(db.DateTime(timezone=True))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    # Relationships
    parasha = db.relationship('Parasha', backref='quizzes', lazy=True)
    questions = db.relationship(
        'Question', backref='quiz', lazy=True, order_by='Question.sort_order'
    )

    def __repr__(self):
        return f'<Quiz {self.title_hebrew}>'

    def get_passing_score(self, default=70):
        if self.passing_score_percent is None:
            return default
        return self.passing_score_percent
