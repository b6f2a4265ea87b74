"""
Question Model
Multiple-choice questions and their answer choices
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class Question(db.Model):
    """Question model"""
    __tablename__ = 'questions'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False)
    aliyah_id = db.Column(db.Integer, db.ForeignKey('aliyot.id'), nullable=True)

    # Question content
    question_text_hebrew = db.Column(db.Text, nullable=False)
    question_text_english = db.Column(db.Text)

    # multiple_choice or true_false
    question_type = db.Column(db.String(20), default='multiple_choice')
    difficulty = db.Column(db.Integer, default=1)

    # Scoring
    points = db.Column(db.Integer, nullable=False, default=10)
    explanation_hebrew = db.Column(db.Text)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    aliyah = db.relationship('Aliyah', lazy=True)
    answer_choices = db.relationship(
        'AnswerChoice', backref='question', lazy=True,
        order_by='AnswerChoice.sort_order'
    )

    def __repr__(self):
        return f'<Question {self.id}: {self.question_text_hebrew[:50]}...>'

    def get_correct_choice(self):
        """First choice flagged correct, None if authoring left it unset"""
        return next((c for c in self.answer_choices if c.is_correct), None)


class AnswerChoice(db.Model):
    """Answer choice model"""
    __tablename__ = 'answer_choices'

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id'), nullable=False)
    choice_text_hebrew = db.Column(db.Text, nullable=False)
    choice_text_english = db.Column(db.Text)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    def __repr__(self):
        return f'<AnswerChoice {self.id} of Q{self.question_id}>'
