"""
User Model
Identity supplied by the authentication layer
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class User(db.Model):
    """User model"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    display_name = db.Column(db.String(100), nullable=False)
    hebrew_name = db.Column(db.String(100))
    email = db.Column(db.String(255))
    grade = db.Column(db.Integer)

    # student or admin
    role = db.Column(db.String(20), nullable=False, default='student')
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    stats = db.relationship('UserStats', backref='user', uselist=False, lazy=True)

    def __repr__(self):
        return f'<User {self.username}>'
