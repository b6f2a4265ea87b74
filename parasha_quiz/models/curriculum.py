"""
Curriculum Models
Weekly Torah portions (parshiyot) and their sub-sections (aliyot)
"""
from parasha_quiz.extensions import db
from datetime import datetime, timezone


def now_utc():
    return datetime.now(timezone.utc)


class Parasha(db.Model):
    """Weekly Torah portion"""
    __tablename__ = 'parshiyot'

    id = db.Column(db.Integer, primary_key=True)
    name_hebrew = db.Column(db.String(100), nullable=False)
    name_english = db.Column(db.String(100), nullable=False)
    book_hebrew = db.Column(db.String(50), nullable=False)
    book_english = db.Column(db.String(50), nullable=False)
    week_number = db.Column(db.Integer, nullable=False)
    start_reference = db.Column(db.String(50))
    end_reference = db.Column(db.String(50))
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    aliyot = db.relationship(
        'Aliyah', backref='parasha', lazy=True, order_by='Aliyah.aliyah_number'
    )

    def __repr__(self):
        return f'<Parasha {self.name_english}>'


class Aliyah(db.Model):
    """One of the sections a portion is read in"""
    __tablename__ = 'aliyot'

    id = db.Column(db.Integer, primary_key=True)
    parasha_id = db.Column(db.Integer, db.ForeignKey('parshiyot.id'), nullable=False)
    aliyah_number = db.Column(db.Integer, nullable=False)
    name_hebrew = db.Column(db.String(100), nullable=False)
    name_english = db.Column(db.String(100), nullable=False)
    start_reference = db.Column(db.String(50))
    end_reference = db.Column(db.String(50))
    summary_hebrew = db.Column(db.Text)

    def __repr__(self):
        return f'<Aliyah {self.aliyah_number} of parasha {self.parasha_id}>'
