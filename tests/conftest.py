from datetime import datetime, timedelta, timezone

import pytest

from parasha_quiz import create_app
from parasha_quiz.extensions import db, active_sessions, attempt_subscribers
from parasha_quiz.models import User, Parasha, Aliyah, Quiz, Question, AnswerChoice
from parasha_quiz.services.countdown import CountdownTimer


class FakeClock:
    """Deterministic clock for sessions; advance() moves it forward"""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 6, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class ManualTimer(CountdownTimer):
    """Countdown driven only by explicit tick() calls"""

    def start(self):
        self._running = True
        return True


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    for attempt_session in list(active_sessions.values()):
        attempt_session.abandon()
    active_sessions.clear()
    attempt_subscribers.clear()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_user(app):
    def _make_user(username='student1', role='student'):
        user = User(username=username, display_name=username.title(), role=role)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def student(make_user):
    return make_user()


@pytest.fixture
def login(client):
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
            sess['username'] = user.username
            sess['role'] = user.role
    return _login


@pytest.fixture
def make_quiz(app):
    """
    Build a quiz; each question gets three choices and the second one
    (sort_order 1) is correct.
    """
    def _make_quiz(points=(10, 10, 10), max_attempts=3, time_limit_seconds=None,
                   is_published=True, passing_score_percent=None):
        parasha = Parasha(
            name_hebrew='בראשית', name_english='Bereshit',
            book_hebrew='בראשית', book_english='Genesis', week_number=1,
        )
        db.session.add(parasha)
        db.session.flush()

        aliyah = Aliyah(
            parasha_id=parasha.id, aliyah_number=1,
            name_hebrew='ראשון', name_english='Rishon',
        )
        db.session.add(aliyah)

        quiz = Quiz(
            parasha_id=parasha.id,
            title_hebrew='חידון בראשית',
            max_attempts=max_attempts,
            time_limit_seconds=time_limit_seconds,
            passing_score_percent=passing_score_percent,
            is_published=is_published,
        )
        db.session.add(quiz)
        db.session.flush()

        for idx, value in enumerate(points):
            question = Question(
                quiz_id=quiz.id,
                aliyah_id=aliyah.id,
                question_text_hebrew=f'שאלה {idx + 1}',
                points=value,
                sort_order=idx,
                explanation_hebrew=f'הסבר {idx + 1}',
            )
            db.session.add(question)
            db.session.flush()
            for order in range(3):
                db.session.add(AnswerChoice(
                    question_id=question.id,
                    choice_text_hebrew=f'תשובה {order + 1}',
                    is_correct=(order == 1),
                    sort_order=order,
                ))

        db.session.commit()
        return quiz
    return _make_quiz
