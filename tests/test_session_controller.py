"""Tests for the attempt session state machine."""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from parasha_quiz.extensions import db
from parasha_quiz.models import QuizAttempt, QuestionResponse
from parasha_quiz.services import AttemptService, ScoringService, StatsService, load_quiz
from parasha_quiz.services.session_controller import (
    AttemptSession, AttemptStartError, InvalidChoice, InvalidTransition, SelectionRequired,
    SubmissionError, NOT_STARTED, IN_PROGRESS, FINISHED, ABANDONED, reap_idle_sessions,
)

from conftest import ManualTimer


def correct_choice(question):
    return next(c.id for c in question.choices if c.is_correct)


def wrong_choice(question):
    return next(c.id for c in question.choices if not c.is_correct)


@pytest.fixture
def open_session(student, clock):
    def _open(quiz, attempt_number=1, **kwargs):
        snapshot = load_quiz(quiz.id)
        attempt_session = AttemptSession(
            snapshot, student.id, attempt_number,
            clock=clock, timer_factory=ManualTimer, **kwargs
        )
        attempt_session.start()
        return attempt_session
    return _open


def answer_current(attempt_session, correct=True):
    question = attempt_session.current_question
    choice = correct_choice(question) if correct else wrong_choice(question)
    attempt_session.select_answer(choice)


# ======================= START =======================

def test_start_creates_attempt_row(make_quiz, open_session, student, clock):
    quiz = make_quiz(points=(10, 20, 5))
    attempt_session = open_session(quiz)

    assert attempt_session.state == IN_PROGRESS
    attempt = db.session.get(QuizAttempt, attempt_session.attempt_id)
    assert attempt.user_id == student.id
    assert attempt.attempt_number == 1
    assert attempt.max_possible_score == 35
    assert attempt.completed_at is None
    assert attempt.started_at.replace(tzinfo=None) == clock.now.replace(tzinfo=None)


def test_start_twice_is_rejected(make_quiz, open_session):
    attempt_session = open_session(make_quiz())
    with pytest.raises(InvalidTransition):
        attempt_session.start()


def test_start_failure_keeps_session_closed(make_quiz, student, clock):
    snapshot = load_quiz(make_quiz().id)
    attempt_session = AttemptSession(snapshot, student.id, 1, clock=clock, timer_factory=ManualTimer)

    with patch.object(
        AttemptService, 'create_attempt',
        side_effect=OperationalError('INSERT', {}, Exception('db down'))
    ):
        with pytest.raises(AttemptStartError):
            attempt_session.start()

    assert attempt_session.state == NOT_STARTED
    assert attempt_session.attempt_id is None
    assert attempt_session.timer is None
    with pytest.raises(InvalidTransition):
        attempt_session.select_answer(1)


def test_untimed_quiz_has_no_timer(make_quiz, open_session):
    attempt_session = open_session(make_quiz(time_limit_seconds=None))
    assert attempt_session.timer is None
    assert attempt_session.time_left is None


def test_timed_quiz_starts_countdown(make_quiz, open_session):
    attempt_session = open_session(make_quiz(time_limit_seconds=90))
    assert attempt_session.time_left == 90
    assert attempt_session.timer.running


# ======================= ANSWERING =======================

def test_select_answer_must_belong_to_current_question(make_quiz, open_session):
    attempt_session = open_session(make_quiz())
    other_question = attempt_session.quiz.questions[1]
    with pytest.raises(InvalidChoice):
        attempt_session.select_answer(correct_choice(other_question))


def test_next_requires_selection(make_quiz, open_session):
    attempt_session = open_session(make_quiz())
    with pytest.raises(SelectionRequired):
        attempt_session.next_question()
    assert attempt_session.cursor == 0


def test_next_records_answer_and_advances(make_quiz, open_session, clock):
    attempt_session = open_session(make_quiz())
    answer_current(attempt_session)
    clock.advance(7)
    attempt_session.next_question()

    assert attempt_session.cursor == 1
    assert attempt_session.selected_choice_id is None
    assert len(attempt_session.answers) == 1
    assert attempt_session.answers[0].time_spent_seconds == 7

    answer_current(attempt_session)
    clock.advance(3)
    attempt_session.next_question()
    assert attempt_session.answers[1].time_spent_seconds == 3


def test_next_on_last_question_does_not_advance(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10, 10)))
    answer_current(attempt_session)
    attempt_session.next_question()
    answer_current(attempt_session)
    attempt_session.next_question()

    assert attempt_session.cursor == 1
    assert attempt_session.state == IN_PROGRESS
    assert len(attempt_session.answers) == 2


def test_finish_only_on_last_question(make_quiz, open_session):
    attempt_session = open_session(make_quiz())
    answer_current(attempt_session)
    with pytest.raises(InvalidTransition):
        attempt_session.finish()


def test_finish_requires_selection(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10,)))
    with pytest.raises(SelectionRequired):
        attempt_session.finish()
    assert attempt_session.state == IN_PROGRESS


def test_nothing_is_persisted_before_submission(make_quiz, open_session):
    attempt_session = open_session(make_quiz())
    answer_current(attempt_session)
    attempt_session.next_question()
    assert QuestionResponse.query.count() == 0


# ======================= SUBMISSION =======================

def test_manual_finish_scores_and_persists(make_quiz, open_session, student, clock):
    attempt_session = open_session(make_quiz())
    for correct in (True, False):
        answer_current(attempt_session, correct)
        clock.advance(10)
        attempt_session.next_question()
    answer_current(attempt_session, True)
    clock.advance(10)

    attempt_id = attempt_session.finish()

    assert attempt_session.state == FINISHED
    attempt = db.session.get(QuizAttempt, attempt_id)
    assert attempt.total_score == 20
    assert attempt.score_percent == pytest.approx(66.667, rel=1e-3)
    assert attempt.time_spent_seconds == 30
    assert attempt.completed_at is not None
    assert attempt.is_best_attempt is True
    assert QuestionResponse.query.filter_by(attempt_id=attempt_id).count() == 3

    stats = StatsService.get_user_stats(student.id)
    assert stats.total_quizzes_completed == 1
    assert stats.total_questions_answered == 3
    assert stats.total_correct_answers == 2
    assert stats.total_points == 20


def test_timeout_scenario_three_questions(make_quiz, open_session, clock, student):
    quiz = make_quiz(points=(10, 10, 10), time_limit_seconds=3)
    attempt_session = open_session(quiz)
    q1, q2, q3 = attempt_session.quiz.questions

    answer_current(attempt_session, correct=True)
    attempt_session.timer.tick()
    attempt_session.next_question()
    answer_current(attempt_session, correct=False)
    attempt_session.timer.tick()
    attempt_session.next_question()

    # Q3 is on screen with nothing selected when time runs out
    attempt_session.timer.tick()

    assert attempt_session.state == FINISHED
    assert attempt_session.timed_out is True
    attempt = db.session.get(QuizAttempt, attempt_session.attempt_id)
    assert attempt.total_score == 10
    assert attempt.max_possible_score == 30
    assert attempt.score_percent == pytest.approx(33.33, abs=0.01)

    responses = {r.question_id: r for r in QuestionResponse.query.filter_by(attempt_id=attempt.id)}
    assert set(responses) == {q1.id, q2.id}
    assert responses[q1.id].is_correct is True
    assert responses[q2.id].is_correct is False
    assert q3.id not in responses

    stats = StatsService.get_user_stats(student.id)
    assert stats.total_questions_answered == 2
    assert stats.total_correct_answers == 1


def test_timeout_includes_current_selection(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10, 10), time_limit_seconds=1))
    answer_current(attempt_session, correct=True)

    attempt_session.timer.tick()

    assert attempt_session.state == FINISHED
    assert attempt_session.result.total_score == 10
    assert len(attempt_session.result.responses) == 1


def test_timeout_and_manual_finish_score_the_same(make_quiz, open_session, make_user, clock):
    quiz = make_quiz(points=(10, 20), time_limit_seconds=60)

    def play(attempt_session):
        answer_current(attempt_session, correct=False)
        attempt_session.next_question()
        answer_current(attempt_session, correct=True)

    manual = open_session(quiz, attempt_number=1)
    play(manual)
    manual.finish()

    timed = open_session(quiz, attempt_number=2)
    play(timed)
    timed.expire()

    assert manual.timed_out is False
    assert timed.timed_out is True
    assert manual.result.total_score == timed.result.total_score == 20
    assert manual.result.score_percent == timed.result.score_percent
    assert [(r.question_id, r.selected_choice_id, r.is_correct) for r in manual.result.responses] == \
        [(r.question_id, r.selected_choice_id, r.is_correct) for r in timed.result.responses]


def test_finish_stops_the_countdown(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10,), time_limit_seconds=30))
    answer_current(attempt_session)
    attempt_session.finish()
    assert attempt_session.timer.stopped


def test_tick_after_finish_never_submits_again(make_quiz, open_session, student):
    attempt_session = open_session(make_quiz(points=(10,), time_limit_seconds=2))
    answer_current(attempt_session)

    with patch.object(AttemptService, 'finalize_attempt', wraps=AttemptService.finalize_attempt) as finalize:
        attempt_session.finish()
        attempt_session.timer.tick()
        attempt_session.timer.tick()
        attempt_session.timer.stop()
        attempt_session.expire()

    finalize.assert_called_once()
    assert StatsService.get_user_stats(student.id).total_quizzes_completed == 1


def test_repeated_submit_is_a_noop(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10,)))
    answer_current(attempt_session)
    first = attempt_session.finish()
    assert attempt_session.finish() == first
    assert attempt_session.submit() == first
    assert QuestionResponse.query.count() == 1


def test_on_finished_called_once(make_quiz, open_session):
    finished = []
    attempt_session = open_session(make_quiz(points=(10,)), on_finished=finished.append)
    answer_current(attempt_session)
    attempt_session.finish()
    attempt_session.expire()
    assert finished == [attempt_session]


def test_response_failure_still_finalizes_attempt(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10, 10)))
    answer_current(attempt_session)
    attempt_session.next_question()
    answer_current(attempt_session)

    with patch.object(AttemptService, 'save_responses', return_value=False):
        attempt_id = attempt_session.finish()

    attempt = db.session.get(QuizAttempt, attempt_id)
    assert attempt.completed_at is not None
    assert attempt.total_score == 20
    assert QuestionResponse.query.count() == 0


def test_stats_failure_does_not_block_finish(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=(10,)))
    answer_current(attempt_session)

    with patch.object(StatsService, 'record_attempt', return_value=False):
        attempt_id = attempt_session.finish()

    assert attempt_session.state == FINISHED
    assert db.session.get(QuizAttempt, attempt_id).score_percent == 100.0


def test_quiz_without_questions(make_quiz, open_session):
    attempt_session = open_session(make_quiz(points=()))
    attempt_id = attempt_session.finish()
    attempt = db.session.get(QuizAttempt, attempt_id)
    assert attempt.score_percent == 0
    assert attempt.max_possible_score == 0


# ======================= ABANDON =======================

def test_abandon_stops_timer_and_blocks_submission(make_quiz, open_session):
    attempt_session = open_session(make_quiz(time_limit_seconds=5))
    answer_current(attempt_session)

    assert attempt_session.abandon() is True
    assert attempt_session.state == ABANDONED
    assert attempt_session.timer.stopped
    assert attempt_session.abandon() is False
    assert attempt_session.expire() is None

    attempt = db.session.get(QuizAttempt, attempt_session.attempt_id)
    assert attempt.completed_at is None


def test_snapshot_hides_correctness(make_quiz, open_session):
    attempt_session = open_session(make_quiz(time_limit_seconds=45))
    payload = attempt_session.snapshot()
    assert payload['state'] == IN_PROGRESS
    assert payload['question_index'] == 0
    assert payload['total_questions'] == 3
    assert payload['time_left'] == 45
    assert all('is_correct' not in c for c in payload['question']['choices'])


def test_failed_submission_closes_session(make_quiz, open_session):
    closed = []
    attempt_session = open_session(
        make_quiz(points=(10,), time_limit_seconds=30), on_finished=closed.append
    )
    answer_current(attempt_session)

    with patch.object(ScoringService, 'score_answers', side_effect=RuntimeError('bad content')):
        with pytest.raises(SubmissionError):
            attempt_session.finish()

    assert attempt_session.state == ABANDONED
    assert attempt_session.timer.stopped
    assert closed == [attempt_session]
    assert attempt_session.expire() is None
    assert closed == [attempt_session]
    assert db.session.get(QuizAttempt, attempt_session.attempt_id).completed_at is None


# ======================= IDLE SESSIONS =======================

def test_activity_resets_idle_time(make_quiz, open_session, clock):
    attempt_session = open_session(make_quiz())
    clock.advance(40)
    assert attempt_session.idle_seconds() == 40

    answer_current(attempt_session)
    assert attempt_session.idle_seconds() == 0

    clock.advance(5)
    attempt_session.touch()
    assert attempt_session.idle_seconds() == 0


def test_reap_idle_sessions(make_quiz, open_session, clock):
    quiz = make_quiz(time_limit_seconds=600)
    stale = open_session(quiz, attempt_number=1)
    watched = open_session(quiz, attempt_number=2)
    clock.advance(100)
    fresh = open_session(quiz, attempt_number=3)
    registry = {s.attempt_id: s for s in (stale, watched, fresh)}

    reaped = reap_idle_sessions(registry, 60, now=clock(), exclude={watched.attempt_id})

    assert reaped == [stale.attempt_id]
    assert set(registry) == {watched.attempt_id, fresh.attempt_id}
    assert stale.state == ABANDONED
    assert stale.timer.stopped
    assert watched.state == IN_PROGRESS
    assert fresh.state == IN_PROGRESS


def test_reap_keeps_active_sessions(make_quiz, open_session, clock):
    attempt_session = open_session(make_quiz())
    registry = {attempt_session.attempt_id: attempt_session}
    clock.advance(30)
    assert reap_idle_sessions(registry, 60, now=clock()) == []
    assert registry
