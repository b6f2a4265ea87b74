"""
Attempt Session Controller
Drives one user through one quiz attempt: start, answer, countdown, submit

States:
    not_started -> in_progress -> submitting -> finished
    in_progress -> abandoned (torn down without submitting)
    submitting -> abandoned (submission failed)
"""
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from parasha_quiz.services.attempt_service import AttemptService
from parasha_quiz.services.countdown import CountdownTimer
from parasha_quiz.services.scoring_service import Answer, ScoringService
from parasha_quiz.services.stats_service import StatsService
from parasha_quiz.utils import now_utc, elapsed_seconds

logger = logging.getLogger(__name__)

NOT_STARTED = 'not_started'
IN_PROGRESS = 'in_progress'
SUBMITTING = 'submitting'
FINISHED = 'finished'
ABANDONED = 'abandoned'


class SessionError(Exception):
    """Base class for attempt session errors"""
    status_code = 409


class AttemptStartError(SessionError):
    """The attempt row could not be created; the session did not start"""
    status_code = 503


class InvalidTransition(SessionError):
    status_code = 409


class SelectionRequired(SessionError):
    status_code = 400


class InvalidChoice(SessionError):
    status_code = 400


class SubmissionError(SessionError):
    """Scoring or persistence blew up mid-submission; the session is closed"""
    status_code = 500


class AttemptSession:
    """
    In-memory state of one attempt

    Answers are collected locally and persisted in one batch at submission.
    The caller checks the attempt limit before start(); the session does
    not re-validate it.
    """

    def __init__(self, quiz, user_id, attempt_number, clock=now_utc,
                 timer_factory=CountdownTimer, tick_interval=1,
                 on_tick=None, on_finished=None, app=None):
        self.quiz = quiz
        self.user_id = user_id
        self.attempt_number = attempt_number
        self.state = NOT_STARTED

        self.attempt_id = None
        self.started_at = None
        self.last_activity_at = None
        self.cursor = 0
        self.selected_choice_id = None
        self.answers = []
        self.result = None
        self.timed_out = False

        self._clock = clock
        self._timer_factory = timer_factory
        self._tick_interval = tick_interval
        self._timer = None
        self._question_started_at = None
        self._on_tick = on_tick
        self._on_finished = on_finished
        self._app = app
        self._lock = threading.RLock()

    def __repr__(self):
        return f'<AttemptSession attempt={self.attempt_id} quiz={self.quiz.id} state={self.state}>'

    # ================= PROPERTIES =================

    @property
    def total_questions(self):
        return len(self.quiz.questions)

    @property
    def current_question(self):
        if self.cursor < self.total_questions:
            return self.quiz.questions[self.cursor]
        return None

    @property
    def is_last_question(self):
        return self.cursor >= self.total_questions - 1

    @property
    def time_left(self):
        """Seconds left on the countdown, None for untimed quizzes"""
        if self._timer is None:
            return None
        return self._timer.remaining

    @property
    def timer(self):
        return self._timer

    @property
    def is_closed(self):
        return self.state in (SUBMITTING, FINISHED, ABANDONED)

    # ================= TRANSITIONS =================

    def start(self):
        """
        Create the attempt row and begin the countdown

        Returns:
            int: the attempt id

        Raises:
            AttemptStartError: the attempt row could not be written
        """
        with self._lock:
            if self.state != NOT_STARTED:
                raise InvalidTransition(f'Cannot start a session that is {self.state}')

            started_at = self._clock()
            try:
                attempt_id = AttemptService.create_attempt(
                    quiz_id=self.quiz.id,
                    user_id=self.user_id,
                    attempt_number=self.attempt_number,
                    started_at=started_at,
                    max_possible_score=self.quiz.max_score,
                )
            except SQLAlchemyError as exc:
                raise AttemptStartError('Could not start the quiz') from exc

            self.attempt_id = attempt_id
            self.started_at = started_at
            self.last_activity_at = started_at
            self._question_started_at = started_at
            self.state = IN_PROGRESS

            if self.quiz.time_limit_seconds:
                self._timer = self._timer_factory(
                    self.quiz.time_limit_seconds,
                    on_expire=self._handle_expire,
                    on_tick=self._handle_tick,
                    interval=self._tick_interval,
                )
                self._timer.start()

        return attempt_id

    def select_answer(self, choice_id):
        """Record a selection for the current question; nothing is persisted"""
        with self._lock:
            self._require_in_progress()
            question = self.current_question
            if question is None or question.find_choice(choice_id) is None:
                raise InvalidChoice(f'Choice {choice_id} does not belong to the current question')
            self.selected_choice_id = choice_id
            self.last_activity_at = self._clock()

    def next_question(self):
        """
        Finalize the current answer and move the cursor forward

        On the last question the answer is recorded and the cursor stays;
        submission is a separate finish().
        """
        with self._lock:
            self._require_in_progress()
            if self.selected_choice_id is None:
                raise SelectionRequired('Select an answer first')

            now = self._clock()
            self.last_activity_at = now
            self._record_current(now)

            if not self.is_last_question:
                self.cursor += 1
                self.selected_choice_id = None
                self._question_started_at = now
            return self.cursor

    def finish(self):
        """
        Manual submission from the last question

        Returns:
            int: the attempt id (repeated calls are no-ops returning it)
        """
        with self._lock:
            if self.state in (SUBMITTING, FINISHED):
                return self.attempt_id
            self._require_in_progress()
            if not self.is_last_question:
                raise InvalidTransition('Finish is only available on the last question')

            question = self.current_question
            if question is not None and self.selected_choice_id is None \
                    and not self._has_answer(question.id):
                raise SelectionRequired('Select an answer first')

            return self.submit(timed_out=False)

    def expire(self):
        """Countdown reached zero: submit whatever has been answered"""
        return self.submit(timed_out=True)

    def submit(self, timed_out=False):
        """
        Score, persist and close the attempt

        Only the first call does any work; calls while submitting or
        finished return the attempt id, calls after abandon return None.
        on_finished runs once the session is closed, also when the
        submission failed (the session is then abandoned).

        Raises:
            SubmissionError: scoring or persistence failed unexpectedly
        """
        failure = None
        with self._lock:
            if self.state in (SUBMITTING, FINISHED):
                return self.attempt_id
            if self.state == ABANDONED:
                return None
            if self.state != IN_PROGRESS:
                raise InvalidTransition(f'Cannot submit a session that is {self.state}')

            self.state = SUBMITTING
            self._stop_timer()

            try:
                result = self._score_and_persist()
            except Exception as exc:
                logger.exception('Submission of attempt %s failed', self.attempt_id)
                self.state = ABANDONED
                failure = exc
            else:
                self.result = result
                self.timed_out = timed_out
                self.state = FINISHED

        if failure is None:
            logger.info(
                'Attempt %s submitted (%s): %s/%s',
                self.attempt_id, 'timeout' if timed_out else 'finish',
                result.total_score, result.max_score
            )
        if self._on_finished:
            self._on_finished(self)
        if failure is not None:
            raise SubmissionError('Could not submit the attempt') from failure
        return self.attempt_id

    def abandon(self):
        """
        Tear the session down without submitting

        Returns:
            bool: True when the session was open and is now abandoned
        """
        with self._lock:
            if self.state not in (NOT_STARTED, IN_PROGRESS):
                return False
            self._stop_timer()
            self.state = ABANDONED
        logger.info('Attempt %s abandoned', self.attempt_id)
        return True

    # ================= PRESENTATION =================

    def snapshot(self):
        """Player payload; correctness flags never leave the server"""
        question = self.current_question if self.state == IN_PROGRESS else None
        return {
            'attempt_id': self.attempt_id,
            'quiz_id': self.quiz.id,
            'attempt_number': self.attempt_number,
            'max_attempts': self.quiz.max_attempts,
            'state': self.state,
            'question_index': self.cursor,
            'total_questions': self.total_questions,
            'is_last_question': self.is_last_question,
            'question': question.to_public_dict() if question else None,
            'selected_choice_id': self.selected_choice_id,
            'answered': len(self.answers),
            'time_left': self.time_left,
        }

    def touch(self):
        """Mark the player as still present"""
        self.last_activity_at = self._clock()

    def idle_seconds(self, now=None):
        return elapsed_seconds(self.last_activity_at, now or self._clock())

    # ================= INTERNALS =================

    def _score_and_persist(self):
        now = self._clock()
        self._record_current(now)
        result = ScoringService.score_answers(self.quiz.questions, self.answers)

        if not AttemptService.save_responses(self.attempt_id, result.responses, now):
            logger.error(
                'Responses of attempt %s were not saved; finalizing with local score',
                self.attempt_id
            )

        AttemptService.finalize_attempt(
            self.attempt_id,
            completed_at=now,
            time_spent_seconds=elapsed_seconds(self.started_at, now),
            total_score=result.total_score,
            score_percent=result.score_percent,
        )

        StatsService.record_attempt(
            self.user_id,
            score_percent=result.score_percent,
            total_score=result.total_score,
            questions_answered=len(result.responses),
            correct_answers=result.correct_count,
            now=now,
        )
        return result

    def _require_in_progress(self):
        if self.state != IN_PROGRESS:
            raise InvalidTransition(f'Session is {self.state}')

    def _has_answer(self, question_id):
        return any(a.question_id == question_id for a in self.answers)

    def _record_current(self, now):
        """Append the current selection, replacing an earlier answer to the same question"""
        question = self.current_question
        if question is None or self.selected_choice_id is None:
            return False
        self.answers = [a for a in self.answers if a.question_id != question.id]
        self.answers.append(Answer(
            question_id=question.id,
            choice_id=self.selected_choice_id,
            time_spent_seconds=elapsed_seconds(self._question_started_at, now),
        ))
        return True

    def _stop_timer(self):
        if self._timer is not None:
            self._timer.stop()

    def _handle_tick(self, remaining):
        if self._on_tick:
            self._on_tick(self, remaining)

    def _handle_expire(self):
        # Runs on the timer's background task, outside any request
        if self._app is not None:
            with self._app.app_context():
                self.expire()
        else:
            self.expire()


def reap_idle_sessions(registry, max_idle_seconds, now=None, exclude=()):
    """
    Abandon and drop registry sessions idle for at least max_idle_seconds

    Attempt ids in `exclude` (players still connected) are left alone.

    Returns:
        list: attempt ids that were reaped
    """
    now = now or now_utc()
    stale = [
        attempt_id for attempt_id, attempt_session in list(registry.items())
        if attempt_id not in exclude
        and attempt_session.idle_seconds(now) >= max_idle_seconds
    ]
    for attempt_id in stale:
        attempt_session = registry.pop(attempt_id, None)
        if attempt_session is not None:
            attempt_session.abandon()
    if stale:
        logger.info('Reaped %s idle attempt session(s): %s', len(stale), stale)
    return stale
