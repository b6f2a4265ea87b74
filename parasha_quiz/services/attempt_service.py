"""
Attempt Service
Persistence for the attempt and response ledgers
"""
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from parasha_quiz.extensions import db
from parasha_quiz.models import QuizAttempt, QuestionResponse


class AttemptService:
    """Attempt and response ledger operations"""

    @staticmethod
    def next_attempt_number(user_id, quiz_id):
        """1 + the highest attempt number this user has for this quiz"""
        last = db.session.query(
            func.max(QuizAttempt.attempt_number)
        ).filter_by(user_id=user_id, quiz_id=quiz_id).scalar()
        return (last or 0) + 1

    @staticmethod
    def create_attempt(quiz_id, user_id, attempt_number, started_at, max_possible_score):
        """
        Insert the attempt row for a session that is starting

        Returns:
            int: the new attempt id

        Raises:
            SQLAlchemyError: the insert failed; the session is rolled back
        """
        attempt = QuizAttempt(
            quiz_id=quiz_id,
            user_id=user_id,
            attempt_number=attempt_number,
            started_at=started_at,
            max_possible_score=max_possible_score,
        )
        try:
            db.session.add(attempt)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(
                'Error creating attempt %s for user %s on quiz %s',
                attempt_number, user_id, quiz_id
            )
            raise

        current_app.logger.info(
            'Attempt %s started: quiz %s, user %s, attempt #%s',
            attempt.id, quiz_id, user_id, attempt_number
        )
        return attempt.id

    @staticmethod
    def save_responses(attempt_id, responses, answered_at):
        """
        Write all responses of an attempt in one batch

        Returns:
            bool: False when the write failed (logged, rolled back)
        """
        if not responses:
            return True

        rows = [
            QuestionResponse(
                attempt_id=attempt_id,
                question_id=r.question_id,
                selected_choice_id=r.selected_choice_id,
                is_correct=r.is_correct,
                points_earned=r.points_earned,
                time_spent_seconds=r.time_spent_seconds,
                answered_at=answered_at,
            )
            for r in responses
        ]
        try:
            db.session.add_all(rows)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Error saving responses for attempt %s', attempt_id)
            return False
        return True

    @staticmethod
    def finalize_attempt(attempt_id, completed_at, time_spent_seconds, total_score, score_percent):
        """
        Record the final score of an attempt and refresh best-attempt flags

        An attempt is finalized once; a completed attempt is left untouched.

        Returns:
            bool: True when the attempt row was updated
        """
        try:
            attempt = db.session.get(QuizAttempt, attempt_id)
            if attempt is None:
                current_app.logger.error('Cannot finalize missing attempt %s', attempt_id)
                return False
            if attempt.is_completed:
                current_app.logger.warning('Attempt %s is already finalized', attempt_id)
                return False

            attempt.completed_at = completed_at
            attempt.time_spent_seconds = time_spent_seconds
            attempt.total_score = total_score
            attempt.score_percent = score_percent
            db.session.flush()

            AttemptService._mark_best_attempt(attempt.user_id, attempt.quiz_id)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Error updating attempt %s', attempt_id)
            return False

        current_app.logger.info(
            'Attempt %s finalized: %s points (%.1f%%) in %ss',
            attempt_id, total_score, score_percent, time_spent_seconds
        )
        return True

    @staticmethod
    def _completed_attempts_best_first(user_id, quiz_id):
        # Ties go to the earlier attempt
        return QuizAttempt.query.filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.completed_at.isnot(None),
        ).order_by(
            QuizAttempt.score_percent.desc(),
            QuizAttempt.attempt_number.asc()
        ).all()

    @staticmethod
    def _mark_best_attempt(user_id, quiz_id):
        """Flag exactly one completed attempt as best; caller commits"""
        attempts = AttemptService._completed_attempts_best_first(user_id, quiz_id)
        for idx, attempt in enumerate(attempts):
            attempt.is_best_attempt = (idx == 0)
        return attempts[0] if attempts else None

    @staticmethod
    def resolve_best_attempt(user_id, quiz_id):
        """Best completed attempt computed from the ledger, None if none completed"""
        attempts = AttemptService._completed_attempts_best_first(user_id, quiz_id)
        return attempts[0] if attempts else None

    @staticmethod
    def list_attempts(user_id, quiz_id):
        return QuizAttempt.query.filter_by(
            user_id=user_id, quiz_id=quiz_id
        ).order_by(QuizAttempt.attempt_number.asc()).all()

    @staticmethod
    def get_attempt(attempt_id, user_id):
        """Attempt owned by user_id, None otherwise"""
        return QuizAttempt.query.filter_by(id=attempt_id, user_id=user_id).first()
