"""
Stats Service
Maintains the per-user aggregate row after each finished attempt
"""
from datetime import timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from parasha_quiz.extensions import db
from parasha_quiz.models import QuizAttempt, QuestionResponse, UserStats
from parasha_quiz.utils import now_utc, to_local


def week_start(dt, tz_name):
    """Sunday that opens the local week containing dt"""
    local_date = to_local(dt, tz_name).date()
    return local_date - timedelta(days=(local_date.weekday() + 1) % 7)


def next_streak(current, last_quiz_at, now, tz_name):
    """
    Weekly streak after a quiz completed at `now`

    Same week keeps the streak, the following week extends it,
    anything later starts over.
    """
    if last_quiz_at is None:
        return 1
    weeks = (week_start(now, tz_name) - week_start(last_quiz_at, tz_name)).days // 7
    if weeks <= 0:
        return max(current or 0, 1)
    if weeks == 1:
        return (current or 0) + 1
    return 1


class StatsService:
    """User aggregate statistics"""

    @staticmethod
    def get_user_stats(user_id):
        return UserStats.query.filter_by(user_id=user_id).first()

    @staticmethod
    def _locked_stats_row(user_id):
        # Row lock serializes concurrent finishes by the same user
        stats = UserStats.query.filter_by(user_id=user_id).with_for_update().first()
        if stats is None:
            stats = UserStats(
                user_id=user_id,
                total_quizzes_completed=0,
                total_questions_answered=0,
                total_correct_answers=0,
                total_points=0,
                average_score_percent=0.0,
                current_streak_weeks=0,
                best_streak_weeks=0,
            )
            db.session.add(stats)
        return stats

    @staticmethod
    def record_attempt(user_id, score_percent, total_score, questions_answered,
                       correct_answers, now=None):
        """
        Fold one finished attempt into the user's aggregates

        The average is a running mean over completed quizzes, it is not
        recomputed from history (see rebuild_user_stats for that).

        Returns:
            bool: False when the update failed (logged, rolled back)
        """
        now = now or now_utc()
        tz_name = current_app.config.get('TIMEZONE', 'UTC')

        try:
            stats = StatsService._locked_stats_row(user_id)

            count = stats.total_quizzes_completed or 0
            new_count = count + 1
            old_average = stats.average_score_percent or 0.0

            stats.total_quizzes_completed = new_count
            stats.average_score_percent = (old_average * count + score_percent) / new_count
            stats.total_questions_answered = (stats.total_questions_answered or 0) + questions_answered
            stats.total_correct_answers = (stats.total_correct_answers or 0) + correct_answers
            stats.total_points = (stats.total_points or 0) + total_score

            stats.current_streak_weeks = next_streak(
                stats.current_streak_weeks, stats.last_quiz_at, now, tz_name
            )
            stats.best_streak_weeks = max(stats.best_streak_weeks or 0, stats.current_streak_weeks)
            stats.last_quiz_at = now
            stats.updated_at = now

            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Error updating stats for user %s', user_id)
            return False

        current_app.logger.info(
            'Stats updated for user %s: %s quizzes, average %.1f%%',
            user_id, new_count, stats.average_score_percent
        )
        return True

    @staticmethod
    def rebuild_user_stats(user_id):
        """
        Recompute a user's aggregates from the attempt and response ledgers

        Returns:
            UserStats: the rewritten row
        """
        tz_name = current_app.config.get('TIMEZONE', 'UTC')

        attempts = QuizAttempt.query.filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.completed_at.isnot(None),
        ).order_by(QuizAttempt.completed_at.asc()).all()
        attempt_ids = [a.id for a in attempts]

        answered = 0
        correct = 0
        if attempt_ids:
            answered, correct = db.session.query(
                func.count(QuestionResponse.id),
                func.sum(db.case((QuestionResponse.is_correct == True, 1), else_=0)),  # noqa: E712
            ).filter(QuestionResponse.attempt_id.in_(attempt_ids)).one()

        current = 0
        best = 0
        last_quiz_at = None
        for attempt in attempts:
            current = next_streak(current, last_quiz_at, attempt.completed_at, tz_name)
            best = max(best, current)
            last_quiz_at = attempt.completed_at

        stats = StatsService._locked_stats_row(user_id)
        stats.total_quizzes_completed = len(attempts)
        stats.total_questions_answered = int(answered or 0)
        stats.total_correct_answers = int(correct or 0)
        stats.total_points = sum(a.total_score or 0 for a in attempts)
        stats.average_score_percent = (
            sum(a.score_percent or 0.0 for a in attempts) / len(attempts) if attempts else 0.0
        )
        stats.current_streak_weeks = current
        stats.best_streak_weeks = best
        stats.last_quiz_at = last_quiz_at
        stats.updated_at = now_utc()
        db.session.commit()
        return stats
