# rebuild_stats.py
"""Recompute every user's aggregate statistics from the attempt ledger"""
from sqlalchemy.exc import SQLAlchemyError

from parasha_quiz import create_app
from parasha_quiz.extensions import db
from parasha_quiz.models import User
from parasha_quiz.services import StatsService


def rebuild_all_stats(app=None):
    """
    Rebuild UserStats for all users

    Returns:
        int: number of users rebuilt
    """
    app = app or create_app()

    with app.app_context():
        app.logger.info('Rebuilding user stats from the attempt ledger')
        user_ids = [row.id for row in db.session.query(User.id).all()]

        rebuilt = 0
        for user_id in user_ids:
            try:
                stats = StatsService.rebuild_user_stats(user_id)
            except SQLAlchemyError:
                db.session.rollback()
                app.logger.exception('Could not rebuild stats for user %s', user_id)
                continue
            rebuilt += 1
            app.logger.info(
                'User %s: %s quizzes, average %.1f%%',
                user_id, stats.total_quizzes_completed, stats.average_score_percent
            )

        app.logger.info('Rebuilt stats for %s of %s users', rebuilt, len(user_ids))
        return rebuilt


if __name__ == '__main__':
    rebuild_all_stats()
