"""
Services Package
"""
from parasha_quiz.services.scoring_service import ScoringService
from parasha_quiz.services.attempt_service import AttemptService
from parasha_quiz.services.stats_service import StatsService
from parasha_quiz.services.content_service import load_quiz
from parasha_quiz.services.session_controller import AttemptSession

__all__ = ['ScoringService', 'AttemptService', 'StatsService', 'load_quiz', 'AttemptSession']
