"""
Models Package
Exports all database models
"""
from parasha_quiz.models.user import User
from parasha_quiz.models.curriculum import Parasha, Aliyah
from parasha_quiz.models.quiz import Quiz
from parasha_quiz.models.question import Question, AnswerChoice
from parasha_quiz.models.attempt import QuizAttempt
from parasha_quiz.models.response import QuestionResponse
from parasha_quiz.models.stats import UserStats

__all__ = [
    'User', 'Parasha', 'Aliyah', 'Quiz', 'Question', 'AnswerChoice',
    'QuizAttempt', 'QuestionResponse', 'UserStats'
]
