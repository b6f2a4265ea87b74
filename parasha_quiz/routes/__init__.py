"""
Routes Package
Exports all route blueprints
"""
from parasha_quiz.routes.quiz import quiz_bp

__all__ = ['quiz_bp']
