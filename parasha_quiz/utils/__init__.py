"""
Utils Package
"""
from parasha_quiz.utils.helpers import (
    now_utc,
    to_local,
    elapsed_seconds,
    get_current_user_id,
    require_student
)

__all__ = [
    'now_utc',
    'to_local',
    'elapsed_seconds',
    'get_current_user_id',
    'require_student'
]
