"""
Sockets Package
"""
from parasha_quiz.sockets.quiz_events import (
    register_socket_events,
    emit_timer_tick,
    emit_attempt_finished
)

__all__ = ['register_socket_events', 'emit_timer_tick', 'emit_attempt_finished']
