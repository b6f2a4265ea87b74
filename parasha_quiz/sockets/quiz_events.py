"""
Socket.IO Event Handlers
Real-time countdown and attempt completion events
"""
from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from parasha_quiz.extensions import socketio, active_sessions, attempt_subscribers
from parasha_quiz.utils import get_current_user_id


def attempt_room(attempt_id):
    return f'attempt_{attempt_id}'


def _attempt_id_from(data):
    """attempt_id of an event payload, None when missing or malformed"""
    try:
        return int(data.get('attempt_id'))
    except (AttributeError, TypeError, ValueError):
        return None


def _unsubscribe(sid, attempt_id):
    sids = attempt_subscribers.get(attempt_id)
    if sids is None:
        return
    sids.discard(sid)
    if not sids:
        attempt_subscribers.pop(attempt_id, None)


def register_socket_events():
    """Register all Socket.IO event handlers"""

    @socketio.on('join_attempt')
    def join_attempt(data):
        """Player subscribes to its attempt's countdown"""
        attempt_id = _attempt_id_from(data)
        attempt_session = active_sessions.get(attempt_id) if attempt_id is not None else None

        if attempt_session is None or attempt_session.user_id != get_current_user_id():
            emit('attempt_error', {'attempt_id': attempt_id, 'error': 'Attempt not found'})
            return

        join_room(attempt_room(attempt_id))
        attempt_subscribers.setdefault(attempt_id, set()).add(request.sid)
        attempt_session.touch()
        current_app.logger.debug('User joined room %s', attempt_room(attempt_id))
        emit('timer_tick', {
            'attempt_id': attempt_id,
            'time_left': attempt_session.time_left,
        })

    @socketio.on('leave_attempt')
    def leave_attempt(data):
        attempt_id = _attempt_id_from(data)
        if attempt_id is None:
            emit('attempt_error', {'attempt_id': None, 'error': 'attempt_id is required'})
            return
        leave_room(attempt_room(attempt_id))
        _unsubscribe(request.sid, attempt_id)

    @socketio.on('disconnect')
    def client_disconnected(reason=None):
        """Player went away: abandon attempts nobody else is watching"""
        sid = request.sid
        joined = [aid for aid, sids in list(attempt_subscribers.items()) if sid in sids]
        for attempt_id in joined:
            _unsubscribe(sid, attempt_id)
            if attempt_id in attempt_subscribers:
                continue
            attempt_session = active_sessions.pop(attempt_id, None)
            if attempt_session is not None and attempt_session.abandon():
                current_app.logger.info(
                    'Attempt %s abandoned after its player disconnected', attempt_id
                )


def emit_timer_tick(attempt_id, time_left):
    socketio.emit(
        'timer_tick',
        {'attempt_id': attempt_id, 'time_left': time_left},
        to=attempt_room(attempt_id)
    )


def emit_attempt_finished(attempt_id, timed_out):
    socketio.emit(
        'attempt_finished',
        {'attempt_id': attempt_id, 'timed_out': timed_out},
        to=attempt_room(attempt_id)
    )
