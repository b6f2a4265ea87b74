"""
Helper Functions
Utility functions used across the application
"""
from datetime import datetime, timezone
from flask import session, jsonify
from functools import wraps
import pytz


def now_utc():
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def to_local(utc_dt, tz_name):
    """Convert a UTC datetime (naive values are taken as UTC) to tz_name"""
    if not utc_dt:
        return None
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=pytz.utc)
    return utc_dt.astimezone(pytz.timezone(tz_name))


def elapsed_seconds(start, end):
    """Whole seconds between two datetimes, never negative"""
    if start is None or end is None:
        return 0
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return max(0, int((end - start).total_seconds()))


def get_current_user_id():
    """Id of the authenticated user, placed in the session by the auth layer"""
    user_id = session.get("user_id")
    if user_id is None or user_id == -1:
        return None
    return user_id


# Decorators
def require_student(f):
    """
    Decorator to require a logged-in user
    Admins are rejected: they author quizzes, they do not attempt them
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if get_current_user_id() is None:
            return jsonify({'success': False, 'error': 'Login required'}), 401

        if session.get("role") == "admin":
            return jsonify({'success': False, 'error': 'Admins cannot attempt quizzes'}), 403

        return f(*args, **kwargs)
    return decorated_function
