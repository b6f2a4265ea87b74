"""
Flask Extensions
Created unbound here, bound to the app in create_app()
"""
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO

db = SQLAlchemy()
socketio = SocketIO()

# Live attempt sessions keyed by attempt id, discarded on finish/abandon
active_sessions = {}

# Socket.IO sids joined to each live attempt's room
attempt_subscribers = {}
