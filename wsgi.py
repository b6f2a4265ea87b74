"""
WSGI Entry Point
Serves the quiz app together with its Socket.IO countdown channel
"""
import os
from parasha_quiz import create_app
from parasha_quiz.extensions import socketio

app = create_app()

if __name__ == '__main__':
    # Live attempt sessions are kept in process memory: run a single worker,
    # e.g. gunicorn -w 1 --threads 50 wsgi:app
    socketio.run(
        app,
        host=os.getenv('HOST', '0.0.0.0'),
        port=int(os.getenv('PORT', 5000)),
        debug=app.config.get('DEBUG', False),
        use_reloader=False,
        allow_unsafe_werkzeug=True
    )
