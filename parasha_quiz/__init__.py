"""
Parasha Quiz
Flask app factory: quiz attempts over HTTP, countdown over Socket.IO
"""
import logging

from flask import Flask, jsonify
from parasha_quiz.config import get_config
from parasha_quiz.extensions import db, socketio


def _register_error_handlers(app):
    """JSON bodies for errors raised outside the quiz blueprint"""

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405


def create_app(config_name=None):
    """
    Build the app for `config_name` ("development", "production",
    "testing"); FLASK_ENV decides when it is omitted
    """
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    if not app.debug and not app.testing:
        app.logger.setLevel(logging.INFO)

    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['SOCKETIO_CORS_ALLOWED_ORIGINS'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE']
    )

    from parasha_quiz.routes import quiz_bp
    app.register_blueprint(quiz_bp, url_prefix='/quiz')
    _register_error_handlers(app)

    from parasha_quiz.sockets import register_socket_events
    register_socket_events()

    with app.app_context():
        from parasha_quiz import models  # noqa: F401
        db.create_all()
        app.logger.info('Quiz tables ready on %s', db.engine.url.render_as_string(hide_password=True))

    return app
