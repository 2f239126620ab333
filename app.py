import logging
import os
import redis
from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import RequestEntityTooLarge
from models import db
from models.User import bcrypt
from errors import EditorError
from analysis import AnalysisLock
from openai_handler import OpenAIHandler
from tasks import init_celery

jwt = JWTManager()


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    app.logger.setLevel(level)


def register_error_handlers(app):
    @app.errorhandler(EditorError)
    def handle_editor_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{e.__class__.__name__}: {e.message}")
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        limit = app.config.get("MAX_CONTENT_LENGTH")
        return jsonify({"error": f"File too large. Maximum size is {limit // (1024 * 1024)}MB."}), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404


def create_app(overrides=None, openai_handler=None, lock_store=None):
    """
    Builds the Flask application.

    Configuration is read from ``config.py`` and then updated with ``overrides``. The OpenAI
    handler and the Redis connection backing the per-chapter analysis lock are built from the
    configuration unless passed in.

    Args:
        overrides (dict, optional): Configuration values applied on top of ``config.py``.
        openai_handler (OpenAIHandler, optional): Language-model client wrapper to use.
        lock_store (redis.Redis, optional): Redis-compatible client for analysis locks.

    Returns:
        Flask: The configured application.
    """
    app = Flask(__name__)
    app.config.from_pyfile(os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.py'))
    if overrides:
        app.config.update(overrides)

    configure_logging(app)
    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)

    if openai_handler is None:
        openai_handler = OpenAIHandler.from_config(app.config)
    if lock_store is None:
        lock_store = redis.StrictRedis.from_url(app.config["REDIS_LOCK_URL"], decode_responses=True)
    app.extensions["openai_handler"] = openai_handler
    app.extensions["analysis_locks"] = AnalysisLock(lock_store, ttl=app.config["ANALYSIS_LOCK_TTL"])
    init_celery(app)

    from api.auth import bp as auth_bp
    from api.projects import bp as projects_bp
    from api.books import bp as books_bp
    from api.chapters import bp as chapters_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(books_bp)
    app.register_blueprint(chapters_bp)
    register_error_handlers(app)

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    env = os.environ.get('env')
    port = 5000 if env == "development" else 80
    create_app().run(debug=env == "development", host='0.0.0.0', port=port)
