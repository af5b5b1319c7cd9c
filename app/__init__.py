import logging
from datetime import timedelta

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from app.config import Config
from app.db import db
from app.extensions.extensions import ma, socketio


def _configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(minutes=15))
    app.config.setdefault("JWT_REFRESH_TOKEN_EXPIRES", timedelta(days=30))
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app.config["LOG_LEVEL"])

    db.init_app(app)
    ma.init_app(app)
    JWTManager(app)

    from app.socket_events import register_socket_events

    # Handlers registered before init_app are kept and attached to every new server.
    register_socket_events()

    origins = app.config["CORS_ALLOWED_ORIGINS"]
    CORS(app, resources={r"/api/*": {"origins": origins}}, supports_credentials=True)
    # Socket.IO only matches exact origins, not patterns.
    socketio.init_app(
        app,
        cors_allowed_origins=[origin for origin in origins if not origin.startswith("^")],
        async_mode="threading",
    )

    from app.routes.auth_routes import auth_bp
    from app.routes.comment_routes import comment_bp
    from app.routes.main_routes import main_bp
    from app.routes.notification_routes import notification_bp
    from app.routes.post_routes import post_bp
    from app.routes.summary_routes import summary_bp
    from app.routes.vote_routes import vote_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(post_bp, url_prefix="/api")
    app.register_blueprint(comment_bp, url_prefix="/api")
    app.register_blueprint(vote_bp, url_prefix="/api")
    app.register_blueprint(summary_bp, url_prefix="/api")
    app.register_blueprint(notification_bp, url_prefix="/api")

    from app.models import (  # noqa: F401
        comment_model,
        notification_model,
        post_model,
        summary_model,
        user_model,
        vote_model,
    )

    with app.app_context():
        db.create_all()

    return app
