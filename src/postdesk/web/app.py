"""Flask application factory for the postdesk HTTP API."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

from postdesk.config import PostdeskConfig
from postdesk.content.images import ImageService
from postdesk.content.posts import PostService
from postdesk.errors import PostdeskError
from postdesk.integrations.github import RepoContentsClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Per-process wiring of config and the services built from it."""

    config: PostdeskConfig
    posts: PostService
    images: ImageService


def build_services(config: PostdeskConfig, client: RepoContentsClient | None = None) -> Services:
    client = client or RepoContentsClient(config.github)
    return Services(
        config=config,
        posts=PostService(client, config.content),
        images=ImageService(client, config.content),
    )


def get_services() -> Services:
    return current_app.extensions["postdesk"]


def create_app(config: PostdeskConfig, client: RepoContentsClient | None = None) -> Flask:
    """Create the Flask app.

    Args:
        config: Fully loaded configuration.
        client: Contents client to use instead of one built from config.
    """
    from postdesk.web.auth import auth_bp
    from postdesk.web.posts import posts_bp
    from postdesk.web.uploads import uploads_bp

    app = Flask(__name__)

    secret_key = config.auth.secret_key
    if not secret_key:
        logger.warning("POSTDESK_SECRET_KEY not set; sessions will not survive a restart")
        secret_key = secrets.token_hex(32)
    app.config["SECRET_KEY"] = secret_key

    if not config.github.is_configured:
        logger.warning("GitHub App is not fully configured; repository calls will fail")
    if not config.auth.has_provider_credentials:
        logger.warning(
            "GITHUB_APP_CLIENT_ID/GITHUB_APP_CLIENT_SECRET not set; "
            "the sign-in integration cannot authenticate users"
        )

    app.extensions["postdesk"] = build_services(config, client)

    app.register_blueprint(posts_bp, url_prefix="/api/posts")
    app.register_blueprint(uploads_bp, url_prefix="/api/upload")
    app.register_blueprint(auth_bp, url_prefix="/auth")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    _register_error_handlers(app)
    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PostdeskError)
    def handle_postdesk_error(exc: PostdeskError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return jsonify(error=exc.message), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(error=exc.description), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return jsonify(error="Internal server error"), 500
