"""HTTP API: Flask app factory, session gate and resource blueprints."""

from postdesk.web.app import create_app

__all__ = ["create_app"]
