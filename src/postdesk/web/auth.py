"""Session gate for the HTTP API.

Sign-in itself belongs to the OAuth identity provider integration that is
mounted next to this app; postdesk does not run the consent and redirect
flow.  That integration authenticates with ``config.auth.client_id`` and
``config.auth.client_secret`` (``GITHUB_APP_CLIENT_ID`` and
``GITHUB_APP_CLIENT_SECRET``).  Once it holds a verified email it calls
:func:`start_session` inside a request of this app, which applies the
allow-list and stores the user in Flask's signed session cookie.

Every data endpoint then goes through :func:`require_session`.  The
``/auth`` blueprint below lets the UI read the current identity and sign
out.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any, TypeVar

from flask import Blueprint, current_app, jsonify, session
from pydantic import BaseModel

from postdesk.errors import UnauthorizedError

logger = logging.getLogger(__name__)

SESSION_KEY = "user"

auth_bp = Blueprint("auth", __name__)

F = TypeVar("F", bound=Callable[..., Any])


class SessionUser(BaseModel):
    """The identity asserted by the provider for the current request."""

    email: str
    name: str | None = None
    image: str | None = None


def is_email_allowed(email: str, allowed: Iterable[str]) -> bool:
    """Case-insensitive allow-list check; an empty list allows everyone."""
    normalized = [e.strip().lower() for e in allowed if e and e.strip()]
    if not normalized:
        return True
    return email.strip().lower() in normalized


def _allowed_emails() -> list[str]:
    return current_app.extensions["postdesk"].config.auth.allowed_emails


def _read_session_user() -> SessionUser | None:
    raw = session.get(SESSION_KEY)
    if not isinstance(raw, dict) or not raw.get("email"):
        return None
    return SessionUser(
        email=str(raw["email"]),
        name=raw.get("name"),
        image=raw.get("image"),
    )


def require_session() -> SessionUser:
    """Return the signed-in, allow-listed user or raise UnauthorizedError."""
    user = _read_session_user()
    if user is None:
        raise UnauthorizedError("Unauthorized: No session found")

    allowed = _allowed_emails()
    if not allowed:
        logger.warning("No allowed emails configured - allowing all authenticated users")
        return user
    if not is_email_allowed(user.email, allowed):
        logger.info("Access denied for email: %s", user.email)
        raise UnauthorizedError("Unauthorized: Email not allowed")
    return user


def get_optional_session() -> SessionUser | None:
    """Return the current session user without enforcing the allow-list."""
    return _read_session_user()


def start_session(email: str, name: str | None = None, image: str | None = None) -> SessionUser:
    """Record a provider-authenticated identity, enforcing the allow-list.

    Raises:
        UnauthorizedError: The email is missing or not allow-listed.
    """
    if not email:
        raise UnauthorizedError("Unauthorized: Identity provider returned no email")
    allowed = _allowed_emails()
    if not allowed:
        logger.warning("No allowed emails configured - allowing all users")
    elif not is_email_allowed(email, allowed):
        logger.info("Access denied for email: %s", email)
        raise UnauthorizedError("Unauthorized: Email not allowed")

    user = SessionUser(email=email, name=name, image=image)
    session[SESSION_KEY] = user.model_dump(exclude_none=True)
    return user


def end_session() -> None:
    session.pop(SESSION_KEY, None)


def login_required(view: F) -> F:
    """Reject the request before the view runs unless the session is valid."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        require_session()
        return view(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


@auth_bp.get("/session")
def current_session():
    """The signed-in identity, or ``null``; never rejects."""
    user = get_optional_session()
    return jsonify(user=user.model_dump(exclude_none=True) if user else None)


@auth_bp.post("/signout")
def sign_out():
    end_session()
    return jsonify(success=True)
