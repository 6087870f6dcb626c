"""/api/posts endpoints."""

from __future__ import annotations

from typing import Any, TypeVar

import pydantic
from flask import Blueprint, jsonify, request

from postdesk.content.models import CreatePostRequest, DeletePostRequest, UpdatePostRequest
from postdesk.errors import ValidationError
from postdesk.web.app import get_services
from postdesk.web.auth import login_required

posts_bp = Blueprint("posts", __name__)

M = TypeVar("M", bound=pydantic.BaseModel)


def json_body() -> dict[str, Any]:
    """Return the request's JSON object or raise ValidationError."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def parse_body(model: type[M]) -> M:
    """Validate the request's JSON object against ``model``.

    Raises:
        ValidationError: The body is not an object or a field has the wrong type.
    """
    try:
        return model.model_validate(json_body())
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ValidationError(f"Invalid request body: {problems}") from exc


@posts_bp.get("")
@login_required
def list_posts():
    posts = get_services().posts.list_posts()
    return jsonify(posts=[p.to_api() for p in posts])


@posts_bp.post("")
@login_required
def create_post():
    body = parse_body(CreatePostRequest)
    result = get_services().posts.create_post(
        frontmatter=body.frontmatter,
        content=body.content,
        slug=body.slug,
        date=body.date,
    )
    return jsonify(result.to_api()), 201


@posts_bp.get("/<path:path>")
@login_required
def get_post(path: str):
    post = get_services().posts.get_post(path)
    return jsonify(post.to_api())


@posts_bp.put("/<path:path>")
@login_required
def update_post(path: str):
    body = parse_body(UpdatePostRequest)
    result = get_services().posts.update_post(
        path,
        content=body.content,
        sha=body.sha,
        frontmatter=body.frontmatter,
        message=body.message,
    )
    return jsonify(result.to_api())


@posts_bp.delete("/<path:path>")
@login_required
def delete_post(path: str):
    body = parse_body(DeletePostRequest)
    result = get_services().posts.delete_post(path, sha=body.sha, message=body.message)
    return jsonify(result.to_api())
