"""/api/upload endpoints for blog images."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from postdesk.content.models import DeleteImageRequest, ImageUpload
from postdesk.errors import ValidationError
from postdesk.web.app import get_services
from postdesk.web.auth import login_required
from postdesk.web.posts import parse_body

uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.get("")
@login_required
def list_images():
    images = get_services().images.list_images()
    return jsonify(images=[i.to_api() for i in images])


@uploads_bp.post("")
@login_required
def upload_image():
    files = [f for f in request.files.getlist("file") if f]
    if not files:
        raise ValidationError("No file provided")
    custom_name = request.form.get("name") or None
    images = get_services().images

    if len(files) == 1:
        file = files[0]
        result = images.upload_image(
            file.read(),
            file.mimetype or "",
            file.filename or "",
            custom_name,
        )
        return jsonify(result.to_api()), 201

    # A custom name cannot apply to several files at once.
    outcomes = images.upload_many(
        ImageUpload(filename=f.filename or "", content_type=f.mimetype or "", data=f.read())
        for f in files
    )
    return jsonify(results=[o.to_api() for o in outcomes])


@uploads_bp.delete("")
@login_required
def delete_image():
    body = parse_body(DeleteImageRequest)
    result = get_services().images.delete_image(body.filename, body.sha)
    return jsonify(result.to_api())
