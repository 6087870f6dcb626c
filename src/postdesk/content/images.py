"""Image asset operations: listing, validated uploads and deletion."""

from __future__ import annotations

import base64
import logging
import re
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from postdesk.config import ContentConfig
from postdesk.content.models import (
    ImageAsset,
    ImageDeleteResult,
    ImageUpload,
    ImageUploadResult,
    UploadOutcome,
)
from postdesk.errors import ConflictError, PostdeskError, ValidationError
from postdesk.integrations.github import RepoContentsClient

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(filename: str) -> str:
    """Strip directory components and replace unsafe characters with ``_``."""
    basename = re.split(r"[\\/]", filename)[-1]
    return _UNSAFE_CHARS_RE.sub("_", basename)


class ImageService:
    """Manage the images stored under the repository's public image directory."""

    def __init__(self, client: RepoContentsClient, config: ContentConfig) -> None:
        self.client = client
        self.config = config

    @property
    def images_dir(self) -> str:
        return self.config.images_dir.strip("/")

    def public_url(self, filename: str) -> str:
        return f"{self.config.images_url_prefix.rstrip('/')}/{filename}"

    def validate(self, content_type: str, size: int) -> None:
        """Check MIME type and size before anything touches the repository."""
        allowed = self.config.allowed_image_types
        if content_type not in allowed:
            raise ValidationError(
                f"File type {content_type} not allowed. Supported types: {', '.join(allowed)}"
            )
        if size > self.config.max_image_bytes:
            limit_mb = self.config.max_image_bytes / (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {limit_mb:g}MB")

    def list_images(self) -> list[ImageAsset]:
        images = [
            ImageAsset(
                name=entry.name,
                path=entry.path,
                sha=entry.sha,
                size=entry.size,
                url=self.public_url(entry.name),
                download_url=entry.download_url,
            )
            for entry in self.client.list_dir(self.images_dir)
            if entry.type == "file"
        ]
        return sorted(images, key=lambda i: i.name, reverse=True)

    def upload_image(
        self,
        data: bytes,
        content_type: str,
        filename: str,
        name: str | None = None,
    ) -> ImageUploadResult:
        """Validate and commit a new image.

        Args:
            data: Raw image bytes.
            content_type: MIME type reported by the client.
            filename: Original filename of the upload.
            name: Optional display name overriding ``filename``.

        Raises:
            ValidationError: Disallowed type, oversized file or empty name.
            ConflictError: An image with the same name already exists.
        """
        self.validate(content_type, len(data))

        target = sanitize_filename(name or filename or "")
        if not target or target.strip("._") == "":
            raise ValidationError("Invalid filename")

        path = f"{self.images_dir}/{target}"
        if any(entry.path == path for entry in self.client.list_dir(self.images_dir)):
            raise ConflictError(f"File {target} already exists")

        commit = self.client.put_binary_file(
            path,
            base64.b64encode(data).decode("ascii"),
            f"feat: upload image {target}",
        )
        logger.info("Uploaded image %s (%d bytes)", path, len(data))
        return ImageUploadResult(
            filename=target,
            path=path,
            url=self.public_url(target),
            size=len(data),
            type=content_type,
            commit=commit,
        )

    def upload_many(self, uploads: Iterable[ImageUpload], max_workers: int = 4) -> list[UploadOutcome]:
        """Upload several images concurrently, reporting each one separately.

        One failure does not affect the others; outcomes are returned in
        input order.
        """
        items = list(uploads)
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
            return list(pool.map(self._upload_one, items))

    def _upload_one(self, upload: ImageUpload) -> UploadOutcome:
        try:
            result = self.upload_image(upload.data, upload.content_type, upload.filename, upload.name)
        except PostdeskError as exc:
            logger.warning("Failed to upload %s: %s", upload.filename, exc.message)
            return UploadOutcome(filename=upload.filename, error=exc.message, status=exc.status_code)
        return UploadOutcome(filename=result.filename, result=result)

    def delete_image(self, filename: str | None, sha: str | None) -> ImageDeleteResult:
        """Delete an image, guarded by its current sha."""
        if not filename or not sha:
            raise ValidationError("Filename and SHA are required")

        target = sanitize_filename(filename)
        path = f"{self.images_dir}/{target}"
        commit = self.client.delete_file(path, f"feat: delete image {target}", sha)
        return ImageDeleteResult(filename=target, path=path, commit=commit)
