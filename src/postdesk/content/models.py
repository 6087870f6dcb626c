"""Pydantic models for repository entries, posts and images.

Two families live here: the raw shapes returned by the GitHub contents
API (RepoEntry, RemoteFile), and the shapes the service hands back to
its callers (posts, images, write results).  Caller-facing models dump
with camelCase aliases to match the JSON surface of the HTTP API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RepoEntry(BaseModel):
    """A single item of a GitHub directory listing."""

    name: str
    path: str
    sha: str
    size: int = 0
    type: str = "file"
    download_url: str | None = None


class RemoteFile(BaseModel):
    """A file fetched from the repository, decoded from base64."""

    path: str
    name: str
    sha: str
    size: int = 0
    content: bytes = b""
    download_url: str | None = None

    @property
    def text(self) -> str:
        """UTF-8 text; undecodable bytes become U+FFFD rather than failing."""
        return self.content.decode("utf-8", errors="replace")


class ParsedDocument(BaseModel):
    """Result of splitting an MDX file into its metadata block and body."""

    frontmatter: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    error: str | None = None


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PostSummary(_ApiModel):
    """A post as shown in the listing."""

    name: str
    path: str
    sha: str
    slug: str
    download_url: str | None = None


class PostDocument(_ApiModel):
    """A post loaded for editing."""

    path: str
    filename: str
    sha: str
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    content: str = ""
    raw_content: str = ""
    frontmatter_error: str | None = None


class PostWriteResult(_ApiModel):
    """Outcome of creating, updating or deleting a post."""

    success: bool = True
    path: str
    filename: str | None = None
    commit: dict[str, Any] = Field(default_factory=dict)


class ImageAsset(_ApiModel):
    """An image stored in the repository's public image directory."""

    name: str
    path: str
    sha: str
    size: int = 0
    url: str
    download_url: str | None = None


class ImageUploadResult(_ApiModel):
    """Outcome of a single successful image upload."""

    success: bool = True
    filename: str
    path: str
    url: str
    size: int
    type: str
    commit: dict[str, Any] = Field(default_factory=dict)


class ImageDeleteResult(_ApiModel):
    """Outcome of deleting an image."""

    success: bool = True
    filename: str
    path: str
    commit: dict[str, Any] = Field(default_factory=dict)


class ImageUpload(BaseModel):
    """An image waiting to be uploaded, as received from a form or disk."""

    filename: str
    content_type: str
    data: bytes
    name: str | None = None


class UploadOutcome(_ApiModel):
    """Per-file result of a batch upload: either a result or an error."""

    filename: str
    result: ImageUploadResult | None = None
    error: str | None = None
    status: int = 200

    @property
    def ok(self) -> bool:
        return self.error is None


# ── Request bodies ───────────────────────────────────────────────────
# Types only; the services check that required fields are present.


class _RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CreatePostRequest(_RequestModel):
    """Body of ``POST /api/posts``."""

    frontmatter: dict[str, Any] | None = None
    content: str | None = None
    slug: str | None = None
    date: str | None = None


class UpdatePostRequest(_RequestModel):
    """Body of ``PUT /api/posts/<path>``."""

    frontmatter: dict[str, Any] | None = None
    content: str | None = None
    sha: str | None = None
    message: str | None = None


class DeletePostRequest(_RequestModel):
    """Body of ``DELETE /api/posts/<path>``."""

    sha: str | None = None
    message: str | None = None


class DeleteImageRequest(_RequestModel):
    """Body of ``DELETE /api/upload``."""

    filename: str | None = None
    sha: str | None = None
