"""Content domain: post and image models and the MDX container format.

The services that read and write content through the repository live in
``postdesk.content.posts`` and ``postdesk.content.images``.
"""

from postdesk.content.frontmatter import parse_frontmatter, serialize_frontmatter
from postdesk.content.models import (
    ImageAsset,
    ImageUpload,
    ImageUploadResult,
    ParsedDocument,
    PostDocument,
    PostSummary,
    PostWriteResult,
    RemoteFile,
    RepoEntry,
    UploadOutcome,
)

__all__ = [
    "ImageAsset",
    "ImageUpload",
    "ImageUploadResult",
    "ParsedDocument",
    "PostDocument",
    "PostSummary",
    "PostWriteResult",
    "RemoteFile",
    "RepoEntry",
    "UploadOutcome",
    "parse_frontmatter",
    "serialize_frontmatter",
]
