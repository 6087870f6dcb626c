"""Blog post operations on top of the repository contents client."""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime
from typing import Any

from postdesk.config import ContentConfig
from postdesk.content.frontmatter import parse_frontmatter, serialize_frontmatter
from postdesk.content.models import PostDocument, PostSummary, PostWriteResult
from postdesk.errors import ValidationError
from postdesk.integrations.github import RepoContentsClient

logger = logging.getLogger(__name__)

_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-")


def sanitize_slug(slug: str) -> str:
    """Lowercase a slug and reduce it to ``[a-z0-9-]``."""
    cleaned = re.sub(r"[^a-z0-9-]", "-", slug.lower())
    return re.sub(r"-+", "-", cleaned)


def date_prefix(value: str | date | None = None) -> str:
    """Return the ``YYYY-MM-DD`` prefix for a post filename.

    Accepts an ISO date or datetime string, a date/datetime object, or
    nothing (today, UTC).
    """
    if value is None or value == "":
        return datetime.now(tz=UTC).date().isoformat()
    if isinstance(value, datetime):
        return value.astimezone(UTC).date().isoformat() if value.tzinfo else value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValidationError(f"Invalid date: {value!r}")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date().isoformat()


def slug_from_filename(filename: str, extension: str = ".mdx") -> str:
    """Recover the slug of an existing post from its filename."""
    name = filename.rsplit("/", 1)[-1].removesuffix(extension)
    return _DATE_PREFIX_RE.sub("", name)


def build_frontmatter(
    title: str,
    slug: str,
    *,
    date: str | None = None,
    category: str = "",
    cover: str = "",
    excerpt: str = "",
    seo_title: str = "",
    seo_description: str = "",
    keywords: str = "",
    site_url: str = "",
) -> dict[str, Any]:
    """Assemble the metadata block the blog templates expect.

    SEO fields fall back to the post's own title, excerpt and cover.
    """
    frontmatter: dict[str, Any] = {
        "title": title,
        "date": date or datetime.now(tz=UTC).date().isoformat(),
        "category": category,
        "cover": cover,
        "excerpt": excerpt,
    }
    seo: dict[str, Any] = {
        "metaTitle": seo_title or title,
        "metaDescription": seo_description or excerpt,
        "keywords": keywords,
        "ogImage": cover,
    }
    if site_url:
        seo["canonical"] = f"{site_url.rstrip('/')}/blog/{slug}"
    frontmatter["seo"] = seo
    return frontmatter


class PostService:
    """List, read, create, update and delete MDX posts in the repository."""

    def __init__(self, client: RepoContentsClient, config: ContentConfig) -> None:
        self.client = client
        self.config = config

    @property
    def posts_dir(self) -> str:
        return self.config.posts_dir.strip("/")

    def _resolve_read_path(self, path: str) -> str:
        # Bare filenames live in the posts directory; anything with a slash is used as given.
        path = path.strip("/")
        if "/" not in path:
            return f"{self.posts_dir}/{path}"
        return path

    def _resolve_write_path(self, path: str) -> str:
        path = path.strip("/")
        if path.startswith(f"{self.posts_dir}/"):
            return path
        return f"{self.posts_dir}/{path}"

    # ── Read operations ──────────────────────────────────────────

    def list_posts(self) -> list[PostSummary]:
        """Return all posts, newest date prefix first."""
        ext = self.config.post_extension
        posts = [
            PostSummary(
                name=entry.name,
                path=entry.path,
                sha=entry.sha,
                slug=entry.name.removesuffix(ext),
                download_url=entry.download_url,
            )
            for entry in self.client.list_dir(self.posts_dir)
            if entry.name.endswith(ext)
        ]
        return sorted(posts, key=lambda p: p.name, reverse=True)

    def get_post(self, path: str) -> PostDocument:
        """Load a post and split it into frontmatter and body."""
        full_path = self._resolve_read_path(path)
        remote = self.client.get_file(full_path)
        raw = remote.text
        parsed = parse_frontmatter(raw)
        return PostDocument(
            path=full_path,
            filename=full_path.rsplit("/", 1)[-1],
            sha=remote.sha,
            frontmatter=parsed.frontmatter,
            content=parsed.body,
            raw_content=raw,
            frontmatter_error=parsed.error,
        )

    # ── Write operations ─────────────────────────────────────────

    def create_post(
        self,
        frontmatter: dict[str, Any] | None,
        content: str | None,
        slug: str | None,
        date: str | date | None = None,
    ) -> PostWriteResult:
        """Create a new post file named ``<date>-<slug>.mdx``.

        Raises:
            ValidationError: Title, slug or content is missing.
            ConflictError: A post with the same filename already exists.
        """
        frontmatter = frontmatter or {}
        if not isinstance(frontmatter, dict):
            raise ValidationError("frontmatter must be an object")
        title = frontmatter.get("title")
        if not title or not slug or not content:
            raise ValidationError(
                "Missing required fields: title, slug, and content are required"
            )
        if not isinstance(content, str) or not isinstance(slug, str):
            raise ValidationError("content and slug must be strings")

        clean_slug = sanitize_slug(str(slug))
        if not clean_slug.strip("-"):
            raise ValidationError(f"Slug {slug!r} has no usable characters")

        filename = f"{date_prefix(date)}-{clean_slug}{self.config.post_extension}"
        path = f"{self.posts_dir}/{filename}"
        mdx = serialize_frontmatter(frontmatter, content)

        commit = self.client.put_file(path, mdx, f'feat: create blog post "{title}"')
        logger.info("Created post %s", path)
        return PostWriteResult(path=path, filename=filename, commit=commit)

    def update_post(
        self,
        path: str,
        content: str | None,
        sha: str | None,
        frontmatter: dict[str, Any] | None = None,
        message: str | None = None,
    ) -> PostWriteResult:
        """Replace a post's content wholesale; the filename never changes.

        Without ``frontmatter`` the content is stored verbatim, which lets
        callers save raw MDX.

        Raises:
            ValidationError: Content or sha is missing.
            ConflictError: ``sha`` no longer matches the stored post.
        """
        if not content or not sha:
            raise ValidationError("Content and SHA are required for updates")
        if not isinstance(content, str) or not isinstance(sha, str):
            raise ValidationError("content and sha must be strings")
        if frontmatter is not None and not isinstance(frontmatter, dict):
            raise ValidationError("frontmatter must be an object")

        full_path = self._resolve_write_path(path)
        filename = full_path.rsplit("/", 1)[-1]
        final = serialize_frontmatter(frontmatter, content) if frontmatter else content

        commit = self.client.put_file(
            full_path,
            final,
            message or f"feat: update blog post in {filename}",
            sha,
        )
        return PostWriteResult(path=full_path, commit=commit)

    def delete_post(self, path: str, sha: str | None, message: str | None = None) -> PostWriteResult:
        """Delete a post, guarded by its current sha."""
        if not sha:
            raise ValidationError("SHA is required for deletion")

        full_path = self._resolve_write_path(path)
        filename = full_path.rsplit("/", 1)[-1]
        commit = self.client.delete_file(
            full_path,
            message or f"feat: delete blog post {filename}",
            sha,
        )
        logger.info("Deleted post %s", full_path)
        return PostWriteResult(path=full_path, commit=commit)
