"""Tests for PostService: post CRUD over the repository client."""

from datetime import date, datetime, timezone

import pytest

from postdesk.config import ContentConfig
from postdesk.content.frontmatter import parse_frontmatter, serialize_frontmatter
from postdesk.content.posts import (
    PostService,
    build_frontmatter,
    date_prefix,
    sanitize_slug,
    slug_from_filename,
)
from postdesk.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def service(fake_repo) -> PostService:
    return PostService(fake_repo, ContentConfig())


class TestHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("hi", "hi"),
            ("Hello World", "hello-world"),
            ("Naps & Schedules!!", "naps-schedules-"),
            ("already-clean-123", "already-clean-123"),
            ("a___b", "a-b"),
        ],
    )
    def test_sanitize_slug(self, raw, expected):
        assert sanitize_slug(raw) == expected

    def test_date_prefix_from_iso_date(self):
        assert date_prefix("2024-01-01") == "2024-01-01"

    def test_date_prefix_from_datetime_string(self):
        assert date_prefix("2024-03-05T23:30:00Z") == "2024-03-05"

    def test_date_prefix_converts_offsets_to_utc(self):
        assert date_prefix("2024-03-05T23:30:00-05:00") == "2024-03-06"

    def test_date_prefix_from_objects(self):
        assert date_prefix(date(2023, 12, 31)) == "2023-12-31"
        assert date_prefix(datetime(2023, 12, 31, 8, tzinfo=timezone.utc)) == "2023-12-31"

    def test_date_prefix_defaults_to_today(self):
        assert date_prefix() == datetime.now(tz=timezone.utc).date().isoformat()

    def test_date_prefix_rejects_garbage(self):
        with pytest.raises(ValidationError):
            date_prefix("next tuesday")

    def test_date_prefix_rejects_numbers(self):
        with pytest.raises(ValidationError, match="Invalid date"):
            date_prefix(20240101)

    def test_slug_from_filename(self):
        assert slug_from_filename("2024-01-01-hi.mdx") == "hi"
        assert slug_from_filename("content/posts/2024-01-01-nap-time.mdx") == "nap-time"
        assert slug_from_filename("undated.mdx") == "undated"

    def test_build_frontmatter_seo_fallbacks(self):
        fm = build_frontmatter(
            "Nap Time",
            "nap-time",
            date="2024-01-01",
            cover="/blog-images/nap.svg",
            excerpt="All about naps",
            site_url="https://blog.example.com/",
        )
        assert fm["title"] == "Nap Time"
        assert fm["seo"] == {
            "metaTitle": "Nap Time",
            "metaDescription": "All about naps",
            "keywords": "",
            "ogImage": "/blog-images/nap.svg",
            "canonical": "https://blog.example.com/blog/nap-time",
        }

    def test_build_frontmatter_without_site_url_has_no_canonical(self):
        fm = build_frontmatter("T", "t", seo_title="Custom")
        assert "canonical" not in fm["seo"]
        assert fm["seo"]["metaTitle"] == "Custom"


class TestListPosts:
    def test_missing_directory_is_empty(self, service):
        assert service.list_posts() == []

    def test_filters_and_sorts_newest_first(self, service, fake_repo):
        fake_repo.seed("content/posts/2023-05-01-old.mdx", "a")
        fake_repo.seed("content/posts/2024-02-01-new.mdx", "b")
        fake_repo.seed("content/posts/README.md", "c")
        fake_repo.seed("content/posts/drafts/2025-01-01-nested.mdx", "d")

        posts = service.list_posts()

        assert [p.name for p in posts] == ["2024-02-01-new.mdx", "2023-05-01-old.mdx"]
        assert posts[0].slug == "2024-02-01-new"
        assert posts[0].path == "content/posts/2024-02-01-new.mdx"
        assert posts[0].to_api()["downloadUrl"].endswith("2024-02-01-new.mdx")


class TestGetPost:
    def test_bare_filename_resolves_to_posts_dir(self, service, fake_repo):
        sha = fake_repo.seed(
            "content/posts/2024-01-01-hi.mdx", serialize_frontmatter({"title": "Hi"}, "Body")
        )
        post = service.get_post("2024-01-01-hi.mdx")
        assert post.path == "content/posts/2024-01-01-hi.mdx"
        assert post.filename == "2024-01-01-hi.mdx"
        assert post.sha == sha
        assert post.frontmatter == {"title": "Hi"}
        assert post.content == "Body"
        assert post.raw_content.startswith("export const frontmatter")

    def test_path_with_slash_is_used_as_given(self, service, fake_repo):
        fake_repo.seed("drafts/idea.mdx", "No metadata")
        post = service.get_post("drafts/idea.mdx")
        assert post.path == "drafts/idea.mdx"
        assert post.frontmatter == {}
        assert post.content == "No metadata"

    def test_malformed_metadata_is_reported(self, service, fake_repo):
        fake_repo.seed("content/posts/bad.mdx", "export const frontmatter = {title: 'x'}\n\nBody")
        post = service.get_post("bad.mdx")
        assert post.frontmatter == {}
        assert post.frontmatter_error
        assert post.to_api()["frontmatterError"] == post.frontmatter_error

    def test_missing_post(self, service):
        with pytest.raises(NotFoundError):
            service.get_post("nope.mdx")


class TestCreatePost:
    def test_creates_dated_file(self, service, fake_repo):
        result = service.create_post({"title": "Hi"}, "Body", "hi", "2024-01-01")

        assert result.filename == "2024-01-01-hi.mdx"
        assert result.path == "content/posts/2024-01-01-hi.mdx"
        stored = fake_repo.files[result.path].decode("utf-8")
        parsed = parse_frontmatter(stored)
        assert parsed.frontmatter == {"title": "Hi"}
        assert parsed.body == "Body"
        assert result.commit["commit"]["message"] == 'feat: create blog post "Hi"'

    def test_sanitizes_slug(self, service):
        result = service.create_post({"title": "x"}, "Body", "My First Post", "2024-01-01")
        assert result.filename == "2024-01-01-my-first-post.mdx"

    @pytest.mark.parametrize(
        "frontmatter, content, slug",
        [
            ({}, "Body", "hi"),
            (None, "Body", "hi"),
            ({"title": "Hi"}, "", "hi"),
            ({"title": "Hi"}, "Body", ""),
            ({"title": "Hi"}, "Body", None),
        ],
    )
    def test_requires_title_slug_content(self, service, fake_repo, frontmatter, content, slug):
        with pytest.raises(ValidationError):
            service.create_post(frontmatter, content, slug, "2024-01-01")
        assert fake_repo.writes() == []

    def test_never_overwrites(self, service, fake_repo):
        fake_repo.seed("content/posts/2024-01-01-hi.mdx", "original")
        with pytest.raises(ConflictError):
            service.create_post({"title": "Hi"}, "Body", "hi", "2024-01-01")
        assert fake_repo.files["content/posts/2024-01-01-hi.mdx"] == b"original"

    def test_rejects_non_string_content(self, service, fake_repo):
        with pytest.raises(ValidationError, match="must be strings"):
            service.create_post({"title": "Hi"}, ["x"], "hi", "2024-01-01")
        assert fake_repo.writes() == []


class TestUpdatePost:
    def test_replaces_content_with_frontmatter(self, service, fake_repo):
        sha = fake_repo.seed("content/posts/a.mdx", serialize_frontmatter({"title": "Old"}, "Old"))
        result = service.update_post("a.mdx", "New body", sha, frontmatter={"title": "New"})

        assert result.path == "content/posts/a.mdx"
        parsed = parse_frontmatter(fake_repo.files["content/posts/a.mdx"].decode())
        assert parsed.frontmatter == {"title": "New"}
        assert parsed.body == "New body"
        assert result.commit["commit"]["message"] == "feat: update blog post in a.mdx"

    def test_without_frontmatter_stores_raw_content(self, service, fake_repo):
        sha = fake_repo.seed("content/posts/a.mdx", "old")
        service.update_post("content/posts/a.mdx", "raw mdx", sha, message="fix typo")
        assert fake_repo.files["content/posts/a.mdx"] == b"raw mdx"

    def test_stale_sha_conflicts_and_leaves_file(self, service, fake_repo):
        fake_repo.seed("content/posts/a.mdx", "current")
        with pytest.raises(ConflictError):
            service.update_post("a.mdx", "mine", "0" * 40)
        assert fake_repo.files["content/posts/a.mdx"] == b"current"

    def test_rejects_non_object_frontmatter(self, service, fake_repo):
        sha = fake_repo.seed("content/posts/a.mdx", "old")
        with pytest.raises(ValidationError, match="frontmatter must be an object"):
            service.update_post("a.mdx", "body", sha, frontmatter=["title"])
        assert fake_repo.writes() == []

    @pytest.mark.parametrize("content, sha", [("", "abc"), ("body", ""), ("body", None)])
    def test_requires_content_and_sha(self, service, fake_repo, content, sha):
        with pytest.raises(ValidationError):
            service.update_post("a.mdx", content, sha)
        assert fake_repo.writes() == []


class TestDeletePost:
    def test_deletes_then_second_delete_is_not_found(self, service, fake_repo):
        sha = fake_repo.seed("content/posts/foo.mdx", "bye")
        result = service.delete_post("foo.mdx", sha)
        assert result.path == "content/posts/foo.mdx"
        assert "content/posts/foo.mdx" not in fake_repo.files

        with pytest.raises(NotFoundError):
            service.delete_post("foo.mdx", sha)

    def test_requires_sha(self, service):
        with pytest.raises(ValidationError):
            service.delete_post("foo.mdx", None)
