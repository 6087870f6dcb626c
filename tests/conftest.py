"""Shared fixtures: an in-memory repository and a configured Flask app."""

from __future__ import annotations

import base64
import hashlib
import threading

import pytest

from postdesk.config import AuthConfig, GitHubConfig, PostdeskConfig
from postdesk.content.models import RemoteFile, RepoEntry
from postdesk.errors import ConflictError, NotFoundError
from postdesk.web.app import create_app

EDITOR_EMAIL = "editor@example.com"


def blob_sha(data: bytes) -> str:
    """Git's blob sha, the same token GitHub hands out."""
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


class FakeRepo:
    """In-memory stand-in for RepoContentsClient with GitHub's sha rules."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def seed(self, path: str, data: bytes | str) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.files[path] = data
        return blob_sha(data)

    def list_dir(self, path: str) -> list[RepoEntry]:
        with self._lock:
            self.calls.append(("list", path))
            prefix = path.strip("/") + "/"
            return [
                RepoEntry(
                    name=p.rsplit("/", 1)[-1],
                    path=p,
                    sha=blob_sha(data),
                    size=len(data),
                    type="file",
                    download_url=f"https://raw.example.com/{p}",
                )
                for p, data in sorted(self.files.items())
                if p.startswith(prefix) and "/" not in p[len(prefix):]
            ]

    def get_file(self, path: str) -> RemoteFile:
        with self._lock:
            self.calls.append(("get", path))
            if path not in self.files:
                raise NotFoundError(f"File not found: {path}")
            data = self.files[path]
            return RemoteFile(
                path=path, name=path.rsplit("/", 1)[-1], sha=blob_sha(data), size=len(data), content=data
            )

    def put_file(self, path, content, message, sha=None, binary=False) -> dict:
        with self._lock:
            self.calls.append(("put", path))
            current = self.files.get(path)
            if sha is None and current is not None:
                raise ConflictError(f"{path} already exists or its sha does not match")
            if sha is not None and (current is None or blob_sha(current) != sha):
                raise ConflictError(f"{path} was changed by someone else; reload and retry")
            data = base64.b64decode(content) if binary else content.encode("utf-8")
            self.files[path] = data
            return {
                "content": {"path": path, "sha": blob_sha(data)},
                "commit": {"sha": "c0ffee", "message": message},
            }

    def put_binary_file(self, path, base64_content, message, sha=None) -> dict:
        return self.put_file(path, base64_content, message, sha, binary=True)

    def delete_file(self, path, message, sha) -> dict:
        with self._lock:
            self.calls.append(("delete", path))
            current = self.files.get(path)
            if current is None:
                raise NotFoundError(f"File not found: {path}")
            if blob_sha(current) != sha:
                raise ConflictError(f"{path} was changed by someone else; reload and retry")
            del self.files[path]
            return {"content": None, "commit": {"sha": "deadbeef", "message": message}}

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("put", "delete")]


@pytest.fixture
def config() -> PostdeskConfig:
    return PostdeskConfig(
        github=GitHubConfig(owner="acme", repo="blog"),
        auth=AuthConfig(allowed_emails=[EDITOR_EMAIL], secret_key="test-secret"),
    )


@pytest.fixture
def fake_repo() -> FakeRepo:
    return FakeRepo()


@pytest.fixture
def app(config, fake_repo):
    flask_app = create_app(config, client=fake_repo)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    """A test client whose session belongs to the allow-listed editor."""
    with client.session_transaction() as sess:
        sess["user"] = {"email": EDITOR_EMAIL, "name": "Editor"}
    return client
