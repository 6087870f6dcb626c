"""GitHub App integration: installation tokens and the contents API.

Every repository operation mints a fresh installation token (one signed
JWT exchange) and then makes exactly one contents API call.  There is no
token cache, batching, pagination or retry: a failed call fails the
operation that made it.
"""

from __future__ import annotations

import base64
import http.client
import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

import jwt

from postdesk.config import GitHubConfig
from postdesk.content.models import RemoteFile, RepoEntry
from postdesk.errors import ConfigurationError, ConflictError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"

# Backdate iat to tolerate clock drift between us and GitHub.
CLOCK_SKEW_SECONDS = 60
JWT_LIFETIME_SECONDS = 10 * 60


class GitHubAppAuth:
    """Exchanges a GitHub App's signed JWT for an installation token."""

    def __init__(self, config: GitHubConfig) -> None:
        self.config = config
        self.base_url = config.api_url.rstrip("/")

    def _generate_jwt(self) -> str:
        """Generate an RS256 JWT identifying the GitHub App."""
        if not self.config.has_app_credentials:
            raise ConfigurationError("Missing GitHub App configuration")

        now = int(time.time())
        payload = {
            "iat": now - CLOCK_SKEW_SECONDS,
            "exp": now + JWT_LIFETIME_SECONDS,
            "iss": self.config.app_id,
        }
        try:
            return jwt.encode(payload, self.config.private_key, algorithm="RS256")
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise ConfigurationError(f"Invalid GitHub App private key: {exc}") from exc

    def get_installation_token(self) -> str:
        """Return a short-lived installation access token.

        Raises:
            ConfigurationError: App credentials are missing or unusable.
            UpstreamError: GitHub refused to issue a token.
        """
        app_jwt = self._generate_jwt()
        url = f"{self.base_url}/app/installations/{self.config.installation_id}/access_tokens"
        req = urllib.request.Request(
            url,
            method="POST",
            headers={
                "Authorization": f"Bearer {app_jwt}",
                "Accept": GITHUB_ACCEPT,
                "User-Agent": self.config.user_agent,
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            body = _read_error_body(exc)
            raise UpstreamError(
                f"Failed to create installation token: {exc.code} {body}",
                status=exc.code,
                body=body,
            ) from exc
        except urllib.error.URLError as exc:
            raise UpstreamError(f"Failed to reach GitHub: {exc.reason}") from exc
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise UpstreamError(f"GitHub request failed: {type(exc).__name__}: {exc}") from exc

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise UpstreamError("Installation token response did not include a token")
        return token


class RepoContentsClient:
    """Client for the GitHub repository contents API.

    Writes carry the blob sha of the version they replace.  GitHub rejects
    a stale sha, and a sha-less write to an existing path, and both
    rejections surface here as ConflictError.
    """

    def __init__(self, config: GitHubConfig, auth: GitHubAppAuth | None = None) -> None:
        self.config = config
        self.auth = auth or GitHubAppAuth(config)
        self.base_url = config.api_url.rstrip("/")

    def _contents_url(self, path: str, *, with_ref: bool = False) -> str:
        if not (self.config.owner and self.config.repo):
            raise ConfigurationError("Missing GitHub repository owner or name")
        encoded = urllib.parse.quote(path.strip("/"), safe="/")
        url = f"{self.base_url}/repos/{self.config.owner}/{self.config.repo}/contents/{encoded}"
        if with_ref:
            url += "?" + urllib.parse.urlencode({"ref": self.config.branch})
        return url

    def _request(self, method: str, url: str, data: dict | None = None) -> Any:
        """Make an authenticated request to the contents API.

        HTTP failures are raised as UpstreamError with the status attached;
        callers reclassify the statuses that mean something to them.
        """
        token = self.auth.get_installation_token()

        body = json.dumps(data).encode("utf-8") if data is not None else None
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": GITHUB_ACCEPT,
            "User-Agent": self.config.user_agent,
        }
        if body is not None:
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=body, method=method, headers=headers)

        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            error_body = _read_error_body(exc)
            raise UpstreamError(
                f"GitHub API error: {exc.code} {error_body}",
                status=exc.code,
                body=error_body,
            ) from exc
        except urllib.error.URLError as exc:
            raise UpstreamError(f"Failed to reach GitHub: {exc.reason}") from exc
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise UpstreamError(f"GitHub request failed: {type(exc).__name__}: {exc}") from exc

    # ── Read operations ──────────────────────────────────────────

    def list_dir(self, path: str) -> list[RepoEntry]:
        """List a directory; a missing directory is an empty listing."""
        try:
            result = self._request("GET", self._contents_url(path, with_ref=True))
        except UpstreamError as exc:
            if exc.status == 404:
                return []
            if exc.status is None:
                raise
            raise UpstreamError(f"Failed to list directory: {exc.status} {exc.body}",
                                status=exc.status, body=exc.body) from exc

        if not isinstance(result, list):
            return []
        return [RepoEntry.model_validate(item) for item in result]

    def get_file(self, path: str) -> RemoteFile:
        """Fetch a file and decode its content.

        Raises:
            NotFoundError: Nothing exists at ``path``, or it is a directory.
        """
        try:
            result = self._request("GET", self._contents_url(path, with_ref=True))
        except UpstreamError as exc:
            if exc.status == 404:
                raise NotFoundError(f"File not found: {path}") from exc
            raise

        if not isinstance(result, dict) or result.get("type", "file") != "file":
            raise NotFoundError(f"File not found: {path} is not a file")

        return RemoteFile(
            path=result.get("path", path),
            name=result.get("name", path.rsplit("/", 1)[-1]),
            sha=result["sha"],
            size=result.get("size", 0),
            content=base64.b64decode(result.get("content") or ""),
            download_url=result.get("download_url"),
        )

    # ── Write operations ─────────────────────────────────────────

    def put_file(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
        binary: bool = False,
    ) -> dict:
        """Create or update a file in a single commit.

        Args:
            path: Repository path of the file.
            content: Text to store, or base64 data when ``binary`` is set.
            message: Commit message.
            sha: Blob sha of the version being replaced.  Omit to create;
                creating over an existing file fails.
            binary: ``content`` is already base64-encoded.

        Returns:
            GitHub's commit response (``content`` and ``commit`` objects).

        Raises:
            ConflictError: ``sha`` is stale, or the path is already taken.
        """
        encoded = content if binary else base64.b64encode(content.encode("utf-8")).decode("ascii")
        body: dict[str, Any] = {
            "message": message,
            "content": encoded,
            "branch": self.config.branch,
        }
        if sha:
            body["sha"] = sha

        try:
            result = self._request("PUT", self._contents_url(path), body)
        except UpstreamError as exc:
            raise _classify_write_error(exc, path, "Commit failed") from exc

        logger.info("Committed %s to %s@%s", path, self.config.repo_slug, self.config.branch)
        return result

    def put_binary_file(
        self, path: str, base64_content: str, message: str, sha: str | None = None
    ) -> dict:
        """Create or update a binary file from base64 data."""
        return self.put_file(path, base64_content, message, sha, binary=True)

    def delete_file(self, path: str, message: str, sha: str) -> dict:
        """Delete a file, guarded by the sha of the version being removed.

        Raises:
            NotFoundError: Nothing exists at ``path``.
            ConflictError: ``sha`` is stale.
        """
        body = {"message": message, "sha": sha, "branch": self.config.branch}
        try:
            result = self._request("DELETE", self._contents_url(path), body)
        except UpstreamError as exc:
            raise _classify_write_error(exc, path, "Delete failed") from exc

        logger.info("Deleted %s from %s@%s", path, self.config.repo_slug, self.config.branch)
        return result


def _classify_write_error(exc: UpstreamError, path: str, action: str) -> Exception:
    """Map a failed contents write onto the error taxonomy."""
    if exc.status is None:
        return UpstreamError(f"{action}: {exc.message}")
    if exc.status == 404:
        return NotFoundError(f"File not found: {path}")
    if exc.status == 409:
        return ConflictError(f"{path} was changed by someone else; reload and retry")
    if exc.status == 422 and "sha" in exc.body:
        return ConflictError(f"{path} already exists or its sha does not match")
    return UpstreamError(f"{action}: {exc.status} {exc.body}", status=exc.status, body=exc.body)


def _read_error_body(exc: urllib.error.HTTPError) -> str:
    try:
        return exc.read().decode("utf-8", errors="replace")
    except (OSError, AttributeError):
        return ""
