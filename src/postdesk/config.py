"""Unified configuration loaded from .postdesk.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.

The resulting PostdeskConfig is built once at process start and handed to
every component that needs it (app factory, services, CLI commands).
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".postdesk.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
    Path.home() / ".config" / "postdesk",
]

MAX_IMAGE_BYTES = 5 * 1024 * 1024

DEFAULT_IMAGE_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
]


class GitHubConfig(BaseModel):
    """[github] section: GitHub App identity and target repository."""

    app_id: str = ""
    private_key: str = ""
    installation_id: str = ""
    owner: str = ""
    repo: str = ""
    branch: str = "main"
    api_url: str = "https://api.github.com"
    user_agent: str = "postdesk/0.1.0"
    timeout: float | None = None

    @field_validator("private_key")
    @classmethod
    def _unescape_newlines(cls, value: str) -> str:
        # PEM keys usually arrive through env vars with literal "\n" sequences.
        return value.replace("\\n", "\n")

    @field_validator("app_id", "installation_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def has_app_credentials(self) -> bool:
        return bool(self.app_id and self.private_key and self.installation_id)

    @property
    def is_configured(self) -> bool:
        return self.has_app_credentials and bool(self.owner and self.repo)

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"


class AuthConfig(BaseModel):
    """[auth] section: identity provider client and email allow-list."""

    allowed_emails: list[str] = Field(default_factory=list)
    client_id: str = ""
    client_secret: str = ""
    secret_key: str = ""

    @field_validator("allowed_emails", mode="before")
    @classmethod
    def _split_emails(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, list):
            return [str(v).strip().lower() for v in value if str(v).strip()]
        return value

    @property
    def has_provider_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


class ContentConfig(BaseModel):
    """[content] section: repository layout for posts and images."""

    posts_dir: str = "content/posts"
    post_extension: str = ".mdx"
    images_dir: str = "public/blog-images"
    images_url_prefix: str = "/blog-images"
    max_image_bytes: int = MAX_IMAGE_BYTES
    allowed_image_types: list[str] = Field(default_factory=lambda: list(DEFAULT_IMAGE_TYPES))
    site_url: str = ""
    default_category: str = ""


class ServerConfig(BaseModel):
    """[server] section."""

    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False


class PostdeskConfig(BaseModel):
    """Top-level configuration for the postdesk service."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    content: ContentConfig = Field(default_factory=ContentConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def load_config(path: str | Path | None = None) -> PostdeskConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .postdesk.toml in CWD
    3. ~/.config/postdesk/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged PostdeskConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        global_config = Path.home() / ".config" / "postdesk" / "config.toml"
        if not data and global_config.exists():
            data = _load_toml(global_config)
            logger.info("Loaded config from %s", global_config)

    config = PostdeskConfig.model_validate(data) if data else PostdeskConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: PostdeskConfig, **cli_kwargs: object) -> PostdeskConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "host": ("server", "host"),
        "port": ("server", "port"),
        "debug": ("server", "debug"),
        "branch": ("github", "branch"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return PostdeskConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: PostdeskConfig) -> PostdeskConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "GITHUB_APP_ID": ("github", "app_id"),
        "GITHUB_APP_PRIVATE_KEY": ("github", "private_key"),
        "GITHUB_INSTALLATION_ID": ("github", "installation_id"),
        "GITHUB_REPO_OWNER": ("github", "owner"),
        "GITHUB_REPO_NAME": ("github", "repo"),
        "GITHUB_BRANCH": ("github", "branch"),
        "GITHUB_API_URL": ("github", "api_url"),
        "ALLOWED_EMAILS": ("auth", "allowed_emails"),
        "GITHUB_APP_CLIENT_ID": ("auth", "client_id"),
        "GITHUB_APP_CLIENT_SECRET": ("auth", "client_secret"),
        "POSTDESK_SECRET_KEY": ("auth", "secret_key"),
        "POSTDESK_SITE_URL": ("content", "site_url"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    timeout_raw = os.environ.get("GITHUB_TIMEOUT")
    if timeout_raw is not None:
        try:
            data["github"]["timeout"] = float(timeout_raw)
        except ValueError:
            logger.warning("Ignoring non-numeric GITHUB_TIMEOUT=%r", timeout_raw)

    return PostdeskConfig.model_validate(data)
