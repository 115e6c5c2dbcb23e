"""Service configuration.

Settings come from three layers, later layers winning:
1. A YAML file (``config.yaml`` in the working directory by default, or
   the path in the RELEASE_NOTES_CONFIG env var)
2. Environment variables named after the upper-cased field
   (GOCD_URL, JIRA_USER, CONFLUENCE_SPACE_KEY, ...)
3. For the two API keys only: secret files mounted by the platform
   (``/var/openfaas/secrets/<name>`` or ``/run/secrets/<name>``)

Example config.yaml:

    port: 8080
    gocd_url: https://gocd.example.com
    jira_url: https://example.atlassian.net
    jira_user: release-bot@example.com
    confluence_space_key: RN
    jira_release_notes_field: customfield_10110
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError, field_validator, model_validator

from gocd_release_notes.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "RELEASE_NOTES_CONFIG"
SECRET_DIRS: tuple[Path, ...] = (
    Path("/var/openfaas/secrets"),
    Path("/run/secrets"),
)
# Used when no secret is configured anywhere; only good for local testing
PLACEHOLDER_SECRET = "notset"

SECRET_FIELDS = ("gocd_api_key", "jira_api_key")


class Settings(BaseModel):
    """Validated service settings.

    Attributes:
        port: Port the HTTP server listens on
        gocd_url: GoCD server root (without ``/go``)
        gocd_api_key: GoCD personal access token (bearer auth)
        jira_url: Jira root URL
        jira_user: Atlassian account used for Jira and Confluence
        jira_api_key: Atlassian API token for ``jira_user``
        confluence_url: Confluence root, defaults to ``<jira_url>/wiki``
        confluence_space_key: Space the blog posts are created in
        confluence_format: Representation wiki markup is converted to
        jira_release_notes_field: Jira field holding the release notes
        verify_tls: Verify upstream TLS certificates
        http_timeout: Upstream request timeout in seconds (None disables it)
        environment: "development" or "production" (log rendering)
        log_level: Minimum log level
    """

    port: int = 8080
    gocd_url: str = "http://localhost:8153"
    gocd_api_key: str = PLACEHOLDER_SECRET
    jira_url: str = "http://localhost:8080"
    jira_user: str = ""
    jira_api_key: str = PLACEHOLDER_SECRET
    confluence_url: str = ""
    confluence_space_key: str = ""
    confluence_format: str = "editor2"
    jira_release_notes_field: str = "customfield_10110"
    verify_tls: bool = True
    http_timeout: float | None = 30.0
    environment: str = "development"
    log_level: str = "INFO"

    @field_validator("gocd_url", "jira_url", "confluence_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def default_confluence_url(self) -> Settings:
        """Confluence Cloud lives under the Jira site at /wiki."""
        if not self.confluence_url:
            self.confluence_url = f"{self.jira_url}/wiki"
        return self


def read_secret(name: str, secret_dirs: Sequence[Path] = SECRET_DIRS) -> str | None:
    """Return the stripped content of the first secret file found, if any."""
    for directory in secret_dirs:
        path = directory / name
        if path.is_file():
            return path.read_text().strip()
    return None


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    secret_dirs: Sequence[Path] = SECRET_DIRS,
) -> Settings:
    """Load settings from YAML, environment variables and secret files.

    Args:
        path: YAML file to read. Defaults to RELEASE_NOTES_CONFIG or
              ./config.yaml. A missing file is not an error.
        environ: Environment to read overrides from (defaults to os.environ)
        secret_dirs: Directories searched for the API key secret files

    Returns:
        Validated Settings

    Raises:
        ValueError: If the YAML is invalid or the values fail validation
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))

    raw: dict = {}
    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid config in {config_path}: expected a mapping")

    for name in Settings.model_fields:
        value = env.get(name.upper())
        if value is not None:
            raw[name] = value

    for name in SECRET_FIELDS:
        # secret files are named without separators, e.g. "gocdapikey"
        secret = read_secret(name.replace("_", ""), secret_dirs)
        if secret:
            raw[name] = secret
        elif not raw.get(name):
            logger.warning("secret_not_set", secret=name, using=PLACEHOLDER_SECRET)

    try:
        return Settings.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings in {config_path}: {exc}") from exc
