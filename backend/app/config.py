"""DropLink application configuration.

Loads settings from two YAML files:
  * droplink.settings.yaml  : non-secret configuration
  * droplink.secrets.yaml   : blob store credentials (never committed)

A handful of environment variables override the YAML values so that
deployments can inject credentials without writing a secrets file.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("droplink.settings.yaml")
SECRETS_FILE  = Path("droplink.secrets.yaml")

# env var -> (section, key) inside the merged settings dict
ENV_OVERRIDES = {
    "BLOB_STORE_ACCOUNT_ID":    ("secrets.blob_store", "account_id"),
    "BLOB_STORE_ACCESS_KEY":    ("secrets.blob_store", "access_key"),
    "BLOB_STORE_ACCESS_SECRET": ("secrets.blob_store", "access_secret"),
    "PORT":                     ("server", "port"),
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class BlobStoreSecrets(BaseModel):
    account_id:    Optional[str] = None
    access_key:    Optional[str] = None
    access_secret: Optional[str] = None


class Secrets(BaseModel):
    blob_store: BlobStoreSecrets = Field(default_factory=BlobStoreSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str  = "0.0.0.0"
    port:            int  = 8000
    public_base_url: Optional[str] = None
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"


class UploadSettings(BaseModel):
    max_files: int = 50
    tmp_dir:   str = "tmp"

    @field_validator("max_files")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_files must be at least 1")
        return value


class LinkSettings(BaseModel):
    default_title:          str = "My Folder"
    # 0 disables the background sweep; expiry is still enforced on read.
    sweep_interval_seconds: int = 0


class BlobStoreSettings(BaseModel):
    """Where uploaded bytes end up.

    ``local`` writes into ``local_dir`` and serves files from ``/blobs``.
    ``s3`` talks to any S3-compatible endpoint; ``endpoint_url`` may contain
    an ``{account_id}`` placeholder filled from the secrets file.
    """
    backend:         Literal["local", "s3"] = "local"
    folder:          str = "uploads"
    chat_folder:     str = "chat_uploads"
    bucket:          Optional[str] = None
    region:          str = "us-east-1"
    endpoint_url:    Optional[str] = None
    public_base_url: Optional[str] = None
    local_dir:       str = "blobs"


class AppSettings(BaseModel):
    server:     ServerSettings    = Field(default_factory=ServerSettings)
    logging:    LoggingSettings   = Field(default_factory=LoggingSettings)
    uploads:    UploadSettings    = Field(default_factory=UploadSettings)
    links:      LinkSettings      = Field(default_factory=LinkSettings)
    blob_store: BlobStoreSettings = Field(default_factory=BlobStoreSettings)
    secrets:    Secrets           = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any]) -> None:
    """Copy recognised environment variables into the raw settings dict."""
    for env_name, (section_path, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        section = data
        for part in section_path.split("."):
            child = section.get(part)
            if not isinstance(child, dict):
                child = {}
                section[part] = child
            section = child
        section[key] = value
        logger.debug("Applied %s from environment", env_name)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppSettings:
    """Load and merge settings + secrets into a single *AppSettings* object."""
    settings_data = _load_yaml(Path(settings_path) if settings_path else SETTINGS_FILE)
    secrets_data  = _load_yaml(Path(secrets_path) if secrets_path else SECRETS_FILE)

    # Merge: secrets live under the "secrets" key in AppSettings
    settings_data["secrets"] = secrets_data
    _apply_env_overrides(settings_data)

    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, blob_store.backend=%s, max_files=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.blob_store.backend,
        app_settings.uploads.max_files,
    )
    return app_settings


@lru_cache(maxsize=1)
def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    return load_config()
