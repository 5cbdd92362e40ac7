"""Alumni archive application configuration.

Loads settings from two YAML files:
  * archive.settings.yaml  — non-secret configuration
  * archive.secrets.yaml   — secrets (never committed)

Both paths can be overridden with the ARCHIVE_SETTINGS / ARCHIVE_SECRETS
environment variables.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("archive.settings.yaml")
SECRETS_FILE  = Path("archive.secrets.yaml")

DECADE_LABELS = (
    "1950s", "1960s", "1970s", "1980s",
    "1990s", "2000s", "2010s", "2020s",
)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _base_dir_for(settings_path: Path) -> Path:
    """Directory that relative storage paths resolve against.

    Settings kept in a ``config/`` folder resolve from the project root
    (the folder's parent); any other layout resolves from the settings
    file's own directory.
    """
    settings_dir = settings_path.resolve().parent
    if settings_dir.name == "config":
        return settings_dir.parent
    return settings_dir


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class AwsSecrets(BaseModel):
    access_key_id:     Optional[str] = None
    secret_access_key: Optional[str] = None
    region:            Optional[str] = "us-east-1"


class FirebaseSecrets(BaseModel):
    api_key: Optional[str] = None


class Secrets(BaseModel):
    aws:      AwsSecrets      = Field(default_factory=AwsSecrets)
    firebase: FirebaseSecrets = Field(default_factory=FirebaseSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str = "0.0.0.0"
    port:            int = 8000
    public_base_url: str = "http://localhost:8000"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"


class StorageSettings(BaseModel):
    db_path:    str = "archive.duckdb"
    upload_dir: str = "uploads"


class BackendSettings(BaseModel):
    """Which adapter serves each external collaborator."""
    identity:             Literal["local", "firebase", "disabled"] = "local"
    documents:            Literal["duckdb", "disabled"]            = "duckdb"
    blobs:                Literal["local", "s3", "disabled"]       = "local"
    call_timeout_seconds: float = 30.0
    s3_bucket:            str   = ""
    s3_public_base_url:   str   = ""

    @field_validator("call_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("call_timeout_seconds must be positive")
        return v


class UploadSettings(BaseModel):
    max_file_size_bytes:      int = 10 * 1024 * 1024
    allowed_mime_types:       List[str] = Field(default_factory=lambda: [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
    ])
    compress_images:          bool = True
    compress_threshold_bytes: int  = 2 * 1024 * 1024
    compress_max_width:       int  = 1920
    compress_quality:         int  = 80
    max_pending_files:        int  = 10
    max_pending_bytes:        int  = 50 * 1024 * 1024


class AuthSettings(BaseModel):
    session_ttl_minutes: int = 7 * 24 * 60
    min_password_length: int = 6


class UISettings(BaseModel):
    toast_duration_seconds: float = 5.0
    story_warning_chars:    int   = 1800
    story_max_chars:        int   = 2000
    default_decade:         str   = "1990s"
    workspace_idle_minutes: int   = 60
    max_workspaces:         int   = 10_000

    @field_validator("default_decade")
    @classmethod
    def _known_decade(cls, v: str) -> str:
        if v not in DECADE_LABELS:
            raise ValueError(f"default_decade must be one of {', '.join(DECADE_LABELS)}")
        return v


class AppConfig(BaseModel):
    server:   ServerSettings  = Field(default_factory=ServerSettings)
    logging:  LoggingSettings = Field(default_factory=LoggingSettings)
    storage:  StorageSettings = Field(default_factory=StorageSettings)
    backends: BackendSettings = Field(default_factory=BackendSettings)
    uploads:  UploadSettings  = Field(default_factory=UploadSettings)
    auth:     AuthSettings    = Field(default_factory=AuthSettings)
    ui:       UISettings      = Field(default_factory=UISettings)
    secrets:  Secrets         = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(settings_path or os.environ.get("ARCHIVE_SETTINGS") or SETTINGS_FILE)
    if secrets_path is None:
        env_secrets = os.environ.get("ARCHIVE_SECRETS")
        secrets_path = Path(env_secrets) if env_secrets else settings_path.with_name(SECRETS_FILE.name)

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(Path(secrets_path))

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)

    base_dir = _base_dir_for(settings_path)
    for attr in ("db_path", "upload_dir"):
        raw = getattr(config.storage, attr)
        if raw == ":memory:" or Path(raw).is_absolute():
            continue
        setattr(config.storage, attr, str(base_dir / raw))

    logger.info(
        "Settings loaded (server=%s:%s, identity=%s, documents=%s, blobs=%s)",
        config.server.host,
        config.server.port,
        config.backends.identity,
        config.backends.documents,
        config.backends.blobs,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    """Replace (or clear) the process-wide config."""
    global _config
    _config = config
