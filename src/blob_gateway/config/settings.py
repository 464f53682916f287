# src/blob_gateway/config/settings.py
import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE_ENV_VAR = "BLOB_GATEWAY_CONFIG"

# Keys of the legacy JSON config file mapped onto settings fields
LEGACY_CONFIG_KEYS = {
    "Servers": "mongodb_servers",
    "Logfile": "logfile",
    "Database": "database",
    "GridFSCollection": "gridfs_collection",
    "HandlePath": "handle_path",
    "Debug": "debug",
    "Mode": "read_mode",
    "CoreNum": "workers",
}

READ_MODES = ["strong", "monotonic", "eventual"]


class Settings(BaseSettings):
    """
    Single source of truth for all gateway settings.

    Configuration precedence:
    1. Values from a JSON config file passed to `load_settings` (highest priority)
    2. Environment variables
    3. .env file (if exists)
    4. Default values in this class (lowest priority)

    Usage:
        from blob_gateway.config.settings import get_settings
        settings = get_settings()
        bucket_name = settings.image_bucket
    """

    # Application Settings
    app_name: str = Field(
        default="blob-gateway",
        description="Application name"
    )

    # Primary store (MongoDB GridFS)
    mongodb_servers: List[str] = Field(
        default=["localhost:27017"],
        description="MongoDB servers as host:port entries"
    )

    mongodb_uri: Optional[str] = Field(
        default=None,
        alias="MONGODB_URI",
        description="Full MongoDB connection string, overrides mongodb_servers"
    )

    database: str = Field(
        default="gogridfs",
        description="Database holding the GridFS collection"
    )

    gridfs_collection: str = Field(
        default="fs",
        description="GridFS root collection name"
    )

    read_mode: str = Field(
        default="strong",
        description="Consistency mode: strong, monotonic or eventual"
    )

    # HTTP Server
    listen_host: str = Field(default="0.0.0.0")
    listen_port: int = Field(default=8000)

    handle_path: str = Field(
        default="/file",
        description="Path prefix of the download, thumbnail and upload endpoints"
    )

    workers: int = Field(
        default=4,
        ge=1,
        description="Number of server worker processes"
    )

    # Transfer and derivation
    buffer_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Chunk size used when streaming objects out of the primary store"
    )

    max_upload_size: int = Field(
        default=5 * 1024 * 1024,
        gt=0,
        description="Largest payload accepted by the upload endpoint, in bytes"
    )

    thumbnail_width: int = Field(default=200, gt=0)
    compress_quality: int = Field(default=50, ge=1, le=100)

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # S3 mirror buckets, one per content category
    image_bucket: str = Field(default="mico-image")
    audio_bucket: str = Field(default="mico-audio")
    video_bucket: str = Field(default="mico-video")

    mirror_max_workers: int = Field(
        default=4,
        ge=1,
        description="Upper bound on concurrent mirror uploads"
    )

    mirror_max_pending: int = Field(
        default=16,
        ge=1,
        description="Mirror copies held in memory at once, running or waiting; further copies are dropped"
    )

    # Logging
    debug: bool = Field(
        default=False,
        description="Emit per-request timing lines"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    logfile: Optional[str] = Field(
        default=None,
        description="Append logs to this file instead of stdout"
    )

    @field_validator('read_mode', mode='before')
    @classmethod
    def normalize_read_mode(cls, v):
        """Accept read modes in any letter case, empty means strong."""
        if not v:
            return "strong"
        return str(v).lower()

    @field_validator('read_mode')
    @classmethod
    def validate_read_mode(cls, v):
        if v not in READ_MODES:
            raise ValueError(f"Invalid read_mode: {v}. Must be one of {READ_MODES}")
        return v

    @field_validator('mongodb_servers')
    @classmethod
    def validate_mongodb_servers(cls, v):
        servers = [server for server in v if server]
        if not servers:
            raise ValueError("invalid mongodb server: at least one server is required")
        return servers

    @field_validator('handle_path')
    @classmethod
    def normalize_handle_path(cls, v):
        return "/" + v.strip("/") if v.strip("/") else ""

    @property
    def resolved_mongodb_uri(self) -> str:
        """Connection string for the primary store."""
        if self.mongodb_uri:
            return self.mongodb_uri
        return "mongodb://" + ",".join(self.mongodb_servers)

    @property
    def buckets(self) -> Dict[str, str]:
        """Mirror bucket names keyed by content category value."""
        return {
            "image": self.image_bucket,
            "audio": self.audio_bucket,
            "video": self.video_bucket,
        }

    def get_display_dict(self) -> Dict[str, Any]:
        """Settings as a dictionary with credentials masked."""
        values = self.model_dump()
        for secret in ("aws_access_key_id", "aws_secret_access_key", "mongodb_uri"):
            if values.get(secret):
                values[secret] = "****"
        return values

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


def _translate_legacy_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map keys of the legacy JSON config format onto settings fields."""
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key == "Listen":
            host, _, port = str(value).rpartition(":")
            if host:
                values["listen_host"] = host
            if port:
                values["listen_port"] = int(port)
        elif key == "CoreNum" and not value:
            # zero means "use the default"
            continue
        else:
            values[LEGACY_CONFIG_KEYS.get(key, key)] = value
    return values


def load_settings(config_file: Optional[str] = None) -> Settings:
    """
    Build settings, optionally overlaying a JSON config file.

    Args:
        config_file: Path to a JSON file. Both settings field names and the
            legacy keys (`Servers`, `Database`, `Listen`, ...) are accepted.

    Returns:
        Settings instance
    """
    if not config_file:
        return Settings()
    raw = json.loads(Path(config_file).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_file} must contain a JSON object")
    return Settings(**_translate_legacy_keys(raw))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return load_settings(os.environ.get(CONFIG_FILE_ENV_VAR))
