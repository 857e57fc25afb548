"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class CacheConfig(BaseModel):
    """Resolved-link cache configuration (backend-agnostic)."""

    backend: Literal["diskcache", "redis"] = Field(
        default="diskcache",
        description="Cache backend: 'diskcache' (SQLite) or 'redis'",
    )
    directory: Path = Field(
        default=Path("./.cache/resolvarr"),
        validation_alias=AliasChoices("directory", "dir"),
        description="Diskcache SQLite DB path",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis)",
    )
    link_ttl_hours: float = Field(
        default=48.0,
        description="Lifetime of a resolved link before it must be re-derived.",
    )
    sweep_interval_seconds: float = Field(
        default=3600.0,
        description="Interval of the expired-link sweep.",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel cache ops (semaphore limit)",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("link_ttl_hours", "sweep_interval_seconds")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v


class ResolverConfig(BaseModel):
    """Candidate validation and ranking settings."""

    min_audio_score: int = Field(
        default=0,
        description=(
            "Minimum audio score a local match needs to be served without "
            "trying the cloud backend."
        ),
    )
    min_mb_per_minute: dict[int, float] = Field(
        default={2160: 15.0, 1080: 5.0, 720: 2.0, 480: 1.0, 360: 0.5, 0: 0.5},
        description="Minimum MB/min density per resolution tier.",
    )
    fallback_bitrate_factor: float = Field(
        default=0.7,
        description="Alternate must be below currentBitrate * factor.",
    )
    default_runtime_minutes: dict[str, float] = Field(
        default={"movie": 120.0, "episode": 45.0},
        description=(
            "Runtime assumed for bitrate estimation when the request has none. "
            "Never used by the density gate."
        ),
    )

    @field_validator("fallback_bitrate_factor")
    @classmethod
    def _validate_factor(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("fallback_bitrate_factor must be in (0, 1)")
        return v


class JobConfig(BaseModel):
    """Cloud resolution job settings."""

    reap_interval_seconds: float = Field(default=300.0)
    max_age_seconds: float = Field(
        default=300.0,
        description="Jobs older than this are reaped regardless of status.",
    )
    poll_interval_seconds: float = Field(default=2.0)
    max_poll_attempts: int = Field(
        default=60,
        description="Polls before a job that never gets files gives up.",
    )
    max_transient_retries: int = Field(
        default=3,
        description="Retries per cloud call on transient network errors.",
    )
    retry_backoff_seconds: float = Field(default=1.0)


class LocalIndexConfig(BaseModel):
    """Local mount index settings."""

    enabled: bool = Field(default=True)
    mount_path: Path = Field(default=Path("/mnt/media"))
    stream_base_url: str = Field(
        default="http://localhost:9999/media",
        description="Base URL under which mount files are served.",
    )
    video_extensions: list[str] = Field(
        default=[".mkv", ".mp4", ".avi", ".m4v", ".ts", ".webm"],
    )
    title_match_threshold: float = Field(
        default=0.85,
        description="rapidfuzz token_set_ratio (0..1) accepted as a title match.",
    )
    rescan_interval_seconds: float = Field(
        default=60.0,
        ge=0,
        description="How long a directory walk is reused before the mount is rescanned.",
    )

    @field_validator("mount_path", mode="before")
    @classmethod
    def _validate_mount_path(cls, v: Any) -> Path:
        return _normalize_path(v)


class CloudConfig(BaseModel):
    """Cloud backend connection settings."""

    enabled: bool = Field(default=True)
    base_url: str = Field(default="http://localhost:8282/api")
    api_token: str | None = Field(default=None)
    timeout_seconds: float = Field(
        default=15.0,
        description="Per-attempt timeout for cloud round-trips.",
    )


class BandwidthConfig(BaseModel):
    """Bandwidth monitor and stutter detection settings."""

    default_test_seconds: int = Field(default=5)
    min_test_seconds: int = Field(default=1)
    max_test_seconds: int = Field(default=10)
    chunk_size: int = Field(default=64 * 1024)
    min_reliable_duration_ms: int = Field(default=2000)
    max_samples: int = Field(default=5)
    stale_after_hours: float = Field(default=24.0)
    retest_divergence: float = Field(
        default=0.5,
        description="Relative change between last two samples that suggests a retest.",
    )
    safety_margin: float = Field(default=1.3)
    max_recorded_mbps: float = Field(default=1000.0)
    stutter_low_threshold: int = Field(default=3)
    stutter_consecutive_threshold: int = Field(default=2)
    stutter_window_ms: int = Field(default=30_000)

    @model_validator(mode="after")
    def _validate_test_range(self) -> "BandwidthConfig":
        if not (
            1 <= self.min_test_seconds
            <= self.default_test_seconds
            <= self.max_test_seconds
        ):
            raise ValueError("bandwidth test seconds must satisfy 1 <= min <= default <= max")
        return self


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/cache/resolver/jobs/...).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="resolvarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default timeout for outgoing HTTP requests.",
    )
    http_user_agent: str = Field(
        default="Resolvarr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    jobs: JobConfig = Field(default_factory=JobConfig)
    local_index: LocalIndexConfig = Field(default_factory=LocalIndexConfig)
    cloud: CloudConfig = Field(default_factory=CloudConfig)
    bandwidth: BandwidthConfig = Field(default_factory=BandwidthConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": self.cache.model_dump(mode="json"),
            "resolver": self.resolver.model_dump(mode="json"),
            "jobs": self.jobs.model_dump(mode="json"),
            "local_index": self.local_index.model_dump(mode="json"),
            "cloud": self.cloud.model_dump(mode="json", exclude={"api_token"}),
            "bandwidth": self.bandwidth.model_dump(mode="json"),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read RESOLVARR_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - RESOLVARR_LOG_LEVEL
    - RESOLVARR_CACHE_BACKEND
    - RESOLVARR_LOCAL_INDEX_MOUNT_PATH
    - RESOLVARR_CLOUD_API_TOKEN
    """

    model_config = SettingsConfigDict(
        env_prefix="RESOLVARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_backend: Optional[Literal["diskcache", "redis"]] = None
    cache_dir: Optional[Path] = None
    cache_redis_url: Optional[str] = None

    local_index_enabled: Optional[bool] = None
    local_index_mount_path: Optional[Path] = None
    local_index_stream_base_url: Optional[str] = None

    cloud_enabled: Optional[bool] = None
    cloud_base_url: Optional[str] = None
    cloud_api_token: Optional[str] = None

    @field_validator("cache_dir", "local_index_mount_path", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
