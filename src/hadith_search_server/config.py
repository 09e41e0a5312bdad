"""Centralized configuration for hadith-search-server using Pydantic Settings."""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilityCollectorConfig(BaseModel):
    """Configuration for OTLP trace, metric and log export."""

    model_config = {"extra": "forbid"}

    enabled: Annotated[
        bool,
        Field(
            description="Enable OTLP export to an external collector",
        ),
    ] = False

    otlp_protocol: Annotated[
        Literal["http", "grpc"],
        Field(
            description="OTLP transport protocol",
        ),
    ] = "grpc"

    collector_endpoint: Annotated[
        str,
        Field(
            description="OTLP collector endpoint (HTTP uses /v1/traces)",
            examples=["http://localhost:4317", "http://localhost:4318/v1/traces"],
        ),
    ] = "http://localhost:4317"

    headers: Annotated[
        dict[str, str],
        Field(
            description="Optional headers to include with OTLP requests",
        ),
    ] = Field(default_factory=dict)

    timeout_seconds: Annotated[
        int,
        Field(
            ge=1,
            le=60,
            description="OTLP exporter timeout in seconds",
        ),
    ] = 10

    grpc_insecure: Annotated[
        bool,
        Field(
            description="Allow insecure gRPC (plaintext) connections",
        ),
    ] = True

    resource_attributes: Annotated[
        dict[str, str],
        Field(
            description="Additional OpenTelemetry resource attributes",
        ),
    ] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    All environment variables are validated at startup with proper types.
    Nested observability settings use ``__`` as delimiter, e.g.
    ``OBSERVABILITY__ENABLED=true``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Corpus sources
    data_dir: Path = Field(default=Path("data"), description="Directory holding the corpus documents")
    manifest_filename: str = Field(
        default="collections-manifest.json", description="Shard manifest file name inside data_dir"
    )
    collections_dirname: str = Field(default="collections", description="Shard directory name inside data_dir")
    unified_filename: str = Field(default="hadith-data.json", description="Unified corpus file name inside data_dir")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Server listen port")
    uvicorn_workers: int = Field(default=1, ge=1, description="Number of Uvicorn workers")
    uvicorn_limit_concurrency: int = Field(default=100, ge=1, description="Uvicorn concurrency limit")

    # Paging
    default_page_limit: int = Field(default=20, ge=1, description="Page size when the caller gives none")
    max_page_limit: int = Field(default=100, ge=1, description="Upper bound applied to caller page sizes")
    suggestion_limit: int = Field(default=10, ge=1, le=20, description="Default number of suggestions")

    # Term frequency analysis
    term_token_budget: int = Field(default=50, ge=1, description="Tokens analysed per record for term frequency")
    min_term_length: int = Field(default=3, ge=1, description="Shortest term counted by term frequency")

    # Logging
    log_level: str = Field(
        default="info", pattern=r"^(debug|info|warning|error|critical)$", description="Logging level"
    )
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    access_log: bool = Field(default=False, description="Keep uvicorn access logs at INFO")

    # Security
    mask_error_details: bool = Field(
        default=True, description="Mask internal error details in responses (security best practice)"
    )

    observability: ObservabilityCollectorConfig = Field(default_factory=ObservabilityCollectorConfig)

    @model_validator(mode="after")
    def _check_page_limits(self) -> "Settings":
        if self.default_page_limit > self.max_page_limit:
            raise ValueError(
                f"DEFAULT_PAGE_LIMIT ({self.default_page_limit}) must not exceed MAX_PAGE_LIMIT ({self.max_page_limit})"
            )
        return self

    @property
    def manifest_path(self) -> Path:
        return self.data_dir / self.manifest_filename

    @property
    def collections_dir(self) -> Path:
        return self.data_dir / self.collections_dirname

    @property
    def unified_path(self) -> Path:
        return self.data_dir / self.unified_filename

    def clamp_limit(self, limit: int | None) -> int:
        """Apply the default and the upper bound to a caller-supplied page size."""
        if limit is None:
            return self.default_page_limit
        return max(0, min(limit, self.max_page_limit))
