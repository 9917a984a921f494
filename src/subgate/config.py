"""
SubGate Configuration

Environment-based configuration. All settings can be overridden via
environment variables with the SUBGATE_ prefix.
"""
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator


class Settings(BaseSettings):
    """
    SubGate configuration settings.
    All settings can be overridden via environment variables with SUBGATE_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SUBGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug logging")
    reload: bool = Field(default=False, description="Enable hot reload (dev only)")

    instance_id: str = Field(
        default="subgate-1",
        description="Instance identifier for this SubGate"
    )

    # Worker catalog
    worker_catalog_path: Optional[str] = Field(
        default=None,
        description="JSON file of worker definitions registered at startup"
    )

    # Health monitoring
    health_check_interval_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Idle time after which a worker is probed"
    )
    health_sweep_interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Cadence of the background health sweep"
    )
    health_probe_success_probability: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Probability that a liveness probe succeeds"
    )
    busy_load_threshold: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Load above which a healthy worker is labelled busy"
    )
    comfortable_load_ceiling: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Load ceiling for first-choice worker selection"
    )

    # Statistics smoothing
    success_rate_smoothing_weight: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="EMA weight for success rate and response time"
    )

    # Capability profile defaults
    default_avg_response_time_ms: float = Field(default=30000.0, ge=0.0)
    default_reliability: float = Field(default=95.0, ge=0.0, le=100.0)

    # Scoring weights (must sum to 100)
    weight_success_rate: float = Field(default=30.0, ge=0.0)
    weight_load: float = Field(default=20.0, ge=0.0)
    weight_tools: float = Field(default=20.0, ge=0.0)
    weight_specialization: float = Field(default=10.0, ge=0.0)
    weight_role: float = Field(default=20.0, ge=0.0)

    # Delegation
    default_task_timeout_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Timeout applied when a request does not carry one"
    )

    # Simulated execution
    simulated_min_processing_ms: int = Field(default=1000, ge=0)
    simulated_max_extra_processing_ms: int = Field(default=2000, ge=0)
    simulated_success_confidence_threshold: float = Field(
        default=70.0,
        ge=0.0,
        le=100.0,
        description="Simulated tasks succeed when confidence exceeds this"
    )

    # CORS configuration
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(default=True)
    cors_allowed_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    cors_allowed_headers: list[str] = Field(
        default=["Authorization", "Content-Type", "X-API-Key"]
    )

    # Authentication
    api_key: str = Field(
        default="",
        description="API key for REST endpoints (empty disables auth)"
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @model_validator(mode="after")
    def validate_scoring_weights(self) -> "Settings":
        """Scoring weights form a 100-point scale."""
        total = (
            self.weight_success_rate
            + self.weight_load
            + self.weight_tools
            + self.weight_specialization
            + self.weight_role
        )
        if abs(total - 100.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 100, got {total}")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
