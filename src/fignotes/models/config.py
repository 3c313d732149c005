"""Configuration models."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringConfig(BaseModel):
    """Thresholds for health, readiness and avoidance heuristics."""

    avoidance_age_days: int = Field(5, description="Age after which large open work counts as avoided")
    stale_age_days: int = Field(7, description="Age after which an open task costs health")
    long_estimate_minutes: int = Field(60, description="Estimate above which an open task costs health")
    critical_penalty: int = Field(15, description="Health penalty for an open Critical task")
    stale_penalty: int = Field(10, description="Health penalty for a stale open task")
    long_estimate_penalty: int = Field(5, description="Health penalty for a long open task")
    high_risk_age_days: int = Field(14, description="Oldest open age that makes a file High Risk")
    high_risk_unresolved: int = Field(20, description="Open count above which a file is High Risk")

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "avoidance_age_days": 5,
                "stale_age_days": 7,
                "long_estimate_minutes": 60,
                "high_risk_age_days": 14,
                "high_risk_unresolved": 20,
            }
        }


class FigNotesSettings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are prefixed with FIGNOTES_ (e.g., FIGNOTES_STORE_DIR).
    """

    model_config = SettingsConfigDict(
        env_prefix="FIGNOTES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    store_dir: Path = Field(default=Path("./.fignotes"), description="Key-value store directory")
    tasks_key: str = Field(default="fignotes_tasks_v3", description="Storage key of the task set")

    # Identity and remote source
    current_user: Optional[str] = Field(default=None, description="Handle of the local user")
    figma_token: Optional[str] = Field(default=None, description="Personal access token")
    file_url: Optional[str] = Field(default=None, description="Figma file URL")
    api_base_url: str = Field(default="https://api.figma.com", description="REST API root")
    http_timeout: float = Field(default=20.0, description="HTTP timeout in seconds")

    # Sync
    sync_debounce_ms: int = Field(default=200, description="Debounce window for sync requests")

    # Logging
    log_level: str = "INFO"
    log_format: str = Field(default="console", description="console or json")
