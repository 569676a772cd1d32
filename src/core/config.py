"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )

    # ==========================================================================
    # Visitor Store
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/visitors.db"),
        description="Path to SQLite file backing the visitor store",
    )
    visitor_ttl_seconds: int = Field(
        default=30 * 24 * 60 * 60,
        ge=60,
        description="Visitor record TTL, refreshed on every write (default: 30 days)",
    )

    # ==========================================================================
    # Analytics Forwarding
    # ==========================================================================
    #
    # Enriched events are relayed to a webhook in front of the analytics
    # warehouse. Leave the URL unset to disable forwarding.

    brand_id: str = Field(
        default="default", description="Brand identifier stamped on forwarded rows"
    )
    analytics_webhook_url: Optional[str] = Field(
        default=None, description="Analytics sink webhook URL"
    )
    analytics_table: str = Field(
        default="pixel_events_enriched",
        description="Destination table name sent with each forwarded row",
    )
    forward_timeout_seconds: float = Field(
        default=3.0, gt=0.0, le=30.0, description="Timeout for the forward call"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Scoring Configuration (from YAML)
# ============================================================================


class ScoringConfig(BaseModel):
    """
    Scoring engine configuration loaded from scoring_config.yaml.

    Signal weights, recency steps and stage rules are fixed in code; only
    window sizes and thresholds are tunable here.
    """

    max_signals: int = Field(
        default=100, ge=1, le=1000, description="Signal window cap per visitor"
    )
    min_signals_for_scoring: int = Field(
        default=3,
        ge=1,
        description="Signals required before behavioral persona scoring kicks in",
    )
    stage_history_limit: int = Field(
        default=10, ge=1, le=100, description="Stage transitions kept per visitor"
    )
    confident_persona_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Persona confidence regarded as confident for personalization",
    )

    @field_validator("min_signals_for_scoring")
    @classmethod
    def min_signals_within_window(cls, v: int, info: ValidationInfo) -> int:
        """A scoring threshold larger than the window could never be reached."""
        max_signals = info.data.get("max_signals")
        if max_signals is not None and v > max_signals:
            raise ValueError(
                f"min_signals_for_scoring ({v}) exceeds max_signals ({max_signals})"
            )
        return v


def load_scoring_config(config_path: Optional[Path] = None) -> ScoringConfig:
    """
    Load scoring configuration from YAML file.

    Args:
        config_path: Path to scoring_config.yaml. If None, uses default path.

    Returns:
        ScoringConfig with validated settings

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        # Default path: config/scoring_config.yaml relative to project root
        current = Path(__file__).resolve().parent.parent.parent
        check_path = current / "config" / "scoring_config.yaml"
        if check_path.exists():
            config_path = check_path
        else:
            cwd_config = Path.cwd() / "config" / "scoring_config.yaml"
            if not cwd_config.exists():
                return ScoringConfig()
            config_path = cwd_config

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return ScoringConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return ScoringConfig()

    return ScoringConfig(**config_data)


# Global settings instance
settings = Settings()

# Global scoring config instance
scoring_config = load_scoring_config()
