"""Service configuration models using Pydantic."""

import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class BackoffStrategy(str, Enum):
    """Retry backoff strategies."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


class RetryConfig(BaseModel):
    """Retry configuration for upstream API calls."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    initial_delay: float = Field(default=1, ge=0)  # seconds
    max_delay: float = Field(default=60, ge=0)  # seconds


class CommentaryConfig(BaseModel):
    """Commentary generator (Gemini) configuration."""

    api_key: Optional[str] = None
    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_output_tokens: int = Field(default=400, ge=1)
    memory_size: int = Field(default=50, ge=0, description="User/model exchanges kept per conversation")


class ServiceConfig(BaseModel):
    """Complete live feed service configuration."""

    poll_interval_seconds: float = Field(
        default=60, gt=0, description="Seconds between live feed polling ticks"
    )
    replay_cadence_seconds: float = Field(
        default=60, ge=0, description="Pause between replayed plays"
    )
    prediction_timeout_seconds: float = Field(
        default=60, gt=0, description="How long a replay waits for the first prediction"
    )
    default_game_pk: int = Field(default=775296, description="Game followed by the live feed")
    conversation_id: str = Field(default="riaz", description="Commentary conversation key")
    sport_id: int = 1

    rate_limit: Optional[int] = Field(default=30, ge=1, description="Max requests per minute")
    retry: RetryConfig = Field(default_factory=RetryConfig)
    commentary: CommentaryConfig = Field(default_factory=CommentaryConfig)

    @field_validator("conversation_id")
    @classmethod
    def validate_conversation_id(cls, v: str) -> str:
        """Reject blank conversation ids."""
        if not v.strip():
            raise ValueError("conversation_id must not be blank")
        return v

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Create configuration from environment variables.

        Environment variables:
        - MLB_POLL_INTERVAL_SECONDS: Live feed tick interval
        - MLB_REPLAY_CADENCE_SECONDS: Pause between replayed plays
        - MLB_PREDICTION_TIMEOUT_SECONDS: Wait for the first prediction
        - MLB_DEFAULT_GAME_PK: Game followed by the live feed
        - GEMINI_API_KEY: Commentary API key
        - GEMINI_MODEL: Commentary model name

        Returns:
            ServiceConfig instance
        """
        commentary = CommentaryConfig(
            api_key=os.getenv("GEMINI_API_KEY") or None,
            model=os.getenv("GEMINI_MODEL", CommentaryConfig().model),
        )
        return cls(
            poll_interval_seconds=float(os.getenv("MLB_POLL_INTERVAL_SECONDS", "60")),
            replay_cadence_seconds=float(os.getenv("MLB_REPLAY_CADENCE_SECONDS", "60")),
            prediction_timeout_seconds=float(os.getenv("MLB_PREDICTION_TIMEOUT_SECONDS", "60")),
            default_game_pk=int(os.getenv("MLB_DEFAULT_GAME_PK", "775296")),
            commentary=commentary,
        )


def load_config(path: str | Path) -> ServiceConfig:
    """Load service configuration from YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated ServiceConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Service config not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f) or {}

    return ServiceConfig(**config_data)
