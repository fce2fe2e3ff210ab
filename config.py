"""
Centralized configuration for the Conversion Advisor
All environment variables and settings are defined here
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Provides centralized configuration with validation and defaults.
    """

    # ======================
    # API Configuration
    # ======================
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="Claude model to use for analysis"
    )
    MAX_TOKENS: int = Field(default=4096, description="Max tokens for Claude response")
    TEMPERATURE: float = Field(
        default=1.0,
        description="Sampling temperature (high for diverse recommendations)"
    )
    LLM_MAX_RETRIES: int = Field(
        default=3,
        description="Attempts for transient Anthropic failures (connection, rate limit)"
    )

    # ======================
    # Cost Configuration
    # ======================
    MONTHLY_BUDGET: float = Field(
        default=50.0,
        description="Monthly Claude spend limit in dollars"
    )

    # ======================
    # Pipeline Configuration
    # ======================
    RESPONSE_PREVIEW_CHARS: int = Field(
        default=500,
        description="Characters of raw LLM text kept on parse errors"
    )
    FALLBACK_QUALITY_SCORE: int = Field(
        default=40,
        description="Quality score given to unvalidated fallback recommendations"
    )
    SYMMETRIC_CONFLICTS: bool = Field(
        default=False,
        description="Mirror every conflict-group edge instead of using the directional table"
    )
    STAGE2_TOP_PROBLEMS: int = Field(
        default=3,
        description="Number of stage 1 problems that get a deep dive"
    )

    # ======================
    # Logging Configuration
    # ======================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Allow extra env vars in .env file


# Global settings instance
settings = Settings()


# ======================
# Convenience Functions
# ======================

def get_anthropic_api_key() -> str:
    """Get Anthropic API key"""
    return settings.ANTHROPIC_API_KEY


def get_anthropic_model() -> str:
    """Get Anthropic model name"""
    return settings.ANTHROPIC_MODEL


def get_log_level() -> str:
    """Get logging level name"""
    return settings.LOG_LEVEL.upper()
