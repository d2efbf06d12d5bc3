"""
TeamPlan Configuration Management

Uses Pydantic Settings for type-safe configuration from environment variables.
The ALLOCATION POLICY section holds the defaults the analyzers fall back to;
every value is a planning policy, not a universal constant.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_NAME: str = "TeamPlan"
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "info"
    VERSION: str = "0.1.0"

    # =========================================================================
    # API SERVER
    # =========================================================================
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000"

    # =========================================================================
    # ALLOCATION POLICY
    # =========================================================================
    UNDER_ALLOCATION_FLOOR: float = Field(80.0, ge=0)
    OVER_ALLOCATION_LIMIT: float = Field(100.0, gt=0)
    TARGET_UTILIZATION: float = Field(85.0, ge=0)
    RUN_WORK_TARGET: float = Field(20.0, ge=0, le=100)
    OVERALLOCATION_CRITICAL_EXCESS: float = Field(50.0, ge=0)
    MAX_CONCURRENT_EPICS: int = Field(3, ge=1)
    BOTTLENECK_WORKLOAD_THRESHOLD: float = Field(300.0, ge=0)
    BURNOUT_MEDIUM_COUNT: int = Field(2, ge=1)
    BURNOUT_HIGH_COUNT: int = Field(3, ge=1)
    PREDICTION_GROWTH_FACTOR: float = Field(1.1, ge=0)
    PREDICTION_DECAY_FACTOR: float = Field(0.95, ge=0)
    HIGH_CONFIDENCE_MIN_ALLOCATIONS: int = Field(10, ge=0)
    # Conflict risk score weights
    SEVERITY_WEIGHT_CRITICAL: float = Field(100.0, ge=0)
    SEVERITY_WEIGHT_HIGH: float = Field(75.0, ge=0)
    SEVERITY_WEIGHT_MEDIUM: float = Field(50.0, ge=0)
    SEVERITY_WEIGHT_LOW: float = Field(25.0, ge=0)
    # Comma-separated epic priorities on the critical path
    CRITICAL_PATH_PRIORITIES: str = "high,critical"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
