"""
Configuration management using Pydantic Settings
Handles environment variables and validation
"""
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # Application
    app_name: str = "Tierwise"
    app_version: str = "0.1.0"

    # External services
    use_stubs: bool = Field(default=True, description="Never contact external services")

    # Quota gate
    quota_backend: str = Field(default="memory", description="Counter store backend: memory or redis")
    redis_url: str = Field(default="redis://localhost:6379/0")
    quota_key_prefix: str = Field(default="ratelimit")
    quota_window_seconds: int = Field(default=86400, gt=0)
    quota_scoring_user_limit: int = Field(default=50, ge=0)
    quota_scoring_guest_limit: int = Field(default=5, ge=0)
    quota_web_user_limit: int = Field(default=10, ge=0)
    quota_web_guest_limit: int = Field(default=2, ge=0)

    # Reasoning service (OpenAI Responses API)
    openai_api_key: Optional[SecretStr] = Field(default=None)
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_model: str = Field(default="gpt-4.1-mini")
    request_timeout: float = Field(default=60.0, gt=0)

    # Ranking policy
    zscore_spread: float = Field(default=4.0, gt=0, description="Standard deviations mapped onto [0,1]")
    tier_cutoffs: List[float] = Field(default=[0.2, 0.5, 0.8], description="Rank-ratio upper bounds per tier")
    tier_labels: List[str] = Field(default=["S", "A", "B", "C"], description="Derived tier labels, best first")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("quota_backend")
    @classmethod
    def validate_quota_backend(cls, v):
        allowed = ["memory", "redis"]
        if v not in allowed:
            raise ValueError(f"Quota backend must be one of: {allowed}")
        return v

    @field_validator("use_stubs")
    @classmethod
    def validate_use_stubs(cls, v, info):
        # Force stubs in CI environment
        if os.getenv("CI") == "true":
            return True

        if info.data.get("environment") == "test":
            return True
        return v

    @field_validator("tier_cutoffs")
    @classmethod
    def validate_tier_cutoffs(cls, v):
        if not v:
            raise ValueError("At least one tier cutoff is required")
        if any(c < 0 or c > 1 for c in v):
            raise ValueError("Tier cutoffs must be between 0 and 1")
        if any(b <= a for a, b in zip(v, v[1:])):
            raise ValueError("Tier cutoffs must be strictly ascending")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Validate cross-field settings after all fields are set"""
        if len(self.tier_labels) != len(self.tier_cutoffs) + 1:
            raise ValueError("tier_labels must have exactly one more entry than tier_cutoffs")
        if len(set(self.tier_labels)) != len(self.tier_labels):
            raise ValueError("tier_labels must be unique")

        if self.environment == "production" and self.use_stubs:
            raise ValueError("Production environment cannot run with USE_STUBS=true")

        if not self.use_stubs and not self.openai_api_key:
            raise ValueError("OpenAI API key required when not using stubs")

        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_api_key(self) -> str:
        """Get the reasoning service API key"""
        if self.use_stubs:
            return "stub-openai-key"
        if not self.openai_api_key:
            raise ValueError("API key not configured for openai")
        return self.openai_api_key.get_secret_value()

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    def model_dump(self, **kwargs):
        """Override to mask sensitive fields when serializing"""
        data = super().model_dump(**kwargs)

        value = data.get("openai_api_key")
        if value:
            if hasattr(value, "get_secret_value"):
                value = value.get_secret_value()
            value = str(value)
            # Keep first 4 chars for identification
            if len(value) > 4:
                data["openai_api_key"] = value[:4] + "*" * (len(value) - 4)
            else:
                data["openai_api_key"] = "*" * len(value)

        return data


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
