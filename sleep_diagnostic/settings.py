"""
Environment-driven configuration.

The engine itself is pure; only the food classifier and the CLI need knobs.
ANTHROPIC_API_KEY is read by the anthropic SDK directly and is not stored here.
"""

import os

from pydantic import BaseModel, Field


class Settings(BaseModel):
    classifier_model: str = Field(default="claude-sonnet-4-6")
    classifier_timeout: float = Field(default=10.0, gt=0, description="Seconds per API call")
    classifier_max_retries: int = Field(default=2, ge=0)
    classifier_max_workers: int = Field(default=4, ge=1)
    requests_per_minute: int = Field(default=45, ge=1)  # Tier 1 limit is 50, leave margin
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from SLEEPDX_* environment variables, falling back to defaults."""
        values = {}
        env_map = {
            "classifier_model": "SLEEPDX_CLASSIFIER_MODEL",
            "classifier_timeout": "SLEEPDX_CLASSIFIER_TIMEOUT",
            "classifier_max_retries": "SLEEPDX_CLASSIFIER_MAX_RETRIES",
            "classifier_max_workers": "SLEEPDX_CLASSIFIER_MAX_WORKERS",
            "requests_per_minute": "SLEEPDX_REQUESTS_PER_MINUTE",
            "log_level": "SLEEPDX_LOG_LEVEL",
        }
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        return cls.model_validate(values)
