"""Fee core configuration."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-driven settings for the fee core."""

    # Reference-data collaborator (fee scale, duplicate rates, services)
    reference_api_url: str = "http://localhost:3000/api"
    reference_api_token: str = ""
    request_timeout: float = 10.0

    # Circuit breaker guarding the reference API
    breaker_failure_threshold: int = 5
    breaker_recovery_timeout: float = 60.0

    # Structure defaults
    default_design_fee_rate: float = 80.0
    max_duplicate_ordinal: int = 10

    # Fall back to the built-in tables when the reference API returns none
    seed_reference_tables: bool = False

    model_config = {"env_prefix": "FEECORE_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
logger.debug(
    "Fee core config: reference_api_url=%s, has_token=%s",
    settings.reference_api_url,
    bool(settings.reference_api_token),
)
