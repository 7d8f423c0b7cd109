"""
Configuration management using Pydantic Settings
"""
import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class FormStepsSettings(BaseSettings):
    """Form engine settings, read from ``FORMSTEPS_*`` environment variables"""

    api_base_url: str = Field(default="http://localhost:3000", description="Base URL of the form API")
    schema_path: str = Field(default="/api/form", description="Schema endpoint path")
    submit_path: str = Field(default="/api/form/submit", description="Submission endpoint path")
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP request timeout")
    minimum_age_years: int = Field(default=16, ge=0, description="Minimum age for date-of-birth fields")
    log_level: str = Field(default="INFO", description="Log level of the formsteps logger")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the level name"""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    model_config = SettingsConfigDict(
        env_prefix="FORMSTEPS_",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> FormStepsSettings:
    """Get cached settings instance"""
    return FormStepsSettings()


class FormStepsLogHandler(logging.StreamHandler):
    """Stream handler installed on the ``formsteps`` logger by configure_logging"""


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the ``formsteps`` logger; repeated calls only update the level"""
    logger = logging.getLogger("formsteps")
    logger.setLevel(getattr(logging, level.upper()))
    if not any(isinstance(h, FormStepsLogHandler) for h in logger.handlers):
        handler = FormStepsLogHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
