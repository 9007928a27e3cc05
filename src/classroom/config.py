"""Data layer configuration loaded from environment variables.

Holds read-only settings only. Mutable credential state lives in an explicit
``Session`` object (see ``src.classroom.session``), never in this module.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ClassroomConfig(BaseSettings):
    """Classroom data layer configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Remote script endpoint (one URL, action selected by form field)
    api_url: str = Field(
        default="https://script.google.com/macros/s/REPLACE_ME/exec",
        description="Deployed Apps Script web app URL",
    )
    api_username: str = Field(
        default="",
        description="Teacher username used by scripts/attendance_report.py",
    )
    api_password: str = Field(
        default="",
        description="Teacher password used by scripts/attendance_report.py",
    )

    # Cached credential blob
    state_dir: str = Field(
        default="data/state",
        description="Directory for the cached session blob",
    )
    max_session_age_hours: int = Field(
        default=24,
        description="Maximum age of the cached session before re-login",
    )

    # Transport
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for one HTTP round-trip",
    )
    max_transport_attempts: int = Field(
        default=2,
        description="Attempts per request on transient transport failures",
    )
    transport_retry_wait_seconds: float = Field(
        default=2.0,
        description="Fixed wait between transient-failure attempts",
    )

    # Staggered batch loader
    priority_tier_size: int = Field(
        default=3,
        description="Entities fetched immediately and in parallel",
    )
    trailing_interval_seconds: float = Field(
        default=0.1,
        description="Spacing between trailing-tier request starts",
    )
    completion_factor_seconds: float = Field(
        default=0.15,
        description="Per-entity time budget for the advisory 'all done' signal",
    )

    # Pagination window
    page_size: int = Field(
        default=20,
        description="Records revealed per pagination step",
    )
    reveal_delay_seconds: float = Field(
        default=0.0,
        description="Artificial delay before a pagination step applies",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "CLASSROOM_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_config: ClassroomConfig | None = None


def get_config() -> ClassroomConfig:
    """Get the process-wide configuration, created on first use.

    Returns:
        ClassroomConfig: Configuration instance
    """
    global _config
    if _config is None:
        _config = ClassroomConfig()
    return _config
