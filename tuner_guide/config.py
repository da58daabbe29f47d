from urllib.parse import urlsplit, urlunsplit
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tuner_guide.utils.logging_helpers import sanitize_url


logger = logging.getLogger(__name__)

DEFAULT_SERVER_ADDRESS = "http://raspberrypi:40772"


def normalize_server_address(value: str | None) -> str | None:
    """
    Normalize a user-entered server address into a base URL.

    Adds http:// when no scheme is given and drops a trailing slash.
    Returns None when the address is empty or has no host.
    """
    if value is None:
        return None
    address = value.strip()
    if not address:
        return None

    if "://" not in address:
        address = f"http://{address}"

    try:
        parts = urlsplit(address)
        if not parts.hostname:
            return None
    except ValueError:
        return None

    path = parts.path[:-1] if parts.path.endswith("/") else parts.path
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    server_address: str = DEFAULT_SERVER_ADDRESS
    use_hls_override: bool = False
    hls_template: str = ""
    use_sample_data: bool = False

    list_reuse_window_sec: int = 180  # Reuse a fetched service list for this long
    refresh_max_interval_sec: int = 900  # Never trust cached now/next longer than this
    refresh_boundary_delay_sec: int = 2  # Refresh this long after a program boundary
    refresh_fallback_interval_sec: int = 300  # Retry interval when no program is known
    max_concurrent_program_fetches: int = 4

    http_timeout_sec: float = 15.0
    http_max_retries: int = 3
    http_backoff_factor: float = 2.0

    guide_reload_cron: str = "*/3 * * * *"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def server_url(self) -> str | None:
        """Normalized server URL, or None if the configured address is unusable."""
        return normalize_server_address(self.server_address)

    @field_validator(
        "list_reuse_window_sec",
        "refresh_max_interval_sec",
        "refresh_fallback_interval_sec",
        "max_concurrent_program_fetches",
        "http_max_retries",
    )
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure integer settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("refresh_boundary_delay_sec")
    @classmethod
    def validate_boundary_delay(cls, value: int) -> int:
        """Boundary delay may be zero but not negative."""
        if value < 0:
            raise ValueError("refresh_boundary_delay_sec must be >= 0")
        return value

    @field_validator("http_timeout_sec")
    @classmethod
    def validate_http_timeout(cls, value: float) -> float:
        """Validate HTTP timeout (seconds)."""
        if value <= 0:
            raise ValueError("http_timeout_sec must be > 0")
        return value

    @field_validator("http_backoff_factor")
    @classmethod
    def validate_backoff_factor(cls, value: float) -> float:
        """Ensure the backoff multiplier is at least 1."""
        if value < 1:
            raise ValueError("http_backoff_factor must be >= 1")
        return value

    @field_validator("guide_reload_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate logging level name."""
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @model_validator(mode="after")
    def validate_refresh_configuration(self):
        """Validate cross-field configuration."""
        if self.server_url is None and not self.use_sample_data:
            logger.warning(
                "Server address %r is not a valid URL - reloads will fail until it is fixed",
                self.server_address,
            )

        if self.refresh_boundary_delay_sec >= self.refresh_max_interval_sec:
            raise ValueError(
                "refresh_boundary_delay_sec must be smaller than refresh_max_interval_sec"
            )

        if self.refresh_fallback_interval_sec > self.refresh_max_interval_sec:
            raise ValueError(
                "refresh_fallback_interval_sec must be <= refresh_max_interval_sec"
            )

        if self.list_reuse_window_sec >= self.refresh_max_interval_sec:
            raise ValueError(
                "list_reuse_window_sec must be smaller than refresh_max_interval_sec"
            )

        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info("  Server: %s", sanitize_url(self.server_url))
        logger.info("  Sample Data: %s", "enabled" if self.use_sample_data else "disabled")
        logger.info("  HLS Override: %s", "enabled" if self.use_hls_override else "disabled")
        logger.info("  List Reuse Window: %ss", self.list_reuse_window_sec)
        logger.info(
            "  Refresh: boundary=%ss fallback=%ss max=%ss",
            self.refresh_boundary_delay_sec,
            self.refresh_fallback_interval_sec,
            self.refresh_max_interval_sec,
        )
        logger.info("  Program Fetch Concurrency: %s", self.max_concurrent_program_fetches)
        logger.info(
            "  HTTP: timeout=%.1fs retries=%s backoff=%.1f",
            self.http_timeout_sec,
            self.http_max_retries,
            self.http_backoff_factor,
        )
        logger.info("  Reload Schedule: %s", self.guide_reload_cron)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
