"""
Structured logging helpers for consistent log formatting.
"""
import logging

from tuner_guide.utils.timezone import format_epoch_ms


def sanitize_url(url: str | None) -> str:
    """Remove credentials from URL for safe logging."""
    if not url:
        return "<unset>"
    if "://" not in url:
        return url
    try:
        protocol, rest = url.split("://", 1)
        if "@" in rest:
            rest = rest.split("@", 1)[1]
            return f"{protocol}://***:***@{rest}"
        return url
    except (ValueError, IndexError):
        return url


def log_section_start(logger: logging.Logger, section_name: str) -> None:
    """
    Log the start of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being started
    """
    logger.info(f"Starting: {section_name}")


def log_section_end(logger: logging.Logger, section_name: str) -> None:
    """
    Log the end of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being ended
    """
    logger.info(f"Completed: {section_name}")


def log_refresh_deadline(logger: logging.Logger, service_id: int, refresh_after: int) -> None:
    """Log when a cached now/next entry will go stale."""
    logger.debug(
        "Service %s now/next fresh until %s",
        service_id,
        format_epoch_ms(refresh_after),
    )
