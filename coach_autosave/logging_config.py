"""
Logging configuration for the auto-save engine.

Session notes and message drafts hold client information, so draft content is
only ever logged truncated, and only at DEBUG level.
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

# Content truncation length for log lines
CONTENT_TRUNCATE_LENGTH = 40


def truncate_content(content: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Truncate draft content for logging.

    Args:
        content: Draft text (may be None)
        max_length: Maximum length (defaults to CONTENT_TRUNCATE_LENGTH)

    Returns:
        Truncated single-line text with ellipsis if needed
    """
    if not content:
        return ""
    if max_length is None:
        max_length = CONTENT_TRUNCATE_LENGTH

    flat = " ".join(content.split())
    if len(flat) <= max_length:
        return flat
    return f"{flat[:max_length]}..."


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    console: Optional[bool] = None,
) -> None:
    """
    Configure loguru sinks. Unset arguments come from the ``[Logging]`` config section.

    This should be called once at startup.
    """
    from .config import get_logging_config

    settings = get_logging_config()
    level = (level or settings['log_level']).upper()
    log_file = log_file if log_file is not None else settings['log_file']
    console = settings['console'] if console is None else console

    logger.remove()
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=str(log_path),
            level=level,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            enqueue=True,
        )

    if console:
        logger.add(sink=sys.stderr, level=level, colorize=True)

    logger.info(f"Auto-save logging configured: level={level}, file={log_file}, console={console}")
