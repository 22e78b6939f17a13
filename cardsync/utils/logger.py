"""
Colored, emoji-tagged logging for the price sync pipeline.
"""

import logging
import sys
from datetime import datetime
from typing import Optional


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors and emojis for terminal output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
        "BOLD": "\033[1m",
        "DIM": "\033[2m",
    }

    EMOJIS = {
        "DEBUG": "🔍",
        "INFO": "✅",
        "WARNING": "⚠️",
        "ERROR": "❌",
        "CRITICAL": "🚨",
    }

    # Component emojis, matched against the logger name
    COMPONENT_EMOJIS = {
        "marketplace": "🛒",
        "matcher": "🧩",
        "sync": "🔄",
        "api": "🌐",
        "scheduler": "⏰",
        "httpx": "✈️ ",
        "supabase": "💾",
    }

    def format(self, record):
        level_color = self.COLORS.get(record.levelname, "")
        reset = self.COLORS["RESET"]
        bold = self.COLORS["BOLD"]
        dim = self.COLORS["DIM"]

        emoji = self.EMOJIS.get(record.levelname, "📝")

        component_emoji = ""
        for component, comp_emoji in self.COMPONENT_EMOJIS.items():
            if component in record.name.lower():
                component_emoji = f"{comp_emoji}"
                break

        timestamp = datetime.now().strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        logger_name = record.name.split(".")[-1][:12]

        formatted_msg = (
            f"{dim}[{timestamp}]{reset} "
            f"{emoji} {level_color}{bold}{level}{reset} "
            f"{dim}│{reset} "
            f"{component_emoji} {bold}{logger_name:<12}{reset} "
            f"{dim}│{reset} "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted_msg += f"\n{self.formatException(record.exc_info)}"

        return formatted_msg


def setup_logger(name: str, level: str = "INFO") -> logging.Logger:
    """
    Setup a colored logger.

    Args:
        name: Logger name (usually "cardsync.<component>")
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(_level_number(level))

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_level_number(level))
    handler.setFormatter(ColorFormatter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def _level_number(level: str) -> int:
    """Numeric level for a name like "debug"; unknown names fall back to INFO."""
    numeric = getattr(logging, str(level).upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO


def set_log_level(level: str, prefix: str = "cardsync"):
    """Switch every already-created `prefix.*` logger and its handlers to `level`."""
    numeric = _level_number(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name != prefix and not name.startswith(f"{prefix}."):
            continue
        logger.setLevel(numeric)
        for handler in logger.handlers:
            handler.setLevel(numeric)


def log_sync_progress(
    logger: logging.Logger,
    current: int,
    total: int,
    elapsed_seconds: float,
    label: Optional[str] = None,
):
    """Log pipeline progress with elapsed time and a naive ETA."""
    percentage = (current / total * 100) if total > 0 else 0
    if current > 0 and total > current:
        eta = elapsed_seconds / current * (total - current)
        eta_str = f"ETA {eta:.0f}s"
    else:
        eta_str = "ETA --"
    label_str = f" - {label}" if label else ""
    logger.info(
        f"🔄 [{current}/{total}] {percentage:.1f}% elapsed {elapsed_seconds:.0f}s {eta_str}{label_str}"
    )


def log_api_request(
    logger: logging.Logger, method: str, endpoint: str, params: Optional[dict] = None
):
    """Log API request in a readable format."""
    params_str = f" {params}" if params else ""
    logger.info(f"🌐 {method} {endpoint}{params_str}")


def log_database_operation(
    logger: logging.Logger, operation: str, count: int, table: str
):
    """Log database operation in a readable format."""
    logger.info(f"💾 {operation} {count} records to {table}")


# Module-level loggers
api_logger = setup_logger("cardsync.api")
marketplace_logger = setup_logger("cardsync.marketplace")
matcher_logger = setup_logger("cardsync.matcher")
sync_logger = setup_logger("cardsync.sync")
scheduler_logger = setup_logger("cardsync.scheduler")
httpx_logger = setup_logger("cardsync.httpx")
supabase_logger = setup_logger("cardsync.supabase")


def log_success(logger: logging.Logger, message: str):
    """Log a successful outcome with an explicit [OK] tag."""
    logger.info(f"[OK] {message}")


def log_failure(logger: logging.Logger, message: str):
    """Log a failed outcome with an explicit [FAIL] tag."""
    logger.error(f"[FAIL] {message}")
