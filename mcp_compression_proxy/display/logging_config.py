"""Logging configuration setup.

stdout carries the MCP stdio transport, so log records go to a
timestamped file (and optionally stderr), never to stdout.
"""

import copy
import logging
import logging.config
import os
import re
import sys
from datetime import datetime
from typing import Optional, Set, Tuple

from mcp_compression_proxy.constants import LOG_DIR

# ── Secret redaction filter ──────────────────────────────────────────────

_REDACTED = "***REDACTED***"


class SecretRedactionFilter(logging.Filter):
    """Logging filter that replaces registered secret values with a placeholder.

    Backend ``env`` values are registered at startup so tokens passed to
    backend processes never reach the log file.
    """

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()
        self._pattern: Optional["re.Pattern[str]"] = None

    def register(self, value: str) -> None:
        """Register a secret value for redaction."""
        if value and len(value) >= 4:  # skip trivially short values
            self._secrets.add(value)
            # Longest first so overlapping secrets are fully replaced
            escaped = sorted((re.escape(s) for s in self._secrets), key=len, reverse=True)
            self._pattern = re.compile("|".join(escaped))

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is not None:
            if isinstance(record.msg, str):
                record.msg = self._pattern.sub(_REDACTED, record.msg)
            if record.args:
                if isinstance(record.args, dict):
                    record.args = {
                        k: self._pattern.sub(_REDACTED, v) if isinstance(v, str) else v
                        for k, v in record.args.items()
                    }
                elif isinstance(record.args, tuple):
                    record.args = tuple(
                        self._pattern.sub(_REDACTED, a) if isinstance(a, str) else a
                        for a in record.args
                    )
        return True


# Module-level singleton so the service can register values at startup.
secret_redaction_filter = SecretRedactionFilter()

_APP_LOGGERS = (
    "mcp_compression_proxy",
    "mcp",
    "uvicorn",
    "uvicorn.error",
    "starlette",
    "httpx",
)

BASE_LOG_CFG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple_file": {
            "format": "%(asctime)s - %(name)25s:%(lineno)-4d - %(levelname)-7s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "stderr": {
            "format": "%(levelname)-7s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "file_handler": {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "simple_file",
            "filename": "temp_log_name.log",
            "encoding": "utf-8",
        },
    },
    "loggers": {
        "uvicorn.access": {
            "handlers": ["file_handler"],
            "propagate": False,
            "level": "WARNING",
        },
    },
    "root": {
        "handlers": ["file_handler"],
        "level": "WARNING",
    },
}


def build_log_config(log_fpath: str, log_level: str, to_stderr: bool = False) -> dict:
    """Return a ``dictConfig`` mapping for *log_fpath* at *log_level*."""
    log_cfg: dict = copy.deepcopy(BASE_LOG_CFG)
    log_cfg["handlers"]["file_handler"]["filename"] = log_fpath
    handlers = ["file_handler"]
    if to_stderr:
        log_cfg["handlers"]["stderr_handler"] = {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "stderr",
            "stream": "ext://sys.stderr",
        }
        handlers.append("stderr_handler")

    for name in _APP_LOGGERS:
        log_cfg["loggers"][name] = {
            "handlers": list(handlers),
            "propagate": False,
            "level": log_level,
        }
    log_cfg["loggers"]["httpx"]["level"] = "DEBUG" if log_level == "DEBUG" else "WARNING"
    log_cfg["loggers"]["uvicorn.access"]["handlers"] = list(handlers)
    log_cfg["loggers"]["uvicorn.access"]["level"] = "INFO" if log_level == "DEBUG" else "WARNING"
    log_cfg["root"]["handlers"] = list(handlers)
    log_cfg["root"]["level"] = log_level if log_level == "DEBUG" else "WARNING"
    return log_cfg


def setup_logging(
    log_lvl_str: str,
    *,
    log_dir: str = LOG_DIR,
    to_stderr: bool = False,
) -> Tuple[str, str]:
    """
    Set up the logging system.

    Uses a timestamped dynamic filename under *log_dir*.

    Args:
        log_lvl_str: The desired log level string (e.g., 'debug', 'info').
        log_dir: Directory for log files.
        to_stderr: Also log to stderr.

    Returns:
        A tuple of (log_file_path, validated_log_level).
    """
    log_lvl_valid = log_lvl_str.upper()
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if log_lvl_valid not in valid_levels:
        print(f"Warning: invalid log level '{log_lvl_str}'. Using 'INFO'.", file=sys.stderr)
        log_lvl_valid = "INFO"

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    os.makedirs(log_dir, exist_ok=True)
    log_fpath = os.path.join(log_dir, f"proxy_{ts}_{log_lvl_valid}.log")

    logging.config.dictConfig(build_log_config(log_fpath, log_lvl_valid, to_stderr))
    for logger_name in ("", *_APP_LOGGERS, "uvicorn.access"):
        for handler in logging.getLogger(logger_name).handlers:
            if secret_redaction_filter not in handler.filters:
                handler.addFilter(secret_redaction_filter)

    return log_fpath, log_lvl_valid
