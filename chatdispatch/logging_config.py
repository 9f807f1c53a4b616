"""Logging setup for chatdispatch.

structlog renders every event; stdlib logging routes it. Each subsystem
logger writes its own rotating file and propagates to the package
logger (combined ``chatdispatch.log``) and on to the console:

    chatdispatch.dispatch   dispatch.log   (client, commands, cooldowns, linked)
    chatdispatch.menu       menu.log       (event waiter, slideshows)
    chatdispatch.scheduler  scheduler.log
    chatdispatch.stats      stats.log

Bot tokens, auth headers and the stats API keys are scrubbed from every
event before rendering.
"""

import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import structlog

SUBSYSTEMS = ("dispatch", "menu", "scheduler", "stats")

LOGGER_PREFIX = "chatdispatch"

_REDACTED = "***REDACTED***"

_TOKEN_PATTERNS = (
    # user id . timestamp . hmac
    re.compile(r"[MNO][a-zA-Z\d_-]{23,25}\.[a-zA-Z\d_-]{6}\.[a-zA-Z\d_-]{27,38}"),
    re.compile(r"(?:Bearer|Bot)\s+[a-zA-Z0-9_./-]{20,}"),
)

# Values under these keys are redacted whatever they look like
_SECRET_KEYS = frozenset({"carbon_key", "bots_key", "token", "authorization"})


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        for pattern in _TOKEN_PATTERNS:
            value = pattern.sub(_REDACTED, value)
        return value
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items()}
    return value


def sanitize_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor removing tokens and API keys from an event."""
    for key, value in event_dict.items():
        if value and key.lower() in _SECRET_KEYS:
            event_dict[key] = _REDACTED
        else:
            event_dict[key] = _scrub(value)
    return event_dict


@dataclass(frozen=True)
class _LogOptions:
    log_dir: Path
    level: int = logging.INFO
    subsystem_levels: Mapping[str, int] = field(default_factory=dict)
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    cache_loggers: bool = False


def _level(name: Any, default: int) -> int:
    if not name:
        return default
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else default


def _options_from(config) -> _LogOptions:
    if config is None:
        return _LogOptions(log_dir=Path(__file__).parent.parent / "logs")
    level = _level(config.logging_level, logging.INFO)
    return _LogOptions(
        log_dir=config.log_dir,
        level=level,
        subsystem_levels={
            name: _level(value, level) for name, value in config.logging_subsystem_levels.items()
        },
        max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
        backup_count=config.logging_backup_count,
        cache_loggers=True,
    )


def _reset(name: str, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if name:
        for handler in logger.handlers:
            handler.close()
    logger.handlers.clear()
    logger.propagate = True
    return logger


def _add_file(logger: logging.Logger, path: Path, level: int, options: _LogOptions, formatter) -> None:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=options.max_bytes, backupCount=options.backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def setup_logging(config=None) -> None:
    """Install console and rotating-file handlers and configure structlog.

    Without a config, defaults are used and loggers stay uncached so a
    later call with the loaded Config can apply its levels and enable
    logger caching.

    A log directory that cannot be created leaves console logging only.
    """
    options = _options_from(config)

    root = _reset("", logging.DEBUG)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(options.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(console)

    try:
        options.log_dir.mkdir(parents=True, exist_ok=True)
        to_files = True
    except OSError as e:
        root.warning("Cannot create log directory %s (%s); logging to console only", options.log_dir, e)
        to_files = False

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    package = _reset(LOGGER_PREFIX, logging.DEBUG)
    if to_files:
        _add_file(package, options.log_dir / f"{LOGGER_PREFIX}.log", options.level, options, formatter)

    for subsystem in SUBSYSTEMS:
        level = options.subsystem_levels.get(subsystem, options.level)
        logger = _reset(f"{LOGGER_PREFIX}.{subsystem}", level)
        if to_files:
            _add_file(logger, options.log_dir / f"{subsystem}.log", level, options, formatter)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=options.cache_loggers,
    )
