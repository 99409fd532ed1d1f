"""Logging helpers: structured key=value session events and dictConfig setup."""

from __future__ import annotations

import json
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    },
    "handlers": {
        "console_handler": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "INFO",
        },
    },
    "root": {
        "handlers": ["console_handler"],
        "level": "INFO",
    },
}


def _normalize_log_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _render_log_kv(fields: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for key, value in fields.items():
        if value is None:
            continue
        clean_key = str(key).strip()
        if not clean_key:
            continue
        parts.append(f"{clean_key}={_normalize_log_value(value)}")
    return " ".join(parts)


def _log_session_event(
    logger: logging.Logger,
    *,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event}
    payload.update(fields)
    rendered = _render_log_kv(payload)
    logger.log(level, "session %s", rendered)


def load_logging_config(config_file_path: Union[str, Path]) -> Dict[str, Any]:
    """Read a dictConfig mapping from a YAML or JSON file."""
    path = Path(config_file_path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text) or {}


def setup_logging(
    config_file_path: Optional[Union[str, Path]] = None,
    log_file_path: Optional[Union[str, Path]] = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure logging from 'config_file_path' (YAML or JSON) or the built-in default.

    If 'log_file_path' is given, a file handler writing there is added (or the
    filename of an existing "file_handler" is overridden). 'verbose' sets the
    root logger to DEBUG.
    """
    if config_file_path:
        config = load_logging_config(config_file_path)
    else:
        config = json.loads(json.dumps(DEFAULT_LOGGING_CONFIG))

    if log_file_path:
        handlers = config.setdefault("handlers", {})
        if "file_handler" in handlers:
            handlers["file_handler"]["filename"] = str(log_file_path)
        else:
            handlers["file_handler"] = {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filename": str(log_file_path),
                "mode": "a",
            }
            config.setdefault("formatters", {}).setdefault(
                "standard", DEFAULT_LOGGING_CONFIG["formatters"]["standard"]
            )
            root = config.setdefault("root", {"level": "INFO", "handlers": []})
            root.setdefault("handlers", []).append("file_handler")

    logging.config.dictConfig(config)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    return logging.getLogger("nocturne")
