"""Session options and env-driven defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_INTERVAL_MS = 50
DEFAULT_SETTLE_MS = 500
DEFAULT_NAVIGATION_TIMEOUT_MS = 30_000

# Reference option names accepted alongside the *_ms field names.
_OPTION_ALIASES = {
    "timeout": "timeout_ms",
    "interval": "interval_ms",
    "settle": "settle_ms",
    "navigation_timeout": "navigation_timeout_ms",
}


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    text = raw.strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return max(minimum, int(default))
    try:
        parsed = int(raw.strip())
    except Exception:
        return max(minimum, int(default))
    return max(minimum, parsed)


def _normalize_ms(value: Any, default: int, minimum: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return max(minimum, int(default))
    try:
        parsed = int(value)
    except Exception:
        return max(minimum, int(default))
    return max(minimum, parsed)


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value if value is not None else "").strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class SessionOptions:
    """Timing and launch options, fixed for the lifetime of a Session."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    interval_ms: int = DEFAULT_INTERVAL_MS
    settle_ms: int = DEFAULT_SETTLE_MS
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    headless: bool = True

    @classmethod
    def from_env(cls) -> "SessionOptions":
        return cls(
            timeout_ms=_parse_int_env("NOCTURNE_TIMEOUT_MS", DEFAULT_TIMEOUT_MS, 0),
            interval_ms=_parse_int_env("NOCTURNE_INTERVAL_MS", DEFAULT_INTERVAL_MS, 1),
            settle_ms=_parse_int_env("NOCTURNE_SETTLE_MS", DEFAULT_SETTLE_MS, 0),
            navigation_timeout_ms=_parse_int_env(
                "NOCTURNE_NAVIGATION_TIMEOUT_MS", DEFAULT_NAVIGATION_TIMEOUT_MS, 1
            ),
            headless=_parse_bool_env("NOCTURNE_HEADLESS", True),
        )

    @classmethod
    def from_mapping(
        cls,
        mapping: Optional[Mapping[str, Any]],
        base: Optional["SessionOptions"] = None,
    ) -> "SessionOptions":
        """
        Build options from a plain mapping layered over `base`.

        Both the short reference names (`timeout`, `interval`) and the field
        names (`timeout_ms`, ...) are accepted. Unknown keys are ignored.
        """
        current = base if base is not None else cls.from_env()
        if not mapping:
            return current

        known = {item.name for item in fields(cls)}
        updates: dict[str, Any] = {}
        for raw_key, value in mapping.items():
            key = _OPTION_ALIASES.get(str(raw_key), str(raw_key))
            if key not in known:
                logger.warning("Ignoring unknown session option %r", raw_key)
                continue
            if value is None:
                continue
            if key == "headless":
                updates[key] = _coerce_bool(value, current.headless)
            elif key == "interval_ms":
                updates[key] = _normalize_ms(value, current.interval_ms, minimum=1)
            else:
                updates[key] = _normalize_ms(value, getattr(current, key))
        return replace(current, **updates)
