"""Logging helpers and small shared utilities."""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Iterable
from datetime import datetime
from typing import Any

_LOG = logging.getLogger("tripchain")

_verbose = True

_BANNER_WIDTH = 51


def set_verbose(value: bool) -> None:
    """Turn debug logging on or off."""
    global _verbose
    _verbose = bool(value)


def get_verbose() -> bool:
    """Return whether debug logging is enabled."""
    return _verbose


def log_info(message: str, *args: Any) -> None:
    """Log an informational message with printf-style arguments."""
    _LOG.info("[INFO] " + message, *args)


def log_debug(message: str, *args: Any) -> None:
    """Log a debug message, only when verbose mode is on."""
    if _verbose:
        _LOG.debug("[DEBUG] " + message, *args)


def log_error(message: str, *args: Any) -> None:
    """Log an error message."""
    _LOG.error("[ERROR] " + message, *args)


def log_security_event(event_type: str, data: dict[str, Any]) -> None:
    """Log a structured security event.

    The event type and a timestamp are added to ``data`` before it is logged.
    """
    data["timestamp"] = datetime.now().astimezone().isoformat(timespec="seconds")
    data["event_type"] = event_type
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        log_error("Failed to marshal security event data: %s", exc)
        return
    _LOG.warning("[SECURITY] Event: %s - Data: %s", event_type, payload)


def contains(items: Iterable[str], item: str) -> bool:
    """Return whether ``item`` is one of ``items``."""
    return item in items


def new_seeded_rand(seed: int) -> random.Random:
    """Return a random number generator seeded with ``seed``."""
    return random.Random(seed)


def format_startup_message(node_id: str, port: int) -> str:
    """Build the boxed banner shown when a node starts."""
    border = "-" * _BANNER_WIDTH
    mode = f"HTTP Server (:{port})"
    lines = [
        border,
        f"| {'Blockchain Node Started':<48}|",
        f"| Node ID: {node_id:<38} |",
        f"| Port: {port:<41d} |",
        f"| Mode: {mode:<41} |",
        border,
    ]
    return "\n".join(lines)


def print_startup_message(node_id: str, port: int) -> None:
    """Print the startup banner to standard output."""
    print(format_startup_message(node_id, port))