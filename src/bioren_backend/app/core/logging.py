# src/bioren_backend/app/core/logging.py
from __future__ import annotations
import logging
import os
import re
from typing import Any

FORMAT  = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"

# httpx/httpcore log every request line at INFO (Firestore + token endpoint URLs)
_CHATTY = ("httpx", "httpcore")


def _level_from_env(var: str = "LOG_LEVEL", default: str = "INFO") -> int:
    name = (os.getenv(var, default) or default).strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """
    Configure root logging once. Idempotent.
    LOG_LEVEL controls verbosity (default INFO); HTTP client chatter only shows at DEBUG.
    """
    level = _level_from_env()
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=FORMAT, datefmt=DATEFMT))
        root.addHandler(handler)
    # else: uvicorn / pytest already installed handlers, only adjust the level
    root.setLevel(level)

    for name in _CHATTY:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)


# ------------------------
# Auth trace: one line per auth decision, off unless AUTH_TRACE is set
# ------------------------
_trace_log = logging.getLogger("bioren.auth")

# credentials that may travel through trace kwargs are cut down to a short prefix
_SECRET_KEYS = ("token", "assertion", "private_key", "authorization")
_JWT_SHAPE   = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")
_MASK_KEEP   = 8


def _trace_enabled() -> bool:
    return (os.getenv("AUTH_TRACE", "")).lower() in ("1", "true", "yes", "on")


def _mask(value: str) -> str:
    return value[:_MASK_KEEP] + "...(masked)"


def _trace_value(key: str, value: Any) -> str:
    if value is None:
        return "-"
    text = str(value)
    if any(s in key.lower() for s in _SECRET_KEYS) or _JWT_SHAPE.match(text):
        return _mask(text)
    return text if " " not in text else repr(text)


def auth_trace(event: str, **kv: Any) -> None:
    """Log `[auth] <event> k=v ...` on bioren.auth when AUTH_TRACE is on. Token-like values are masked."""
    if not _trace_enabled():
        return
    fields = " ".join(f"{k}={_trace_value(k, v)}" for k, v in kv.items())
    if fields:
        _trace_log.info("[auth] %s %s", event, fields)
    else:
        _trace_log.info("[auth] %s", event)
