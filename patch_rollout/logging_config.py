from __future__ import annotations

import logging
import os

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int | None = None, *, force: bool = False) -> None:
    """Configure the root logger once (or again when `force` is set)."""
    global _configured
    if _configured and not force:
        return
    logging.basicConfig(level=_resolve_level(level), format=DEFAULT_FORMAT, force=force)
    # PyGithub logs every request at DEBUG; keep it out of INFO runs.
    logging.getLogger("github").setLevel(max(_resolve_level(level), logging.INFO))
    _configured = True


def ensure_logging_configured() -> None:
    configure_logging()
