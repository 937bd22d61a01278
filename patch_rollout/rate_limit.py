from __future__ import annotations

import logging
from typing import Optional

from .errors import RateLimitedError
from .github_client import HostingClient

logger = logging.getLogger(__name__)


def report_rate_limit(client: HostingClient, label: str) -> None:
    try:
        info = client.rate_limit()
    except RateLimitedError as exc:
        logger.warning("[quota] API rate limit: %s: unavailable (%s)", label, exc)
        return
    logger.info(
        "[quota] API rate limit: %s: %s of %s requests remaining. Resets at: %s",
        label,
        info.remaining,
        info.limit,
        info.resets_at.isoformat() if info.resets_at else "unknown",
    )


def next_backoff(delay: float, resets_in: Optional[float], base: float) -> float:
    """
    Double `delay`, capped by the quota reset interval (plus one second).

    The result never drops below `base` or below the current delay, so a run
    of rejections produces non-decreasing pauses.
    """
    doubled = delay * 2
    if resets_in is not None:
        doubled = min(doubled, max(resets_in + 1, delay))
    return max(base, doubled)
