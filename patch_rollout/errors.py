from __future__ import annotations

from typing import Optional


class PatchRolloutError(Exception):
    """Base class for errors raised by patch-rollout."""


class MissingCredentialsError(PatchRolloutError):
    """Raised before any remote call when no access token is configured."""


class UnprocessableError(PatchRolloutError):
    """The remote rejected a write (duplicate PR or branch, file conflict)."""

    def __init__(self, message: str, status: int = 422) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class RateLimitedError(PatchRolloutError):
    """The remote signalled too many requests.

    `resets_in` is the number of seconds until the quota resets, when the
    remote reported it.
    """

    def __init__(self, message: str, resets_in: Optional[float] = None) -> None:
        super().__init__(message)
        self.resets_in = resets_in
