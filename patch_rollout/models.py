from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class PRState(str, Enum):
    NONE = "none"
    OPEN = "open"
    DRAFT = "draft"
    CLOSED = "closed"
    MERGED = "merged"
    UNKNOWN = "unknown"

    @classmethod
    def from_text(cls, value: Optional[str]) -> "PRState":
        text = (value or "").strip().lower()
        if not text:
            return cls.NONE
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_remote(
        cls, state: Optional[str], *, merged_at: Optional[str] = None, draft: bool = False
    ) -> "PRState":
        if merged_at:
            return cls.MERGED
        resolved = cls.from_text(state)
        if resolved is cls.OPEN and draft:
            return cls.DRAFT
        return resolved


@dataclass(frozen=True)
class BranchInfo:
    name: str
    sha: str


@dataclass(frozen=True)
class PullRequestInfo:
    """The subset of a remote pull request the ledger tracks."""

    number: int
    state: PRState
    head_ref: str
    html_url: Optional[str] = None
    merged_at: Optional[str] = None


@dataclass(frozen=True)
class CommitInfo:
    sha: str
    date: Optional[str]
    message: str
    files: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RateLimitInfo:
    remaining: int
    limit: int
    resets_at: Optional[datetime] = None
