from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .models import PRState, PullRequestInfo

logger = logging.getLogger(__name__)

LEDGER_HEADER = ["Repo", "Branch", "PR Num", "State", "Merged At", "URL"]


class LedgerEntry(BaseModel):
    """Latest known pull-request status for one repository."""

    model_config = ConfigDict(frozen=True)

    repo: str
    branch: Optional[str] = None
    pr_number: Optional[int] = None
    state: PRState = PRState.NONE
    merged_at: Optional[str] = None
    url: Optional[str] = None

    @field_validator("branch", "pr_number", "merged_at", "url", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, value):
        if isinstance(value, PRState):
            return value
        return PRState.from_text(value)

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Optional[str]]) -> "LedgerEntry":
        return cls(
            repo=(row.get("Repo") or "").strip(),
            branch=row.get("Branch"),
            pr_number=row.get("PR Num"),
            state=row.get("State"),
            merged_at=row.get("Merged At"),
            url=row.get("URL"),
        )

    @classmethod
    def from_pull(cls, repo: str, pull: PullRequestInfo) -> "LedgerEntry":
        return cls(
            repo=repo,
            branch=pull.head_ref,
            pr_number=pull.number,
            state=pull.state,
            merged_at=pull.merged_at,
            url=pull.html_url,
        )

    def to_row(self) -> list[str]:
        return [
            self.repo,
            self.branch or "",
            "" if self.pr_number is None else str(self.pr_number),
            self.state.value,
            self.merged_at or "",
            self.url or "",
        ]


class LedgerStore:
    """CSV-backed ledger keyed by `org/name` repository references."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, LedgerEntry]:
        if not self.path.exists():
            logger.info("[ledger] %s not found; starting with an empty ledger", self.path)
            return {}

        entries: Dict[str, LedgerEntry] = {}
        with self.path.open("r", encoding="utf-8", newline="") as fh:
            for line_no, row in enumerate(csv.DictReader(fh), start=2):
                try:
                    entry = LedgerEntry.from_row(row)
                except ValidationError as exc:
                    logger.warning(
                        "[ledger] skipping malformed row %s in %s: %s",
                        line_no,
                        self.path,
                        exc.errors()[0].get("msg"),
                    )
                    continue
                if not entry.repo:
                    continue
                # Later rows win when a repository appears more than once.
                entries[entry.repo] = entry
        logger.info("[ledger] loaded %d entries from %s", len(entries), self.path)
        return entries

    def rewrite(self, entries: Mapping[str, LedgerEntry] | Iterable[LedgerEntry]) -> None:
        values = entries.values() if isinstance(entries, Mapping) else entries
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8", newline="") as fh:
            writer = csv.writer(fh, lineterminator="\n")
            writer.writerow(LEDGER_HEADER)
            for entry in values:
                writer.writerow(entry.to_row())

    def append(self, entry: LedgerEntry) -> None:
        if not self.path.exists():
            self.rewrite([])
        with self.path.open("a", encoding="utf-8", newline="") as fh:
            csv.writer(fh, lineterminator="\n").writerow(entry.to_row())
