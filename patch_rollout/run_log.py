from __future__ import annotations

import csv
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

RUN_LOG_HEADER = ["Repo", "Message Type", "Message"]

SUCCESS = "success"
NOTICE = "notice"
WARNING = "warning"
DEBUG = "debug"

_ECHO_LEVELS = {
    SUCCESS: logging.INFO,
    NOTICE: logging.INFO,
    WARNING: logging.WARNING,
    DEBUG: logging.DEBUG,
}


class RunLog:
    """Append-only per-run CSV of (repository, kind, message) rows."""

    def __init__(self, path: Path, *, echo: bool = True) -> None:
        self.path = Path(path)
        self.echo = echo

    def create(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8", newline="") as fh:
            csv.writer(fh, lineterminator="\n").writerow(RUN_LOG_HEADER)

    def append(self, repo: str, kind: str, message: str) -> None:
        if not self.path.exists():
            self.create()
        with self.path.open("a", encoding="utf-8", newline="") as fh:
            csv.writer(fh, lineterminator="\n").writerow([repo, kind, message])
        if self.echo:
            logger.log(_ECHO_LEVELS.get(kind, logging.INFO), "%s,%s,%s", repo, kind, message)

    def success(self, repo: str, message: str) -> None:
        self.append(repo, SUCCESS, message)

    def notice(self, repo: str, message: str) -> None:
        self.append(repo, NOTICE, message)

    def warning(self, repo: str, message: str) -> None:
        self.append(repo, WARNING, message)

    def debug(self, repo: str, message: str) -> None:
        self.append(repo, DEBUG, message)
