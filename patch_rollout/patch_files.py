from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from .errors import UnprocessableError
from .github_client import HostingClient
from .run_log import RunLog

logger = logging.getLogger(__name__)

HOUSEKEEPING_FILES = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})


@dataclass(frozen=True)
class PatchFile:
    source: Path
    # Path inside the target repository, always "/"-separated.
    target: str

    @property
    def name(self) -> str:
        return self.target.rsplit("/", 1)[-1]


def collect_patch_files(patch_dir: Path) -> List[PatchFile]:
    """Every regular file under `patch_dir`, relative to it, in a stable order."""
    root = Path(patch_dir)
    if not root.is_dir():
        return []
    files: List[PatchFile] = []
    for path in sorted(root.rglob("*")):
        if path.is_dir() or path.name in HOUSEKEEPING_FILES:
            continue
        files.append(PatchFile(source=path, target=path.relative_to(root).as_posix()))
    return files


class PatchApplier:
    def __init__(
        self,
        client: HostingClient,
        run_log: RunLog,
        patch_dir: Path,
        commit_message: Callable[[str], str],
    ) -> None:
        self.client = client
        self.run_log = run_log
        self.patch_dir = Path(patch_dir)
        self.commit_message = commit_message

    def apply(self, repo: str, branch: str) -> int:
        """Create or update every patch file on `branch`; returns files written."""
        written = 0
        for patch in collect_patch_files(self.patch_dir):
            content = patch.source.read_bytes()
            message = self.commit_message(patch.name)
            try:
                existing_sha = self.client.get_file_sha(repo, patch.target, branch)
                if existing_sha is not None:
                    self.client.update_file(
                        repo, patch.target, message, content, existing_sha, branch
                    )
                else:
                    self.client.create_file(repo, patch.target, message, content, branch)
            except UnprocessableError as exc:
                self.run_log.warning(
                    repo, f"Failed to add/update file {patch.target}: {exc.message}"
                )
                continue
            logger.debug(
                "[patch] %s %s on %s:%s",
                "updated" if existing_sha else "created",
                patch.target,
                repo,
                branch,
            )
            written += 1
        self.run_log.success(repo, f"{written} files added to branch")
        return written
