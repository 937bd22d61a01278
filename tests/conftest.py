from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from patch_rollout.config import RolloutConfig
from patch_rollout.errors import UnprocessableError
from patch_rollout.github_client import HostingClient
from patch_rollout.models import (
    BranchInfo,
    CommitInfo,
    PRState,
    PullRequestInfo,
    RateLimitInfo,
)


class FakeHostingClient(HostingClient):
    """In-memory stand-in for the GitHub API, recording every call."""

    def __init__(self) -> None:
        self.org_repos: List[str] = []
        self.default_branches: Dict[str, BranchInfo] = {}
        self.branches: Dict[str, set[str]] = {}
        self.files: Dict[Tuple[str, str, str], Tuple[str, bytes]] = {}
        self.pulls: Dict[str, Dict[int, PullRequestInfo]] = {}
        self.commits: Dict[str, CommitInfo] = {}
        self.calls: List[tuple] = []
        # Operation name -> exceptions raised (in order) by the next calls.
        self.failures: Dict[str, List[Exception]] = {}
        self.resets_in = 3600.0
        self._counter = 0

    def add_repo(self, repo: str, default_branch: str = "main", sha: str = "base-sha") -> None:
        self.default_branches[repo] = BranchInfo(name=default_branch, sha=sha)
        self.branches.setdefault(repo, set()).add(default_branch)

    def add_pull(self, repo: str, pull: PullRequestInfo) -> None:
        self.pulls.setdefault(repo, {})[pull.number] = pull

    def fail(self, operation: str, *errors: Exception) -> None:
        self.failures.setdefault(operation, []).extend(errors)

    def ops(self, operation: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == operation]

    def _call(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def list_org_repos(self, organization: str) -> List[str]:
        self._call("list_org_repos", organization)
        return list(self.org_repos)

    def get_default_branch(self, repo: str) -> Optional[BranchInfo]:
        self._call("get_default_branch", repo)
        return self.default_branches.get(repo)

    def create_branch(self, repo: str, branch: str, sha: str) -> None:
        self._call("create_branch", repo, branch, sha)
        existing = self.branches.setdefault(repo, set())
        if branch in existing:
            raise UnprocessableError("Reference already exists")
        existing.add(branch)

    def get_file_sha(self, repo: str, path: str, ref: str) -> Optional[str]:
        self._call("get_file_sha", repo, path, ref)
        stored = self.files.get((repo, ref, path))
        return stored[0] if stored else None

    def create_file(self, repo: str, path: str, message: str, content: bytes, branch: str) -> None:
        self._call("create_file", repo, path, message, branch)
        self.files[(repo, branch, path)] = (f"blob-{self._next()}", content)

    def update_file(
        self, repo: str, path: str, message: str, content: bytes, sha: str, branch: str
    ) -> None:
        self._call("update_file", repo, path, message, sha, branch)
        current = self.files.get((repo, branch, path))
        if current is None or current[0] != sha:
            raise UnprocessableError(f"{path} does not match {sha}")
        self.files[(repo, branch, path)] = (f"blob-{self._next()}", content)

    def create_pull(
        self, repo: str, *, base: str, head: str, title: str, body: str
    ) -> PullRequestInfo:
        self._call("create_pull", repo, base, head, title)
        if self.find_open_pull(repo, head=head, base=base) is not None:
            raise UnprocessableError(f"A pull request already exists for {head}.")
        number = self._next()
        pull = PullRequestInfo(
            number=number,
            state=PRState.OPEN,
            head_ref=head,
            html_url=f"https://github.com/{repo}/pull/{number}",
        )
        self.add_pull(repo, pull)
        return pull

    def find_open_pull(self, repo: str, *, head: str, base: str) -> Optional[PullRequestInfo]:
        for pull in self.pulls.get(repo, {}).values():
            if pull.head_ref == head and pull.state in (PRState.OPEN, PRState.DRAFT):
                return pull
        return None

    def get_pull(self, repo: str, number: int) -> Optional[PullRequestInfo]:
        self._call("get_pull", repo, number)
        return self.pulls.get(repo, {}).get(number)

    def merge_pull(self, repo: str, number: int) -> Optional[str]:
        self._call("merge_pull", repo, number)
        pull = self.pulls.get(repo, {}).get(number)
        if pull is None:
            return None
        sha = f"merge-{number}"
        self.pulls[repo][number] = PullRequestInfo(
            number=number,
            state=PRState.MERGED,
            head_ref=pull.head_ref,
            html_url=pull.html_url,
            merged_at="2024-05-01T10:00:00+00:00",
        )
        return sha

    def delete_branch(self, repo: str, branch: str) -> bool:
        self._call("delete_branch", repo, branch)
        existing = self.branches.get(repo, set())
        if branch not in existing:
            return False
        existing.discard(branch)
        return True

    def get_commit(self, repo: str, sha: str) -> Optional[CommitInfo]:
        self._call("get_commit", repo, sha)
        return self.commits.get(sha)

    def rate_limit(self) -> RateLimitInfo:
        self._call("rate_limit")
        return RateLimitInfo(
            remaining=4999,
            limit=5000,
            resets_at=datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc),
        )

    def rate_limit_resets_in(self) -> float:
        return self.resets_in


@pytest.fixture
def fake_client() -> FakeHostingClient:
    return FakeHostingClient()


@pytest.fixture
def patch_dir(tmp_path: Path) -> Path:
    root = tmp_path / "patch_files"
    (root / ".github" / "workflows").mkdir(parents=True)
    (root / ".github" / "workflows" / "lint.yml").write_text("name: lint\n", encoding="utf-8")
    (root / "CODEOWNERS").write_text("* @org/admins\n", encoding="utf-8")
    (root / ".DS_Store").write_bytes(b"\x00\x01")
    return root


@pytest.fixture
def make_config(tmp_path: Path, patch_dir: Path):
    def _make(**overrides) -> RolloutConfig:
        values = dict(
            organization="org",
            patch_id="patch48",
            branch_prefix="rollout_",
            patch_dir=patch_dir,
            output_dir=tmp_path / "_out",
            include_file=tmp_path / "include-repos.txt",
            exclude_file=tmp_path / "exclude-repos.txt",
            backoff_seconds=5.0,
            echo=False,
        )
        values.update(overrides)
        return RolloutConfig(**values)

    return _make
