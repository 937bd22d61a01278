from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import RolloutConfig
from .errors import UnprocessableError
from .github_client import HostingClient
from .ledger import LedgerEntry
from .models import BranchInfo, PullRequestInfo
from .patch_files import PatchApplier
from .run_log import RunLog

logger = logging.getLogger(__name__)

CREATED = "created"
REFRESHED = "refreshed"
PRESERVED = "preserved"
SKIPPED = "skipped"
DROPPED = "dropped"

_REFERENCE_EXISTS = "reference already exists"


@dataclass(frozen=True)
class RepoOutcome:
    """What happened to one repository and the ledger entry to keep for it."""

    action: str
    entry: Optional[LedgerEntry] = None


class PullRequestOrchestrator:
    """
    Decide, per repository, between opening a new patch PR and refreshing
    the status of the one already recorded in the ledger.

    Every step is safe to repeat: the run driver restarts a repository from
    the top after a rate-limit pause, so an existing branch or PR is treated
    as already done rather than as a failure.
    """

    def __init__(
        self,
        client: HostingClient,
        config: RolloutConfig,
        run_log: RunLog,
        applier: Optional[PatchApplier] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.run_log = run_log
        self.applier = applier or PatchApplier(
            client, run_log, config.patch_dir, config.commit_message
        )

    def process(self, repo: str, entry: Optional[LedgerEntry]) -> RepoOutcome:
        if entry is None:
            return self.create_new_pr(repo)
        if not entry.is_merged:
            return self.update_with_newest_pr_info(repo, entry)
        logger.debug("[orchestrator] %s merged at %s; nothing to do", repo, entry.merged_at)
        return RepoOutcome(PRESERVED, entry)

    def create_new_pr(self, repo: str) -> RepoOutcome:
        self.run_log.notice(repo, "PR does not exist. Creating a new PR")
        default_branch = self.client.get_default_branch(repo)
        if default_branch is None:
            self.run_log.warning(repo, "Repo does not exist. Skipping")
            return RepoOutcome(SKIPPED)

        branch = self.config.branch_name
        self.create_pr_branch(repo, default_branch, branch)
        written = self.applier.apply(repo, branch)
        pull = self.create_pull_request(repo, default_branch, branch)
        if pull is None:
            self.run_log.notice(repo, f"No pull request found for branch {branch}; nothing recorded")
            return RepoOutcome(SKIPPED)

        entry = LedgerEntry(
            repo=repo,
            branch=branch,
            pr_number=pull.number,
            state=pull.state,
            merged_at=pull.merged_at,
            url=pull.html_url,
        )
        if self.config.merge:
            merge_sha = self.merge_pr(repo, pull.number, branch)
            if merge_sha:
                merged = self.client.get_pull(repo, pull.number)
                if merged is not None:
                    entry = LedgerEntry.from_pull(repo, merged)
                if self.config.verify:
                    self.validate_files_were_added(repo, merge_sha, written)
        return RepoOutcome(CREATED, entry)

    def create_pr_branch(self, repo: str, source: BranchInfo, branch: str) -> None:
        try:
            self.client.create_branch(repo, branch, source.sha)
        except UnprocessableError as exc:
            if _REFERENCE_EXISTS not in exc.message.lower():
                raise
            self.run_log.warning(repo, f"Branch {branch} already exists. Skipping creation.")

    def create_pull_request(
        self, repo: str, base: BranchInfo, branch: str
    ) -> Optional[PullRequestInfo]:
        try:
            pull = self.client.create_pull(
                repo,
                base=base.name,
                head=branch,
                title=self.config.pr_title,
                body=self.config.pr_body,
            )
        except UnprocessableError:
            self.run_log.notice(repo, "PR already exists or failed to create")
            existing = self.client.find_open_pull(repo, head=branch, base=base.name)
            if existing is not None:
                self.run_log.notice(repo, f"Found existing PR: {existing.html_url}")
            return existing
        self.run_log.success(repo, f"PR created: {pull.html_url}")
        return pull

    def update_with_newest_pr_info(self, repo: str, entry: LedgerEntry) -> RepoOutcome:
        pull = None
        if entry.pr_number is not None:
            pull = self.client.get_pull(repo, entry.pr_number)
        if pull is None:
            self.run_log.warning(
                repo,
                f"PR#{entry.pr_number or ''} does not exist this may be an error in "
                "the original CSV file. Removing this record",
            )
            return RepoOutcome(DROPPED)
        self.run_log.notice(repo, "PR already exists. Updating with newest stats pulled from API")
        return RepoOutcome(REFRESHED, LedgerEntry.from_pull(repo, pull))

    def merge_pr(self, repo: str, number: int, branch: str) -> Optional[str]:
        """Merge an open PR and delete its branch; returns the merge commit SHA."""
        try:
            sha = self.client.merge_pull(repo, number)
        except UnprocessableError as exc:
            self.run_log.warning(repo, f"error occurred: {exc.message}")
            return None
        if sha is None:
            self.run_log.warning(repo, f"PR#{number} was not merged")
            return None
        self.run_log.success(repo, "PR merged")
        try:
            self.client.delete_branch(repo, branch)
        except UnprocessableError as exc:
            self.run_log.warning(repo, f"Branch {branch} was not deleted: {exc.message}")
        return sha

    def validate_files_were_added(self, repo: str, sha: str, files_written: int) -> None:
        commit = self.client.get_commit(repo, sha)
        if commit is None:
            self.run_log.warning(repo, f"Merge commit {sha} not found; cannot verify files")
            return
        lines = [
            f"Date: {commit.date or ''}",
            f"Message: {commit.message}",
            f"Files written: {files_written}, files in commit: {len(commit.files)}",
            "----- File(s) changed ----------------------",
        ]
        lines.extend(f"File: ./{name}" for name in commit.files)
        self.run_log.debug(repo, "\n".join(lines))
