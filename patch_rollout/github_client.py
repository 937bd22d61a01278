from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, List, Mapping, Optional

from github import Auth, Github
from github.GithubException import (
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Repository import Repository

from .errors import RateLimitedError, UnprocessableError
from .models import BranchInfo, CommitInfo, PRState, PullRequestInfo, RateLimitInfo

logger = logging.getLogger(__name__)

# Statuses the remote uses to reject a write that cannot be applied as asked.
_UNPROCESSABLE_STATUSES = (405, 409, 422)


class HostingClient(ABC):
    """
    The narrow slice of the hosting API used by a rollout.

    Lookups return None for resources that do not exist. Writes raise
    `UnprocessableError` when rejected; any call may raise `RateLimitedError`.
    """

    @abstractmethod
    def list_org_repos(self, organization: str) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def get_default_branch(self, repo: str) -> Optional[BranchInfo]:
        raise NotImplementedError

    @abstractmethod
    def create_branch(self, repo: str, branch: str, sha: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_file_sha(self, repo: str, path: str, ref: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def create_file(
        self, repo: str, path: str, message: str, content: bytes, branch: str
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_file(
        self, repo: str, path: str, message: str, content: bytes, sha: str, branch: str
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_pull(
        self, repo: str, *, base: str, head: str, title: str, body: str
    ) -> PullRequestInfo:
        raise NotImplementedError

    @abstractmethod
    def find_open_pull(self, repo: str, *, head: str, base: str) -> Optional[PullRequestInfo]:
        raise NotImplementedError

    @abstractmethod
    def get_pull(self, repo: str, number: int) -> Optional[PullRequestInfo]:
        raise NotImplementedError

    @abstractmethod
    def merge_pull(self, repo: str, number: int) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def delete_branch(self, repo: str, branch: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_commit(self, repo: str, sha: str) -> Optional[CommitInfo]:
        raise NotImplementedError

    @abstractmethod
    def rate_limit(self) -> RateLimitInfo:
        raise NotImplementedError

    @abstractmethod
    def rate_limit_resets_in(self) -> float:
        raise NotImplementedError


def error_message(exc: GithubException) -> str:
    """Flatten the message and per-field errors GitHub returns in a 4xx body."""
    data = exc.data
    if not isinstance(data, Mapping):
        return str(data or exc)
    parts: list[str] = []
    if data.get("message"):
        parts.append(str(data["message"]))
    for err in data.get("errors") or []:
        if isinstance(err, Mapping):
            text = err.get("message") or err.get("code")
        else:
            text = err
        if text:
            parts.append(str(text))
    return ": ".join(parts) if parts else str(exc)


def _resets_in(headers: Optional[Mapping[str, Any]]) -> Optional[float]:
    lowered = {str(k).lower(): v for k, v in (headers or {}).items()}
    try:
        if "retry-after" in lowered:
            return max(0.0, float(lowered["retry-after"]))
        if "x-ratelimit-reset" in lowered:
            return max(0.0, float(lowered["x-ratelimit-reset"]) - time.time())
    except (TypeError, ValueError):
        return None
    return None


def _is_rate_limited(exc: GithubException) -> bool:
    if isinstance(exc, RateLimitExceededException) or exc.status == 429:
        return True
    return exc.status == 403 and "rate limit" in error_message(exc).lower()


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except GithubException as exc:
        if _is_rate_limited(exc):
            raise RateLimitedError(
                f"rate limited during {action}: {error_message(exc)}",
                resets_in=_resets_in(exc.headers),
            ) from exc
        if exc.status in _UNPROCESSABLE_STATUSES:
            raise UnprocessableError(error_message(exc), status=exc.status) from exc
        raise


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def pull_info(pull: Any) -> PullRequestInfo:
    merged_at = _isoformat(pull.merged_at)
    return PullRequestInfo(
        number=pull.number,
        state=PRState.from_remote(pull.state, merged_at=merged_at, draft=bool(pull.draft)),
        head_ref=pull.head.ref,
        html_url=pull.html_url,
        merged_at=merged_at,
    )


class GithubHostingClient(HostingClient):
    def __init__(
        self,
        token: Optional[str] = None,
        *,
        per_page: int = 100,
        gh: Optional[Github] = None,
    ) -> None:
        if gh is None:
            if not token:
                raise ValueError("A GitHub token is required to build the client")
            # PyGithub's own retry would sleep through rate limits; the rollout
            # driver owns that backoff.
            gh = Github(auth=Auth.Token(token), per_page=per_page, retry=None)
        self._gh = gh

    def _repo(self, repo: str) -> Repository:
        return self._gh.get_repo(repo, lazy=True)

    def list_org_repos(self, organization: str) -> List[str]:
        with _translate_errors("list organization repos"):
            org = self._gh.get_organization(organization)
            repos = [r.full_name for r in org.get_repos()]
        logger.debug("[github] %s has %d repos", organization, len(repos))
        return repos

    def get_default_branch(self, repo: str) -> Optional[BranchInfo]:
        with _translate_errors("get default branch"):
            try:
                remote = self._gh.get_repo(repo)
                branch = remote.get_branch(remote.default_branch)
            except UnknownObjectException:
                return None
        return BranchInfo(name=branch.name, sha=branch.commit.sha)

    def create_branch(self, repo: str, branch: str, sha: str) -> None:
        with _translate_errors("create reference"):
            self._repo(repo).create_git_ref(ref=f"refs/heads/{branch}", sha=sha)

    def get_file_sha(self, repo: str, path: str, ref: str) -> Optional[str]:
        with _translate_errors("get contents"):
            try:
                contents = self._repo(repo).get_contents(path, ref=ref)
            except UnknownObjectException:
                return None
        if isinstance(contents, list):
            raise UnprocessableError(f"{path} is a directory on {ref}")
        return contents.sha

    def create_file(
        self, repo: str, path: str, message: str, content: bytes, branch: str
    ) -> None:
        with _translate_errors("create contents"):
            self._repo(repo).create_file(path, message, content, branch=branch)

    def update_file(
        self, repo: str, path: str, message: str, content: bytes, sha: str, branch: str
    ) -> None:
        with _translate_errors("update contents"):
            self._repo(repo).update_file(path, message, content, sha, branch=branch)

    def create_pull(
        self, repo: str, *, base: str, head: str, title: str, body: str
    ) -> PullRequestInfo:
        with _translate_errors("create pull request"):
            pull = self._repo(repo).create_pull(base=base, head=head, title=title, body=body)
        return pull_info(pull)

    def find_open_pull(self, repo: str, *, head: str, base: str) -> Optional[PullRequestInfo]:
        owner = repo.split("/", 1)[0]
        with _translate_errors("list pull requests"):
            try:
                pulls = self._repo(repo).get_pulls(state="open", head=f"{owner}:{head}", base=base)
                for pull in pulls:
                    return pull_info(pull)
            except UnknownObjectException:
                return None
        return None

    def get_pull(self, repo: str, number: int) -> Optional[PullRequestInfo]:
        with _translate_errors("get pull request"):
            try:
                pull = self._repo(repo).get_pull(int(number))
            except UnknownObjectException:
                return None
        return pull_info(pull)

    def merge_pull(self, repo: str, number: int) -> Optional[str]:
        with _translate_errors("merge pull request"):
            try:
                pull = self._repo(repo).get_pull(int(number))
            except UnknownObjectException:
                return None
            status = pull.merge()
        return status.sha if status.merged else None

    def delete_branch(self, repo: str, branch: str) -> bool:
        with _translate_errors("delete reference"):
            try:
                self._repo(repo).get_git_ref(f"heads/{branch}").delete()
            except UnknownObjectException:
                return False
        return True

    def get_commit(self, repo: str, sha: str) -> Optional[CommitInfo]:
        with _translate_errors("get commit"):
            try:
                commit = self._repo(repo).get_commit(sha)
                files = [f.filename for f in commit.files]
            except UnknownObjectException:
                return None
        return CommitInfo(
            sha=commit.sha,
            date=_isoformat(commit.commit.author.date),
            message=commit.commit.message,
            files=files,
        )

    def rate_limit(self) -> RateLimitInfo:
        with _translate_errors("get rate limit"):
            self._gh.get_rate_limit()
        remaining, limit = self._gh.rate_limiting
        reset = self._gh.rate_limiting_resettime
        resets_at = datetime.fromtimestamp(reset, tz=timezone.utc) if reset else None
        return RateLimitInfo(remaining=remaining, limit=limit, resets_at=resets_at)

    def rate_limit_resets_in(self) -> float:
        reset = self._gh.rate_limiting_resettime
        return max(0.0, float(reset) - time.time()) if reset else 0.0
