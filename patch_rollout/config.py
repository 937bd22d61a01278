from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import MissingCredentialsError

TOKEN_ENV_KEYS = ("GH_PAT", "GITHUB_TOKEN")
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RolloutConfig:
    organization: str
    patch_id: str = "patch"
    branch_prefix: str = "patch-rollout_"
    pr_title: str = "Patching repository files"
    pr_body: str = "Automated changes generated by patch-rollout."
    commit_prefix: str = "Automated patch"
    patch_dir: Path = Path("patch_files")
    output_dir: Path = Path("_out")
    include_file: Path = Path("include-repos.txt")
    exclude_file: Path = Path("exclude-repos.txt")
    quota_report_every: int = 50
    backoff_seconds: float = 5.0
    merge: bool = False
    verify: bool = False
    echo: bool = True

    @property
    def branch_name(self) -> str:
        # A shared prefix lets later runs find every branch this tool created.
        return f"{self.branch_prefix}{self.patch_id}"

    @property
    def ledger_path(self) -> Path:
        return self.output_dir / f"{self.organization}_prs.csv"

    def run_log_path(self, started: datetime) -> Path:
        stamp = started.strftime("%Y%m%d_%H%M%S")
        return self.output_dir / f"{self.organization}_{stamp}_output.csv"

    def commit_message(self, file_name: str) -> str:
        return f"{self.commit_prefix} adding/updating file {file_name} [skip ci]"


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(environ.get(name, str(default)).strip())
    except Exception:
        return default


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(environ.get(name, str(default)).strip())
    except Exception:
        return default


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in _TRUTHY


def _pick(args: Optional[argparse.Namespace], attr: str) -> Any:
    return getattr(args, attr, None) if args is not None else None


def load_rollout_config(
    args: Optional[argparse.Namespace] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RolloutConfig:
    """
    Build the run configuration.

    CLI values win over environment variables, which win over the defaults
    declared on `RolloutConfig`.
    """
    env = os.environ if environ is None else environ

    def _text(attr: str, env_key: str, default: str) -> str:
        value = _pick(args, attr)
        if value is None:
            value = env.get(env_key, "").strip() or default
        return value

    def _path(attr: str, env_key: str, default: Path) -> Path:
        return Path(_text(attr, env_key, str(default)))

    organization = _text("org", "GITHUB_ORG", "").strip()
    if not organization:
        raise ValueError("An organization is required (--org or GITHUB_ORG)")

    defaults = RolloutConfig(organization=organization)

    quota_every = _pick(args, "quota_report_every")
    if quota_every is None:
        quota_every = _env_int(env, "QUOTA_REPORT_EVERY", defaults.quota_report_every)
    backoff = _pick(args, "backoff_seconds")
    if backoff is None:
        backoff = _env_float(env, "RATE_LIMIT_BACKOFF_SECONDS", defaults.backoff_seconds)

    merge = _pick(args, "merge")
    verify = _pick(args, "verify")
    quiet = bool(_pick(args, "quiet"))

    return RolloutConfig(
        organization=organization,
        patch_id=_text("patch_id", "PATCH_ID", defaults.patch_id),
        branch_prefix=_text("branch_prefix", "PATCH_BRANCH_PREFIX", defaults.branch_prefix),
        pr_title=_text("pr_title", "PATCH_PR_TITLE", defaults.pr_title),
        pr_body=_text("pr_body", "PATCH_PR_BODY", defaults.pr_body),
        commit_prefix=_text("commit_prefix", "PATCH_COMMIT_PREFIX", defaults.commit_prefix),
        patch_dir=_path("patch_dir", "PATCH_FILES_DIR", defaults.patch_dir),
        output_dir=_path("output_dir", "PATCH_OUTPUT_DIR", defaults.output_dir),
        include_file=_path("include_file", "INCLUDE_REPOS_FILE", defaults.include_file),
        exclude_file=_path("exclude_file", "EXCLUDE_REPOS_FILE", defaults.exclude_file),
        quota_report_every=max(1, int(quota_every)),
        backoff_seconds=max(0.0, float(backoff)),
        merge=_env_flag(env, "PATCH_MERGE") if merge is None else bool(merge),
        verify=_env_flag(env, "PATCH_VERIFY") if verify is None else bool(verify),
        echo=not quiet,
    )


def load_token(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the GitHub token or fail before any remote call is made."""
    env = os.environ if environ is None else environ
    for key in TOKEN_ENV_KEYS:
        token = (env.get(key) or "").strip()
        if token:
            return token
    raise MissingCredentialsError(
        "You need to set the GH_PAT environment variable to run patch-rollout"
    )
