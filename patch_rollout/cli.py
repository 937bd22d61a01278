import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import load_rollout_config, load_token
from .errors import MissingCredentialsError
from .github_client import GithubHostingClient
from .logging_config import configure_logging
from .workflow import build_deps, run_rollout

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="patch-rollout",
        description="Open pull requests that add a fixed set of files to every repo in an org.",
    )
    parser.add_argument("--org", help="GitHub organization (env: GITHUB_ORG)")
    parser.add_argument("--patch-id", help="Identifier appended to the branch prefix")
    parser.add_argument("--branch-prefix", help="Prefix shared by every branch this tool creates")
    parser.add_argument("--pr-title")
    parser.add_argument("--pr-body")
    parser.add_argument("--commit-prefix")
    parser.add_argument("--patch-dir", type=Path)
    parser.add_argument("--output-dir", type=Path)
    parser.add_argument("--include-file", type=Path)
    parser.add_argument("--exclude-file", type=Path)
    parser.add_argument("--quota-report-every", type=int)
    parser.add_argument("--backoff-seconds", type=float)
    parser.add_argument(
        "--merge",
        action="store_true",
        default=None,
        help="Merge each new PR and delete its branch",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        default=None,
        help="With --merge, log the files in each merge commit",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not echo run-log rows")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level, force=True)
    try:
        token = load_token()
    except MissingCredentialsError as exc:
        sys.exit(str(exc))
    try:
        config = load_rollout_config(args)
    except ValueError as exc:
        sys.exit(str(exc))

    client = GithubHostingClient(token)
    asyncio.run(run_rollout(build_deps(config, client)))


if __name__ == "__main__":
    main()
