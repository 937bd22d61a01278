from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


class RepoLister(Protocol):
    def list_org_repos(self, organization: str) -> List[str]: ...


def read_repo_list(path: Path, organization: str) -> Optional[List[str]]:
    """
    Read a repository list file, one bare repository name per line.

    Blank lines and lines starting with `#` are ignored. Each name is
    qualified as `organization/name`. Returns None when the file is absent.
    """
    path = Path(path)
    if not path.exists():
        return None
    names: List[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        names.append(f"{organization}/{line.strip()}")
    return names


def resolve_repos(
    organization: str,
    client: RepoLister,
    *,
    include_file: Path,
    exclude_file: Path,
) -> List[str]:
    included = read_repo_list(include_file, organization)
    if included is None:
        logger.info(
            "[discover] %s does not exist; processing ALL repos in %s",
            include_file,
            organization,
        )
        included = client.list_org_repos(organization)
    else:
        logger.info("[discover] using %s to select repos in %s", include_file, organization)

    excluded = read_repo_list(exclude_file, organization)
    if excluded is None:
        logger.info("[discover] %s does not exist; no repos excluded", exclude_file)
        excluded = []
    else:
        logger.info("[discover] using %s to exclude %d repos", exclude_file, len(excluded))

    repos = sorted(set(included) - set(excluded))
    logger.info("[discover] resolved %d repos for %s", len(repos), organization)
    return repos
