from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from .config import RolloutConfig
from .github_client import HostingClient
from .ledger import LedgerEntry, LedgerStore
from .orchestrator import PullRequestOrchestrator
from .run_log import RunLog


@dataclass
class RolloutState:
    """
    Mutable progress of one rollout run.

    - `ledger` starts as the previous run's ledger and is updated as each
      repository is visited
    - `position` is the index of the next repository in `repos`
    - `outcomes` maps each visited repository to the orchestrator action
    """

    organization: str
    repos: List[str] = field(default_factory=list)
    position: int = 0
    ledger: Dict[str, LedgerEntry] = field(default_factory=dict)
    outcomes: Dict[str, str] = field(default_factory=dict)
    # Every backoff pause taken, in order.
    rate_limit_sleeps: List[float] = field(default_factory=list)


@dataclass
class RolloutDeps:
    """Collaborators shared by every step; built once per run."""

    config: RolloutConfig
    client: HostingClient
    ledger_store: LedgerStore
    run_log: RunLog
    orchestrator: PullRequestOrchestrator
    sleep: Callable[[float], None] = time.sleep
