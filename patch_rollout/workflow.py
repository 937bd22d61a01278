from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from pydantic_graph import Graph

from .config import RolloutConfig
from .github_client import HostingClient
from .ledger import LedgerStore
from .logging_config import ensure_logging_configured
from .orchestrator import PullRequestOrchestrator
from .run_log import RunLog
from .state import RolloutDeps, RolloutState
from .steps import DiscoverRepos, FinishRollout, InitRollout, NextRepo, ProcessRepo

logger = logging.getLogger(__name__)


def build_rollout_graph() -> Graph:
    return Graph(
        nodes=[InitRollout, DiscoverRepos, NextRepo, ProcessRepo, FinishRollout],
        state_type=RolloutState,
    )


def build_deps(
    config: RolloutConfig,
    client: HostingClient,
    *,
    started: Optional[datetime] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RolloutDeps:
    run_log = RunLog(config.run_log_path(started or datetime.now()), echo=config.echo)
    return RolloutDeps(
        config=config,
        client=client,
        ledger_store=LedgerStore(config.ledger_path),
        run_log=run_log,
        orchestrator=PullRequestOrchestrator(client, config, run_log),
        sleep=sleep,
    )


async def run_rollout(deps: RolloutDeps) -> RolloutState:
    ensure_logging_configured()
    state = RolloutState(organization=deps.config.organization)
    graph = build_rollout_graph()
    await graph.run(InitRollout(), state=state, deps=deps)
    return state
