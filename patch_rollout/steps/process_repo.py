from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from patch_rollout.errors import RateLimitedError
from patch_rollout.orchestrator import DROPPED, RepoOutcome
from patch_rollout.rate_limit import next_backoff

logger = logging.getLogger(__name__)


def _process_with_backoff(ctx: GraphRunContext, repo: str) -> RepoOutcome:
    """
    Run the orchestrator for `repo`, restarting it from the first step after
    each rate-limit pause.
    """
    deps = ctx.deps
    base = deps.config.backoff_seconds
    delay = base
    while True:
        try:
            return deps.orchestrator.process(repo, ctx.state.ledger.get(repo))
        except RateLimitedError as exc:
            logger.warning("[rollout] rate limit exceeded on %s, sleeping for %s seconds", repo, delay)
            ctx.state.rate_limit_sleeps.append(delay)
            deps.sleep(delay)
            resets_in = exc.resets_in
            if resets_in is None:
                resets_in = deps.client.rate_limit_resets_in()
            delay = next_backoff(delay, resets_in, base)


@dataclass
class ProcessRepo(BaseNode):
    repo: str

    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        logger.info(
            "[rollout] %s (%d/%d)", self.repo, ctx.state.position, len(ctx.state.repos)
        )
        outcome = _process_with_backoff(ctx, self.repo)
        ctx.state.outcomes[self.repo] = outcome.action

        if outcome.entry is not None:
            ctx.state.ledger[self.repo] = outcome.entry
            ctx.deps.ledger_store.append(outcome.entry)
        elif outcome.action == DROPPED:
            ctx.state.ledger.pop(self.repo, None)

        from .next_repo import NextRepo

        return NextRepo()
