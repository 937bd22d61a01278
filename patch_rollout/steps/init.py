from __future__ import annotations

import logging

from pydantic_graph import BaseNode, End, GraphRunContext

from patch_rollout.rate_limit import report_rate_limit

logger = logging.getLogger(__name__)


class InitRollout(BaseNode):
    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        config = ctx.deps.config
        config.output_dir.mkdir(parents=True, exist_ok=True)
        if not config.patch_dir.is_dir():
            logger.warning("[init] patch directory %s is missing; creating it empty", config.patch_dir)
            config.patch_dir.mkdir(parents=True, exist_ok=True)

        ctx.deps.run_log.create()
        report_rate_limit(ctx.deps.client, "beginning of run")

        ctx.state.ledger = ctx.deps.ledger_store.load()
        # Start a fresh ledger file; each visited repository appends its row.
        ctx.deps.ledger_store.rewrite([])

        logger.info(
            "[init] org=%s branch=%s ledger=%s run_log=%s known=%d",
            ctx.state.organization,
            config.branch_name,
            ctx.deps.ledger_store.path,
            ctx.deps.run_log.path,
            len(ctx.state.ledger),
        )

        from .discover import DiscoverRepos

        return DiscoverRepos()
