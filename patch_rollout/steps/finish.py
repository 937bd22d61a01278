from __future__ import annotations

import logging
from collections import Counter

from pydantic_graph import BaseNode, End, GraphRunContext

from patch_rollout.rate_limit import report_rate_limit

logger = logging.getLogger(__name__)


class FinishRollout(BaseNode):
    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        report_rate_limit(ctx.deps.client, "end of run")
        counts = Counter(ctx.state.outcomes.values())
        logger.info(
            "[finish] visited=%d %s ledger=%s",
            len(ctx.state.outcomes),
            " ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "-",
            ctx.deps.ledger_store.path,
        )
        return End(None)
