from __future__ import annotations

from pydantic_graph import BaseNode, End, GraphRunContext

from patch_rollout.rate_limit import report_rate_limit


class NextRepo(BaseNode):
    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        if ctx.state.position >= len(ctx.state.repos):
            from .finish import FinishRollout

            return FinishRollout()

        index = ctx.state.position
        repo = ctx.state.repos[index]
        if index % ctx.deps.config.quota_report_every == 0:
            report_rate_limit(ctx.deps.client, "repo")
        ctx.state.position = index + 1

        from .process_repo import ProcessRepo

        return ProcessRepo(repo=repo)
