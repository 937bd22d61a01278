from __future__ import annotations

from pydantic_graph import BaseNode, End, GraphRunContext

from patch_rollout.repo_set import resolve_repos


class DiscoverRepos(BaseNode):
    async def run(self, ctx: GraphRunContext) -> BaseNode | End:
        config = ctx.deps.config
        ctx.state.repos = resolve_repos(
            ctx.state.organization,
            ctx.deps.client,
            include_file=config.include_file,
            exclude_file=config.exclude_file,
        )
        ctx.state.position = 0

        from .next_repo import NextRepo

        return NextRepo()
