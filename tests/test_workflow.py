from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from patch_rollout.errors import RateLimitedError
from patch_rollout.ledger import LEDGER_HEADER, LedgerStore
from patch_rollout.models import PRState, PullRequestInfo
from patch_rollout.workflow import build_deps, build_rollout_graph, run_rollout


def _run(config, client, sleeps=None):
    deps = build_deps(
        config,
        client,
        started=datetime(2024, 5, 1, 9, 30, 0),
        sleep=(sleeps.append if sleeps is not None else lambda _s: None),
    )
    state = asyncio.run(run_rollout(deps))
    return state, deps


def _ledger_rows(config) -> list[str]:
    return config.ledger_path.read_text(encoding="utf-8").splitlines()


def _seed_ledger(config, *rows: str) -> None:
    config.output_dir.mkdir(parents=True, exist_ok=True)
    config.ledger_path.write_text(
        "\n".join([",".join(LEDGER_HEADER), *rows]) + "\n", encoding="utf-8"
    )


def test_new_repos_get_exactly_one_ledger_row(fake_client, make_config) -> None:
    config = make_config()
    fake_client.org_repos = ["org/b", "org/a"]
    fake_client.add_repo("org/a")
    fake_client.add_repo("org/b")

    state, deps = _run(config, fake_client)

    entries = LedgerStore(config.ledger_path).load()
    assert set(entries) == {"org/a", "org/b"}
    for entry in entries.values():
        assert entry.branch == "rollout_patch48"
        assert entry.pr_number is not None
    assert len(_ledger_rows(config)) == 3
    assert state.outcomes == {"org/a": "created", "org/b": "created"}
    assert deps.run_log.path.name == "org_20240501_093000_output.csv"
    assert deps.run_log.path.read_text(encoding="utf-8").splitlines()[0] == "Repo,Message Type,Message"


def test_merged_entries_are_unchanged(fake_client, make_config) -> None:
    config = make_config()
    row = "org/done,br,3,merged,2024-01-01T00:00:00+00:00,https://x/3"
    _seed_ledger(config, row)
    fake_client.org_repos = ["org/done"]

    _run(config, fake_client)

    assert _ledger_rows(config)[1:] == [row]
    assert fake_client.ops("get_pull") == []
    assert fake_client.ops("create_pull") == []


def test_unmerged_entry_is_refreshed_from_remote(fake_client, make_config, tmp_path: Path) -> None:
    config = make_config()
    _seed_ledger(config, "org/repo1,br1,5,open,,https://x/5")
    config.include_file.write_text("repo1\n", encoding="utf-8")
    fake_client.add_pull(
        "org/repo1",
        PullRequestInfo(
            number=5,
            state=PRState.MERGED,
            head_ref="br1",
            html_url="https://x/5",
            merged_at="2024-05-01T10:00:00+00:00",
        ),
    )

    state, _ = _run(config, fake_client)

    assert _ledger_rows(config)[1:] == [
        "org/repo1,br1,5,merged,2024-05-01T10:00:00+00:00,https://x/5"
    ]
    assert state.ledger["org/repo1"].state is PRState.MERGED


def test_stale_entry_is_removed(fake_client, make_config) -> None:
    config = make_config()
    _seed_ledger(config, "org/a,br,9,open,,https://x/9")
    fake_client.org_repos = ["org/a"]

    state, _ = _run(config, fake_client)

    assert _ledger_rows(config) == [",".join(LEDGER_HEADER)]
    assert "org/a" not in state.ledger


def test_ledger_only_keeps_visited_repos(fake_client, make_config) -> None:
    config = make_config()
    _seed_ledger(
        config,
        "org/kept,br,1,merged,2024-01-01T00:00:00+00:00,u1",
        "org/excluded,br,2,merged,2024-01-01T00:00:00+00:00,u2",
    )
    fake_client.org_repos = ["org/kept", "org/excluded"]
    config.exclude_file.write_text("excluded\n", encoding="utf-8")

    _run(config, fake_client)

    assert [r.split(",")[0] for r in _ledger_rows(config)[1:]] == ["org/kept"]


def test_rate_limit_backs_off_and_restarts_the_repo(fake_client, make_config) -> None:
    config = make_config(backoff_seconds=5.0)
    fake_client.org_repos = ["org/a"]
    fake_client.add_repo("org/a")
    fake_client.fail(
        "create_pull",
        RateLimitedError("slow down"),
        RateLimitedError("slow down"),
        RateLimitedError("slow down"),
    )
    sleeps: list[float] = []

    state, _ = _run(config, fake_client, sleeps)

    assert sleeps == [5.0, 10.0, 20.0]
    assert state.rate_limit_sleeps == sleeps
    # Each retry starts again from the default-branch lookup.
    assert len(fake_client.ops("get_default_branch")) == 4
    assert len(fake_client.ops("create_branch")) == 4
    assert len(fake_client.ops("create_file")) == 2
    assert len(fake_client.ops("update_file")) == 6
    assert len(LedgerStore(config.ledger_path).load()) == 1
    assert len(_ledger_rows(config)) == 2


def test_rate_limit_backoff_is_capped_by_reset(fake_client, make_config) -> None:
    config = make_config(backoff_seconds=5.0)
    fake_client.org_repos = ["org/a"]
    fake_client.add_repo("org/a")
    fake_client.fail(
        "get_default_branch",
        RateLimitedError("slow down", resets_in=11.0),
        RateLimitedError("slow down", resets_in=11.0),
        RateLimitedError("slow down", resets_in=11.0),
    )
    sleeps: list[float] = []

    _run(config, fake_client, sleeps)

    assert sleeps == [5.0, 10.0, 12.0]


def test_quota_reported_at_start_every_fifty_and_end(fake_client, make_config) -> None:
    config = make_config()
    names = [f"repo{i:03d}" for i in range(101)]
    config.include_file.write_text("\n".join(names) + "\n", encoding="utf-8")

    state, _ = _run(config, fake_client)

    # beginning, positions 0/50/100, end
    assert len(fake_client.ops("rate_limit")) == 5
    assert set(state.outcomes.values()) == {"skipped"}
    assert len(state.outcomes) == 101


def test_missing_patch_dir_is_created(fake_client, make_config, tmp_path: Path) -> None:
    config = make_config(patch_dir=tmp_path / "fresh_patch_files")
    fake_client.org_repos = []

    _run(config, fake_client)

    assert config.patch_dir.is_dir()
    assert _ledger_rows(config) == [",".join(LEDGER_HEADER)]


def test_rollout_graph_registers_every_step() -> None:
    graph = build_rollout_graph()

    assert set(graph.node_defs) == {
        "InitRollout",
        "DiscoverRepos",
        "NextRepo",
        "ProcessRepo",
        "FinishRollout",
    }


def test_rate_limited_quota_report_does_not_stop_the_run(fake_client, make_config) -> None:
    config = make_config()
    fake_client.org_repos = ["org/a"]
    fake_client.add_repo("org/a")
    fake_client.fail("rate_limit", RateLimitedError("API rate limit exceeded"))
    sleeps: list[float] = []

    state, _ = _run(config, fake_client, sleeps)

    assert state.outcomes == {"org/a": "created"}
    assert len(fake_client.ops("rate_limit")) == 3
    assert sleeps == []
