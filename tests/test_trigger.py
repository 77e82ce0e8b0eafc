from __future__ import annotations

from quartoship.config import Config, TriggerConfig
from quartoship.trigger import TriggerEvent, evaluate_trigger


def _push(ref: str) -> TriggerEvent:
    return TriggerEvent(name="push", ref=ref, sha="abc", repository="owner/blog")


def test_push_to_primary_branch_runs() -> None:
    decision = evaluate_trigger(_push("refs/heads/main"), Config())

    assert decision.should_run is True


def test_push_to_other_branch_is_ignored() -> None:
    decision = evaluate_trigger(_push("refs/heads/feature"), Config())

    assert decision.should_run is False
    assert "feature" in decision.reason


def test_tag_push_is_ignored() -> None:
    decision = evaluate_trigger(_push("refs/tags/v1.0"), Config())

    assert decision.should_run is False


def test_other_events_do_not_trigger() -> None:
    for name in ("pull_request", "schedule", "workflow_dispatch"):
        event = TriggerEvent(name=name, ref="refs/heads/main")
        assert evaluate_trigger(event, Config()).should_run is False


def test_configured_branch_is_respected() -> None:
    config = Config(trigger=TriggerConfig(branch="publish"))

    assert evaluate_trigger(_push("refs/heads/publish"), config).should_run is True
    assert evaluate_trigger(_push("refs/heads/main"), config).should_run is False


def test_from_env_reads_github_variables() -> None:
    event = TriggerEvent.from_env(
        {
            "GITHUB_EVENT_NAME": "push",
            "GITHUB_REF": "refs/heads/main",
            "GITHUB_SHA": "deadbeef",
            "GITHUB_REPOSITORY": "owner/blog",
        }
    )

    assert event.name == "push"
    assert event.branch == "main"
    assert event.sha == "deadbeef"
    assert event.repository == "owner/blog"


def test_local_runs_need_explicit_opt_in() -> None:
    event = TriggerEvent.from_env({})

    assert event.is_local
    assert evaluate_trigger(event, Config()).should_run is False
    assert evaluate_trigger(event, Config(), allow_local=True).should_run is True
