"""Test recovery summaries and manual state repair."""

from pathlib import Path

import pytest

from monopub.errors import ErrorKind, PackageNotFoundError
from monopub.graph import Package, build_graph
from monopub.state import (
    ErrorInfo,
    PackagePublishState,
    PackageStatus,
    PublishState,
    RecoveryController,
    StateStore,
    summarize,
    validate_state,
)


@pytest.fixture
def store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "state.json")


@pytest.fixture
def failed_run(diamond_graph) -> PublishState:
    """a published, b failed, c published, d skipped because of b."""
    return PublishState(
        packages={
            "a": PackagePublishState(status=PackageStatus.PUBLISHED, version="1.0.0"),
            "b": PackagePublishState(
                status=PackageStatus.FAILED,
                error=ErrorInfo(kind=ErrorKind.BUILD_FAILED, message="build broke"),
                attempts=1,
            ),
            "c": PackagePublishState(status=PackageStatus.PUBLISHED),
            "d": PackagePublishState(
                status=PackageStatus.SKIPPED, reason="blocked by failed dependency b"
            ),
        }
    )


@pytest.fixture
def controller(store: StateStore, diamond_graph) -> RecoveryController:
    return RecoveryController(store, diamond_graph)


def test_summarize(failed_run: PublishState):
    summary = summarize(failed_run)

    assert summary.needs_attention
    assert summary.names() == ["b", "d"]
    assert summary.published == 2
    assert summary.total == 4
    assert summary.failed[0].error_kind == ErrorKind.BUILD_FAILED
    assert summary.failed[0].reason == "build broke"
    assert summary.skipped[0].reason == "blocked by failed dependency b"


def test_summarize_interrupted_package():
    state = PublishState(
        packages={"a": PackagePublishState(status=PackageStatus.PENDING, needs_recovery=True)}
    )

    summary = summarize(state)

    assert summary.names() == ["a"]
    assert "interrupted" in summary.entries[0].reason


def test_summarize_clean_run():
    state = PublishState(packages={"a": PackagePublishState(status=PackageStatus.PUBLISHED)})
    assert not summarize(state).needs_attention


def test_mark_completed(controller, failed_run, store):
    controller.mark_completed(failed_run, ["b"])

    assert failed_run.packages["b"].status == PackageStatus.PUBLISHED
    assert failed_run.packages["b"].error is None
    assert store.load().packages["b"].status == PackageStatus.PUBLISHED


def test_mark_completed_by_directory_name(store):
    graph = build_graph(
        [Package(name="acme-core", version="1.0.0", path=Path("/repo/packages/core"))]
    )
    state = PublishState(packages={"acme-core": PackagePublishState(status=PackageStatus.FAILED)})

    RecoveryController(store, graph).mark_completed(state, ["core"])

    assert state.packages["acme-core"].status == PackageStatus.PUBLISHED


def test_unknown_package_raises(controller, failed_run):
    with pytest.raises(PackageNotFoundError, match="zzz"):
        controller.mark_completed(failed_run, ["zzz"])


def test_mark_failed_skips_dependents(controller, store):
    state = PublishState(packages={name: PackagePublishState() for name in "abcd"})
    state.packages["c"].status = PackageStatus.PUBLISHED

    controller.mark_failed(state, ["a"], "registry was down")

    assert state.packages["a"].status == PackageStatus.FAILED
    assert state.packages["a"].error.message == "registry was down"
    assert state.packages["b"].status == PackageStatus.SKIPPED
    assert state.packages["b"].reason == "blocked by failed dependency a"
    assert state.packages["c"].status == PackageStatus.PUBLISHED
    assert state.packages["d"].status == PackageStatus.SKIPPED


def test_skip_packages(controller):
    state = PublishState(packages={name: PackagePublishState() for name in "abcd"})

    controller.skip_packages(state, ["b"])

    assert state.packages["b"].status == PackageStatus.SKIPPED
    assert state.packages["d"].status == PackageStatus.SKIPPED
    assert state.packages["a"].status == PackageStatus.PENDING
    assert state.packages["c"].status == PackageStatus.PENDING


def test_reset_package_resets_skipped_dependents(controller, failed_run):
    controller.reset_package(failed_run, "b")

    assert failed_run.packages["b"].status == PackageStatus.PENDING
    assert failed_run.packages["b"].error is None
    assert failed_run.packages["b"].attempts == 0
    assert failed_run.packages["d"].status == PackageStatus.PENDING
    assert failed_run.packages["a"].status == PackageStatus.PUBLISHED


def test_retry_failed(controller, failed_run):
    reset = controller.retry_failed(failed_run)

    assert reset == ["b", "d"]
    assert failed_run.names_with_status(PackageStatus.PENDING) == ["b", "d"]
    assert failed_run.names_with_status(PackageStatus.PUBLISHED) == ["a", "c"]


def test_retry_failed_keeps_manual_skips(controller):
    state = PublishState(
        packages={
            "a": PackagePublishState(status=PackageStatus.PUBLISHED),
            "b": PackagePublishState(status=PackageStatus.SKIPPED, reason="skipped manually"),
            "c": PackagePublishState(status=PackageStatus.PUBLISHED),
            "d": PackagePublishState(status=PackageStatus.PUBLISHED),
        }
    )

    assert controller.retry_failed(state) == []
    assert state.packages["b"].status == PackageStatus.SKIPPED


def test_skip_failed(controller, failed_run, store):
    skipped = controller.skip_failed(failed_run)

    assert skipped == ["b"]
    assert failed_run.packages["b"].status == PackageStatus.SKIPPED
    assert failed_run.packages["b"].error is None
    assert failed_run.packages["b"].reason == "skipped after failing (build_failed)"
    assert failed_run.packages["d"].reason == "blocked by skipped dependency b"
    assert failed_run.is_complete
    assert store.load().packages["b"].status == PackageStatus.SKIPPED


def test_skip_failed_is_not_undone_by_retry(controller, failed_run):
    controller.skip_failed(failed_run)

    assert controller.retry_failed(failed_run) == []
    assert failed_run.names_with_status(PackageStatus.SKIPPED) == ["b", "d"]


def test_skip_failed_without_failures(controller):
    state = PublishState(packages={name: PackagePublishState() for name in "abcd"})

    assert controller.skip_failed(state) == []
    assert state.names_with_status(PackageStatus.PENDING) == ["a", "b", "c", "d"]


def test_summary_suggestions(failed_run):
    failed_run.packages["c"] = PackagePublishState(
        status=PackageStatus.SKIPPED, reason="run stopped before c started", deferred=True
    )

    entries = {entry.name: entry for entry in summarize(failed_run).entries}

    assert entries["b"].suggestion == "Fix the error, then retry failed packages"
    assert entries["c"].suggestion == "Resume to publish it"
    assert entries["d"].suggestion == "Retry failed packages, then resume"


class TestValidateState:
    def test_consistent_state(self, diamond_graph, failed_run):
        result = validate_state(failed_run, diamond_graph)

        assert result.valid
        assert result.issues == []
        assert result.warnings == []

    def test_unknown_and_missing_packages(self, diamond_graph):
        state = PublishState(
            packages={
                "a": PackagePublishState(),
                "b": PackagePublishState(),
                "removed-pkg": PackagePublishState(),
            }
        )

        result = validate_state(state, diamond_graph)

        assert not result.valid
        assert result.issues == [
            "Packages not in the workspace: removed-pkg",
            "Missing packages: c, d",
        ]

    def test_published_before_dependency(self, diamond_graph):
        state = PublishState(
            packages={
                "a": PackagePublishState(status=PackageStatus.FAILED),
                "b": PackagePublishState(status=PackageStatus.PUBLISHED),
                "c": PackagePublishState(status=PackageStatus.PUBLISHING),
                "d": PackagePublishState(),
            }
        )

        result = validate_state(state, diamond_graph)

        assert result.valid
        assert result.warnings == [
            "b is published but its dependency a is not",
            "c was left publishing by an interrupted run",
        ]

    def test_controller_validate(self, controller, failed_run):
        del failed_run.packages["d"]

        assert controller.validate(failed_run).issues == ["Missing packages: d"]
