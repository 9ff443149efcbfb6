"""
Unit tests for ABTestController.

Tests cover:
- Starting experiments and the initial arm assignment
- Metric recording semantics
- Verdicts, scoring and expiry
- Live traffic through the router
"""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest

from switchover.config import ExperimentConfig
from switchover.experiments import (
    ABTestController,
    ArmResult,
    ExperimentResults,
    arm_score,
    compute_verdict,
)
from switchover.observability import MockTracer
from switchover.routing import BackendTarget, SwitchRegistry
from switchover.testing import RoutingTestHarness


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def controller(registry: SwitchRegistry, clock: FakeClock) -> ABTestController:
    return ABTestController(
        registry, rng=random.Random(7), clock=clock, enable_tracing=False
    )


def _results(legacy: ArmResult, rest: ArmResult) -> ExperimentResults:
    return ExperimentResults(
        experiment_id="exp",
        operation="getTeams",
        duration_seconds=1.0,
        legacy=legacy,
        rest=rest,
    )


class TestStart:
    """Tests for starting an experiment."""

    def test_full_split_assigns_rest_with_experiment_id(
        self, controller: ABTestController, registry: SwitchRegistry
    ):
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=1.0))

        assert registry.get_status("getTeams") == BackendTarget.REST
        record = registry.history("getTeams")[-1]
        assert record.experiment_id == experiment_id
        assert record.from_target == BackendTarget.LEGACY

    def test_zero_split_keeps_legacy(
        self, controller: ABTestController, registry: SwitchRegistry
    ):
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=0.0))

        assert registry.get_status("getTeams") == BackendTarget.LEGACY
        assert controller.active_experiment_for("getTeams").id == experiment_id
        assert controller.active_experiment_for("getTeams").initial_arm == BackendTarget.LEGACY

    def test_seeded_draws_are_reproducible(self, clock: FakeClock):
        arms = []
        for _ in range(2):
            registry = SwitchRegistry(enable_tracing=False)
            controller = ABTestController(
                registry, rng=random.Random(42), clock=clock, enable_tracing=False
            )
            ops = [f"op{i}" for i in range(10)]
            for op in ops:
                controller.start(op, ExperimentConfig(traffic_split=0.5))
            arms.append([registry.get_status(op) for op in ops])

        assert arms[0] == arms[1]

    def test_duplicate_start_raises(self, controller: ABTestController):
        controller.start("getTeams")

        with pytest.raises(ValueError, match="already has an active experiment"):
            controller.start("getTeams")

    def test_default_config(self, controller: ABTestController, clock: FakeClock):
        controller.start("getTeams")

        experiment = controller.active_experiment_for("getTeams")
        assert experiment.traffic_split == 0.5
        assert experiment.end_time == clock.now + timedelta(hours=1)
        assert experiment.metrics == ("latency", "error", "success")

    def test_start_emits_span(self, registry: SwitchRegistry, clock: FakeClock):
        tracer = MockTracer()
        controller = ABTestController(registry, clock=clock, tracer=tracer)

        controller.start("getTeams")

        assert "switchover.experiment.start" in tracer.span_names


class TestRecordMetric:
    """Tests for metric recording."""

    def test_counts_and_latency(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")

        controller.record_metric(experiment_id, "rest", "latency", 40.0)
        controller.record_metric(experiment_id, "rest", "latency", 60.0)
        controller.record_metric(experiment_id, "rest", "success")
        controller.record_metric(experiment_id, "rest", "error")
        controller.record_metric(experiment_id, BackendTarget.LEGACY, "success")

        results = controller.results(experiment_id)
        assert results.rest.requests == 2
        assert results.rest.errors == 1
        assert results.rest.error_rate == 0.5
        assert results.rest.avg_latency == 50.0
        assert results.legacy.requests == 1
        assert results.legacy.errors == 0

    def test_negative_latency_is_clamped(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")

        controller.record_metric(experiment_id, "legacy", "latency", -10.0)
        controller.record_metric(experiment_id, "legacy", "success")

        assert controller.results(experiment_id).legacy.avg_latency == 0.0

    def test_unknown_kind_raises(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")

        with pytest.raises(ValueError, match="Unknown metric kind"):
            controller.record_metric(experiment_id, "rest", "throughput")

    def test_secondary_is_not_an_arm(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")

        with pytest.raises(ValueError, match="not an experiment arm"):
            controller.record_metric(experiment_id, "secondary", "success")

    def test_unknown_experiment_is_ignored(self, controller: ABTestController):
        controller.record_metric("missing", "rest", "success")

        assert controller.results("missing") is None

    def test_unconfigured_kind_is_ignored(self, controller: ABTestController):
        experiment_id = controller.start(
            "getTeams", ExperimentConfig(metrics=("success",))
        )

        controller.record_metric(experiment_id, "rest", "latency", 500.0)
        controller.record_metric(experiment_id, "rest", "error")
        controller.record_metric(experiment_id, "rest", "success")

        results = controller.results(experiment_id)
        assert results.rest.requests == 1
        assert results.rest.errors == 0
        assert results.rest.avg_latency == 0.0

    def test_results_duration_follows_clock(
        self, controller: ABTestController, clock: FakeClock
    ):
        experiment_id = controller.start("getTeams")
        clock.advance(90)

        assert controller.results(experiment_id).duration_seconds == 90.0


class TestVerdict:
    """Tests for scoring and ending experiments."""

    def test_faster_arm_wins(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")
        for _ in range(4):
            controller.record_metric(experiment_id, "rest", "latency", 50.0)
            controller.record_metric(experiment_id, "rest", "success")
            controller.record_metric(experiment_id, "legacy", "latency", 100.0)
            controller.record_metric(experiment_id, "legacy", "success")

        verdict = controller.end(experiment_id)

        assert verdict.winner == BackendTarget.REST
        assert verdict.confidence == pytest.approx(0.5)
        assert verdict.recommendation == "Migrate to REST API"
        assert verdict.to_dict()["winner"] == "rest"
        assert verdict.results.rest.requests == 4

    def test_rest_wins_against_empty_legacy_arm(
        self, controller: ABTestController, registry: SwitchRegistry
    ):
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=1.0))
        assert registry.get_status("getTeams") == BackendTarget.REST

        for _ in range(10):
            controller.record_metric(experiment_id, "rest", "latency", 50.0)
            controller.record_metric(experiment_id, "rest", "success")

        results = controller.results(experiment_id)
        assert results.rest.avg_latency == 50.0
        assert results.rest.error_rate == 0.0
        assert controller.end(experiment_id).winner == BackendTarget.REST

    def test_end_removes_experiment(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")

        assert controller.end(experiment_id) is not None
        assert controller.end(experiment_id) is None
        assert controller.active_experiments() == []

    def test_end_leaves_registry_untouched(
        self, controller: ABTestController, registry: SwitchRegistry
    ):
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=1.0))
        controller.record_metric(experiment_id, "legacy", "success")

        verdict = controller.end(experiment_id)

        assert verdict.winner == BackendTarget.LEGACY
        assert registry.get_status("getTeams") == BackendTarget.REST

    def test_end_unknown_returns_none(self, controller: ABTestController):
        assert controller.end("missing") is None

    def test_empty_experiment_keeps_legacy(self, controller: ABTestController):
        experiment_id = controller.start("getTeams")

        verdict = controller.end(experiment_id)

        assert verdict.winner == BackendTarget.LEGACY
        assert verdict.confidence == 0.0
        assert verdict.recommendation == "Keep on legacy backend"

    def test_arm_score(self):
        assert arm_score(ArmResult(requests=0, errors=0, avg_latency=0.0, error_rate=0.0)) == 0.0
        assert arm_score(
            ArmResult(requests=10, errors=5, avg_latency=50.0, error_rate=0.5)
        ) == pytest.approx(0.01)
        # Latency below 1ms is scored as 1ms
        assert arm_score(ArmResult(requests=1, errors=0, avg_latency=0.2, error_rate=0.0)) == 1.0

    def test_tie_goes_to_legacy(self):
        arm = ArmResult(requests=3, errors=0, avg_latency=20.0, error_rate=0.0)

        winner, confidence = compute_verdict(_results(arm, arm))

        assert winner == BackendTarget.LEGACY
        assert confidence == 0.0

    def test_errors_outweigh_speed(self):
        legacy = ArmResult(requests=10, errors=0, avg_latency=100.0, error_rate=0.0)
        rest = ArmResult(requests=10, errors=10, avg_latency=10.0, error_rate=1.0)

        winner, confidence = compute_verdict(_results(legacy, rest))

        assert winner == BackendTarget.LEGACY
        assert confidence == 1.0

    def test_verdict_is_pure(self):
        legacy = ArmResult(requests=5, errors=1, avg_latency=80.0, error_rate=0.2)
        rest = ArmResult(requests=5, errors=0, avg_latency=90.0, error_rate=0.0)
        results = _results(legacy, rest)

        assert compute_verdict(results) == compute_verdict(results)


class TestExpiry:
    """Tests for experiment duration."""

    def test_end_expired(self, controller: ABTestController, clock: FakeClock):
        short = controller.start("getTeams", ExperimentConfig(duration_seconds=60))
        controller.start("getUsers", ExperimentConfig(duration_seconds=600))

        clock.advance(61)
        verdicts = controller.end_expired()

        assert [v.experiment_id for v in verdicts] == [short]
        assert controller.active_experiment_for("getTeams") is None
        assert controller.active_experiment_for("getUsers") is not None

    def test_select_arm_stops_after_expiry(
        self, controller: ABTestController, clock: FakeClock
    ):
        experiment_id = controller.start(
            "getTeams", ExperimentConfig(duration_seconds=60, traffic_split=1.0)
        )

        assert controller.select_arm("getTeams") == (experiment_id, BackendTarget.REST)
        clock.advance(60)
        assert controller.select_arm("getTeams") is None

    def test_select_arm_without_experiment(self, controller: ABTestController):
        assert controller.select_arm("getTeams") is None


class TestRouterIntegration:
    """Live calls routed through an experiment."""

    @pytest.mark.asyncio
    async def test_router_draws_arm_and_reports_back(self, harness: RoutingTestHarness):
        controller = ABTestController(harness.registry, enable_tracing=False)
        harness.router.experiments = controller
        harness.rest.set_response("getTeams", ["rest"])
        harness.legacy.set_response("getTeams", ["legacy"])
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=1.0))

        for _ in range(3):
            assert await harness.router.execute("getTeams") == ["rest"]

        results = controller.results(experiment_id)
        assert results.rest.requests == 3
        assert results.rest.errors == 0
        assert results.legacy.requests == 0
        assert harness.legacy.call_count == 0

    @pytest.mark.asyncio
    async def test_failed_call_counts_as_error(self, harness: RoutingTestHarness):
        controller = ABTestController(harness.registry, enable_tracing=False)
        harness.router.experiments = controller
        harness.rest.fail_with(RuntimeError("rest down"))
        harness.legacy.set_response("getTeams", ["legacy"])
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=1.0))

        assert await harness.router.execute("getTeams") == ["legacy"]

        results = controller.results(experiment_id)
        assert results.rest.requests == 1
        assert results.rest.errors == 1

    @pytest.mark.asyncio
    async def test_force_flag_bypasses_experiment(self, harness: RoutingTestHarness):
        controller = ABTestController(harness.registry, enable_tracing=False)
        harness.router.experiments = controller
        experiment_id = controller.start("getTeams", ExperimentConfig(traffic_split=1.0))

        await harness.router.execute("getTeams", force_legacy=True)

        assert harness.legacy.call_count == 1
        assert controller.results(experiment_id).legacy.requests == 0
