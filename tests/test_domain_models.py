"""
Unit tests for domain models.

Tests that all domain models validate correctly and are immutable.
"""

import pytest

from domain import (
    AdvisoryConfig,
    ExecutionConfig,
    HandlerFailure,
    HandlerSuccess,
    OriginChannel,
    Outcome,
    PipelineConfig,
    Priority,
    Role,
    SimulationConfig,
    TransitionRecord,
    TransitionResult,
)
from domain.errors import InvalidTransitionError
from orchestration.context import PipelineContext, freeze_payload, merge_payload


def make_record(sequence=1, outcome=Outcome.COMMITTED, reason=None):
    return TransitionRecord(
        sequence=sequence,
        from_stage="LEAD",
        to_stage="RFQ",
        action="QUALIFY",
        actor_role=Role.SALES,
        outcome=outcome,
        rejection_reason=reason,
    )


class TestPriority:
    """Tests for Priority."""

    def test_parse_names(self):
        """Test case-insensitive parsing."""
        assert Priority.parse("rush") == Priority.RUSH
        assert Priority.parse(" HOT ") == Priority.HOT
        assert Priority.parse(Priority.VIP) == Priority.VIP

    def test_parse_unknown_fails(self):
        """Test that unknown names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown priority"):
            Priority.parse("urgent-ish")

    def test_ranking(self):
        """Test urgency ordering and multipliers."""
        assert Priority.HOT.is_more_urgent_than(Priority.RUSH)
        assert not Priority.LOW.is_more_urgent_than(Priority.STANDARD)
        assert Priority.STANDARD.multiplier == 1.0
        assert str(Priority.VIP) == "VIP"


class TestTransitionRecord:
    """Tests for TransitionRecord."""

    def test_create_committed_record(self):
        """Test creating a committed record."""
        record = make_record()
        assert record.committed
        assert record.rejection_reason is None

    def test_rejected_requires_reason(self):
        """Test that rejected records carry a reason."""
        with pytest.raises(ValueError, match="require a rejection_reason"):
            make_record(outcome=Outcome.REJECTED)

    def test_committed_cannot_carry_reason(self):
        """Test that committed records have no rejection reason."""
        with pytest.raises(ValueError, match="cannot carry a rejection_reason"):
            make_record(reason="nope")

    def test_negative_sequence_fails(self):
        """Test that sequence numbers are non-negative."""
        with pytest.raises(ValueError, match="sequence must be non-negative"):
            make_record(sequence=-1)

    def test_record_is_immutable(self):
        """Test that records cannot be modified."""
        record = make_record()
        with pytest.raises(Exception):  # FrozenInstanceError
            record.action = "OTHER"

    def test_to_dict(self):
        """Test JSON-friendly conversion."""
        data = make_record().to_dict()
        assert data["action"] == "QUALIFY"
        assert data["actor_role"] == "SALES"
        assert data["outcome"] == "COMMITTED"


class TestResults:
    """Tests for handler and transition results."""

    def test_handler_failure_requires_reason(self):
        """Test that an empty failure reason is rejected."""
        with pytest.raises(ValueError, match="reason cannot be empty"):
            HandlerFailure("")

    def test_handler_success_defaults(self):
        """Test HandlerSuccess defaults."""
        success = HandlerSuccess()
        assert success.payload_delta == {}
        assert success.to_stage is None
        assert success.priority is None

    def test_failure_result(self):
        """Test failure result accessors and re-raising."""
        error = InvalidTransitionError("no rule", "id-1")
        result = TransitionResult.failure("id-1", "QUALIFY", error, stage="RFQ")

        assert not result.ok
        assert result.error_kind == "INVALID_TRANSITION"
        assert result.reason == "no rule"
        assert result.to_dict()["to_stage"] == "RFQ"
        with pytest.raises(InvalidTransitionError, match="no rule"):
            result.raise_for_error()

    def test_success_result(self):
        """Test success results pass through raise_for_error."""
        result = TransitionResult.success("id-1", "QUALIFY", "LEAD", "RFQ", {}, make_record())
        assert result.raise_for_error() is result
        assert result.error_kind is None


class TestPipelineContext:
    """Tests for PipelineContext versions."""

    def make_context(self, payload=None):
        return PipelineContext(
            id="id-1",
            origin_channel=OriginChannel.EMAIL,
            current_stage="LEAD",
            payload=freeze_payload(payload),
        )

    def test_with_record_checks_sequence(self):
        """Test that records must extend the history contiguously."""
        context = self.make_context()
        with pytest.raises(ValueError, match="does not follow history length"):
            context.with_record(make_record(sequence=3))

    def test_with_commit_returns_new_version(self):
        """Test that commits never mutate the previous version."""
        context = self.make_context({"contact": {"name": "A"}}).with_record(make_record(sequence=0))
        updated = context.with_commit("RFQ", {"contact": {"email": "a@b.com"}}, make_record(), Priority.RUSH)

        assert context.current_stage == "LEAD"
        assert context.priority == Priority.STANDARD
        assert updated.current_stage == "RFQ"
        assert updated.priority == Priority.RUSH
        assert updated.payload["contact"] == {"name": "A", "email": "a@b.com"}
        assert len(updated.history) == 2

    def test_with_commit_keeps_priority_by_default(self):
        """Test that omitting the priority keeps the current one."""
        context = self.make_context().with_record(make_record(sequence=0))
        assert context.with_commit("RFQ", {}, make_record()).priority == Priority.STANDARD

    def test_merge_payload_replaces_non_mappings(self):
        """Test that lists and scalars are replaced, mappings merged."""
        merged = merge_payload(
            {"rfq": {"lines": [1, 2], "due": "x"}, "n": 1},
            {"rfq": {"lines": [3]}, "n": 2},
        )
        assert merged == {"rfq": {"lines": [3], "due": "x"}, "n": 2}

    def test_summary(self):
        """Test summary counters."""
        context = self.make_context().with_record(make_record(sequence=0))
        summary = context.get_summary()
        assert summary["stage"] == "LEAD"
        assert summary["origin_channel"] == "EMAIL"
        assert summary["committed"] == 1
        assert summary["rejected"] == 0


class TestPipelineConfig:
    """Tests for configuration objects."""

    def test_defaults(self):
        """Test default configuration."""
        config = PipelineConfig()
        assert config.execution.handler_timeout_sec == 30.0
        assert config.advisory.enabled
        assert config.simulation.channel == OriginChannel.SIMULATION

    def test_from_dict(self):
        """Test loading from a YAML-shaped dictionary."""
        config = PipelineConfig.from_dict({
            "orchestrator": {"handler_timeout_sec": 2, "handler_workers": 3},
            "advisory": {"enabled": False, "queue_size": 10},
            "simulation": {"instances": 7, "channel": "web", "priority": "rush"},
            "run_metadata": {"run_name": "nightly"},
        })
        assert config.execution.handler_timeout_sec == 2.0
        assert config.execution.handler_workers == 3
        assert not config.advisory.enabled
        assert config.advisory.queue_size == 10
        assert config.simulation.instances == 7
        assert config.simulation.channel == OriginChannel.WEB
        assert config.simulation.priority == Priority.RUSH
        assert config.run_name == "nightly"

    def test_from_empty_dict(self):
        """Test that a missing file body falls back to defaults."""
        assert PipelineConfig.from_dict(None) == PipelineConfig()

    def test_invalid_timeout_fails(self):
        """Test that a non-positive timeout raises ValueError."""
        with pytest.raises(ValueError, match="handler_timeout_sec must be positive"):
            ExecutionConfig(handler_timeout_sec=0)

    def test_invalid_queue_size_fails(self):
        """Test advisory queue validation."""
        with pytest.raises(ValueError, match="queue_size must be positive"):
            AdvisoryConfig(queue_size=0)

    def test_invalid_simulation_fails(self):
        """Test simulation validation."""
        with pytest.raises(ValueError, match="instances must be positive"):
            SimulationConfig(instances=0)

    def test_invalid_channel_fails(self):
        """Test that an unknown channel is rejected at load time."""
        with pytest.raises(ValueError):
            PipelineConfig.from_dict({"simulation": {"channel": "fax"}})

    def test_empty_run_name_fails(self):
        """Test that run_name is required."""
        with pytest.raises(ValueError, match="run_name cannot be empty"):
            PipelineConfig(run_name="")

    def test_config_is_immutable(self):
        """Test that configuration cannot be modified."""
        config = PipelineConfig()
        with pytest.raises(Exception):  # FrozenInstanceError
            config.run_name = "other"
