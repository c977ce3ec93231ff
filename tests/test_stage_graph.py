"""
Unit tests for the stage graph.

Tests construction-time validation, lookups and the service-center graph.
"""

import pytest

from domain.enums import Role
from domain.errors import GraphConfigurationError, InvalidTransitionError
from orchestration.stage_graph import StageGraph, TransitionRule, action_name
from orchestration.stages import (
    Action,
    Stage,
    TERMINAL_STAGES,
    build_service_center_graph,
    roles_impacted,
)


class TestTransitionRule:
    """Tests for TransitionRule."""

    def test_action_is_normalized(self):
        """Test that action names are stripped and upper-cased."""
        rule = TransitionRule("A", " go ", "B", "ROLE")
        assert rule.action == "GO"
        assert rule.key == ("A", "GO")

    def test_enum_action_is_normalized(self):
        """Test that string-valued enum actions become plain strings."""
        rule = TransitionRule(Stage.LEAD, Action.QUALIFY, Stage.RFQ, Role.SALES)
        assert rule.action == "QUALIFY"
        assert type(rule.action) is str

    def test_empty_action_fails(self):
        """Test that an empty action raises GraphConfigurationError."""
        with pytest.raises(GraphConfigurationError, match="action cannot be empty"):
            TransitionRule("A", "", "B", "ROLE")

    def test_non_callable_guard_fails(self):
        """Test that a non-callable guard is rejected."""
        with pytest.raises(GraphConfigurationError, match="must be callable"):
            TransitionRule("A", "GO", "B", "ROLE", guard="yes")

    def test_guard_allows(self):
        """Test guard evaluation against a payload."""
        rule = TransitionRule("A", "GO", "B", "ROLE", guard=lambda p: p.get("ok"))
        assert rule.guard_allows({"ok": True})
        assert not rule.guard_allows({})

    def test_self_loop(self):
        """Test self-loop detection."""
        assert TransitionRule("A", "EDIT", "A", "ROLE").is_self_loop
        assert not TransitionRule("A", "GO", "B", "ROLE").is_self_loop

    def test_action_name_helper(self):
        """Test action_name on strings and enums."""
        assert action_name("plan") == "PLAN"
        assert action_name(Action.PLAN) == "PLAN"


class TestStageGraphValidation:
    """Tests for graph construction invariants."""

    def test_duplicate_rule_fails(self):
        """Test that two rules for the same (stage, action) are rejected."""
        rules = [
            TransitionRule("A", "GO", "B", "ROLE"),
            TransitionRule("A", "go", "C", "ROLE"),
        ]
        with pytest.raises(GraphConfigurationError, match="Duplicate rule"):
            StageGraph(rules, entry_stage="A", terminal_stages={"B", "C"})

    def test_terminal_entry_fails(self):
        """Test that the entry stage cannot be terminal."""
        rules = [TransitionRule("A", "GO", "B", "ROLE")]
        with pytest.raises(GraphConfigurationError, match="cannot be terminal"):
            StageGraph(rules, entry_stage="A", terminal_stages={"A", "B"})

    def test_missing_entry_fails(self):
        """Test that an entry stage must be declared."""
        rules = [TransitionRule("A", "GO", "B", "ROLE")]
        with pytest.raises(GraphConfigurationError, match="entry_stage must be declared"):
            StageGraph(rules, entry_stage=None, terminal_stages={"B"})

    def test_terminal_with_outgoing_rule_fails(self):
        """Test that terminal stages accept no actions."""
        rules = [
            TransitionRule("A", "GO", "B", "ROLE"),
            TransitionRule("B", "BACK", "A", "ROLE"),
        ]
        with pytest.raises(GraphConfigurationError, match="has outgoing rules"):
            StageGraph(rules, entry_stage="A", terminal_stages={"B"})

    def test_dead_end_fails(self):
        """Test that a reachable non-terminal stage without rules is rejected."""
        rules = [
            TransitionRule("A", "GO", "B", "ROLE"),
            TransitionRule("A", "STOP", "END", "ROLE"),
        ]
        with pytest.raises(GraphConfigurationError, match="no outgoing rule"):
            StageGraph(rules, entry_stage="A", terminal_stages={"END"})

    def test_multiple_terminal_stages_allowed(self):
        """Test that several terminal stages may be declared."""
        rules = [
            TransitionRule("A", "FINISH", "DONE", "ROLE"),
            TransitionRule("A", "ABORT", "ABORTED", "ROLE"),
        ]
        graph = StageGraph(rules, entry_stage="A", terminal_stages={"DONE", "ABORTED"})
        assert graph.is_terminal("DONE")
        assert graph.is_terminal("ABORTED")
        assert not graph.is_terminal("A")


class TestStageGraphLookups:
    """Tests for graph queries."""

    def test_is_valid_transition(self, toy_graph):
        """Test rule lookup by (stage, action)."""
        rule = toy_graph.is_valid_transition("DRAFT", "submit")
        assert rule is not None
        assert rule.to_stage == "REVIEW"
        assert toy_graph.is_valid_transition("REVIEW", "SUBMIT") is None

    def test_required_role(self, toy_graph):
        """Test required role lookup."""
        assert toy_graph.required_role("DRAFT", "DISCARD") == "EDITOR"

    def test_required_role_unknown_fails(self, toy_graph):
        """Test that an unknown pair raises InvalidTransitionError."""
        with pytest.raises(InvalidTransitionError, match="No transition"):
            toy_graph.required_role("DONE", "SUBMIT")

    def test_actions_from_keeps_declaration_order(self, toy_graph):
        """Test that actions are listed in declaration order."""
        assert toy_graph.actions_from("DRAFT") == ["SUBMIT", "EDIT", "DISCARD"]
        assert toy_graph.actions_from("DONE") == []

    def test_primary_action(self, toy_graph):
        """Test that the first declared rule is the primary action."""
        assert toy_graph.primary_action("DRAFT").action == "SUBMIT"
        assert toy_graph.primary_action("DONE") is None

    def test_reachable_stages(self, toy_graph):
        """Test breadth-first reachability from the entry stage."""
        reachable = toy_graph.reachable_stages()
        assert reachable[0] == "DRAFT"
        assert set(reachable) == {"DRAFT", "REVIEW", "DISCARDED", "DONE"}

    def test_len_and_contains(self, toy_graph):
        """Test container protocol."""
        assert len(toy_graph) == 5
        assert ("DRAFT", "SUBMIT") in toy_graph


class TestServiceCenterGraph:
    """Tests for the declared service-center workflow."""

    @pytest.fixture
    def graph(self):
        return build_service_center_graph()

    def test_entry_and_terminals(self, graph):
        """Test entry stage and the two terminal stages."""
        assert graph.entry_stage == Stage.LEAD
        assert graph.terminal_stages == TERMINAL_STAGES
        assert Stage.ANALYTICS.is_terminal()
        assert Stage.CANCELLED.is_terminal()

    def test_every_stage_is_reachable(self, graph):
        """Test that every declared stage can be reached from LEAD."""
        assert set(graph.reachable_stages()) == set(Stage)

    def test_qualify_rule(self, graph):
        """Test (LEAD, QUALIFY) -> RFQ requiring SALES."""
        rule = graph.is_valid_transition(Stage.LEAD, Action.QUALIFY)
        assert rule.to_stage == Stage.RFQ
        assert rule.required_role == Role.SALES

    def test_no_rule_for_qualify_at_rfq(self, graph):
        """Test that QUALIFY is not valid from RFQ."""
        assert graph.is_valid_transition(Stage.RFQ, Action.QUALIFY) is None

    def test_set_priority_on_every_non_terminal_stage(self, graph):
        """Test that priority can be changed at every non-terminal stage."""
        for stage in Stage:
            rule = graph.is_valid_transition(stage, Action.SET_PRIORITY)
            if stage.is_terminal():
                assert rule is None
            else:
                assert rule is not None and rule.is_self_loop

    def test_qc_rework_loop(self, graph):
        """Test that QC rejection returns the job to the shop floor."""
        rule = graph.is_valid_transition(Stage.QC, Action.REJECT_QC)
        assert rule.to_stage == Stage.SHOP_FLOOR

    def test_guarded_rules(self, graph):
        """Test guards on the guarded happy-path rules."""
        build_quote = graph.is_valid_transition(Stage.RFQ, Action.BUILD_QUOTE)
        assert not build_quote.guard_allows({})
        assert build_quote.guard_allows({"rfq": {"lines": [{"quantity": 1}]}})

        convert = graph.is_valid_transition(Stage.QUOTE, Action.CONVERT_TO_ORDER)
        assert not convert.guard_allows({"quote": {"status": "DRAFT"}})
        assert convert.guard_allows({"quote": {"status": "ACCEPTED"}})

        release = graph.is_valid_transition(Stage.PLANNING, Action.RELEASE_JOB)
        assert not release.guard_allows({"allocation": {"complete": False}})
        assert release.guard_allows({"allocation": {"complete": True}})

    def test_describe(self, graph):
        """Test JSON-friendly description."""
        description = graph.describe()
        assert description["entry_stage"] == "LEAD"
        assert description["terminal_stages"] == ["ANALYTICS", "CANCELLED"]
        lead = description["transitions"]["LEAD"]
        assert lead[0]["action"] == "QUALIFY"
        assert lead[0]["required_role"] == "SALES"

    def test_roles_impacted(self):
        """Test the stage to role impact map."""
        assert Role.FINANCE in roles_impacted(Stage.INVOICE)
        assert roles_impacted(Stage.CANCELLED) == ()
