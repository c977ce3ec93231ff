"""
RuleBasedAdvisoryEngine - Reference advisory heuristics.

Single responsibility: turn a committed transition into a small set of
recommendations and risk flags. Recommendations are suggestions only; any
suggested action must still be submitted through the orchestrator.
"""

import logging
import threading
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from domain.enums import Priority
from domain.recommendations import Recommendation, Severity, SuggestedAction
from domain.records import Outcome, TransitionRecord
from .engine import AdvisoryEngine


DEFAULT_THRESHOLDS = {
    "margin_warning_percent": 15.0,
    "margin_critical_percent": 10.0,
    "deadline_warning_days": 3,
    "large_quote_value": 10_000.0,
    "freight_cost_warning": 500.0,
    "rework_warning_count": 2,
    "long_running_transitions": 20,
    "rejection_warning_count": 3,
}


def _stage_name(stage) -> str:
    return str(getattr(stage, "value", stage))


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


def _as_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class RuleBasedAdvisoryEngine(AdvisoryEngine):
    """
    Threshold-based recommendation engine.

    Keeps the latest recommendation set per instance; each notification
    recomputes it from the snapshot.
    """

    def __init__(self, thresholds: Optional[dict] = None, today=None):
        """
        Initialize engine.

        Args:
            thresholds: Overrides for DEFAULT_THRESHOLDS
            today: Optional callable returning today's date (for tests)
        """
        self.thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
        self._today = today or date.today
        self._latest: Dict[str, Tuple[Recommendation, ...]] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def notify_transition(self, snapshot, record: TransitionRecord) -> None:
        recommendations = tuple(self.analyze(snapshot))
        with self._lock:
            self._latest[snapshot.id] = recommendations

    def get_recommendations(self, instance_id: str) -> List[Recommendation]:
        return list(self._latest.get(instance_id, ()))

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, snapshot) -> List[Recommendation]:
        """Run every rule against a snapshot."""
        recommendations: List[Recommendation] = []
        for rule in (
            self._check_deadline,
            self._check_margin,
            self._check_quote_value,
            self._check_stock,
            self._check_rework,
            self._check_freight,
            self._check_history,
        ):
            recommendations.extend(rule(snapshot))
        return recommendations

    def _check_deadline(self, snapshot):
        rfq = snapshot.payload.get("rfq") or {}
        due = _as_date(rfq.get("requested_due_date"))
        if due is None or snapshot.priority.rank <= Priority.RUSH.rank:
            return []

        days_left = (due - self._today()).days
        if days_left >= self.thresholds["deadline_warning_days"]:
            return []

        return [Recommendation(
            kind="PRIORITY_UPGRADE",
            severity=Severity.HIGH,
            message=f"Customer requested delivery in {days_left} day(s); consider RUSH priority",
            suggested_action=SuggestedAction("SET_PRIORITY", {"priority": Priority.RUSH.name}),
        )]

    def _check_margin(self, snapshot):
        if _stage_name(snapshot.current_stage) != "QUOTE":
            return []
        margin = _as_float((snapshot.payload.get("quote") or {}).get("margin_percent"))
        if margin is None:
            return []

        if margin < self.thresholds["margin_critical_percent"]:
            return [Recommendation(
                kind="LOW_MARGIN",
                severity=Severity.CRITICAL,
                message=f"Quote margin {margin:.1f}% below critical threshold; review pricing or add surcharges",
                suggested_action=SuggestedAction("REVISE_QUOTE"),
            )]
        if margin < self.thresholds["margin_warning_percent"]:
            return [Recommendation(
                kind="LOW_MARGIN",
                severity=Severity.MEDIUM,
                message=f"Quote margin {margin:.1f}% below target",
            )]
        return []

    def _check_quote_value(self, snapshot):
        total = _as_float((snapshot.payload.get("quote") or {}).get("total_price"))
        if total is None or total <= self.thresholds["large_quote_value"]:
            return []
        return [Recommendation(
            kind="LARGE_ORDER",
            severity=Severity.LOW,
            message="Large order; a volume discount may help secure it",
        )]

    def _check_stock(self, snapshot):
        shortages = (snapshot.payload.get("allocation") or {}).get("shortages") or []
        if not shortages:
            return []
        return [Recommendation(
            kind="STOCK_SHORTAGE",
            severity=Severity.MEDIUM,
            message=f"{len(shortages)} line(s) with insufficient stock; check alternate locations or substitutions",
        )]

    def _check_rework(self, snapshot):
        rejects = sum(
            1 for r in snapshot.history
            if r.outcome == Outcome.COMMITTED and r.action == "REJECT_QC"
        )
        if rejects < self.thresholds["rework_warning_count"]:
            return []
        return [Recommendation(
            kind="REWORK_LOOP",
            severity=Severity.HIGH,
            message=f"Job failed QC {rejects} times; review process or material",
        )]

    def _check_freight(self, snapshot):
        if _stage_name(snapshot.current_stage) != "SHIP":
            return []
        cost = _as_float((snapshot.payload.get("shipment") or {}).get("estimated_cost"))
        if cost is None or cost <= self.thresholds["freight_cost_warning"]:
            return []
        return [Recommendation(
            kind="FREIGHT_OPTIMIZATION",
            severity=Severity.LOW,
            message="High freight cost; consider consolidation or customer pickup",
        )]

    def _check_history(self, snapshot):
        recommendations = []
        if len(snapshot.history) > self.thresholds["long_running_transitions"]:
            recommendations.append(Recommendation(
                kind="LONG_RUNNING",
                severity=Severity.LOW,
                message="Instance has many recorded transitions; review for efficiency",
            ))

        rejected = sum(1 for r in snapshot.history if r.outcome == Outcome.REJECTED)
        if rejected >= self.thresholds["rejection_warning_count"]:
            recommendations.append(Recommendation(
                kind="REPEATED_REJECTIONS",
                severity=Severity.MEDIUM,
                message=f"{rejected} rejected action(s) on this instance",
            ))
        return recommendations
