"""
Tariff Comparison Engine - expiry risk, carrier blockers and coverage analysis.

All functions are pure: they read tariff/carrier collections already loaded
in memory and take `today` explicitly. Missing optional data (no expiry date,
unknown carrier, empty lists) takes its own branch and never raises.

- Risk: days until expiry -> critical / high / medium / low / none
- Blockers: carriers locked by an active Customer Direct tariff
- Opportunities: Customer Direct tariffs expiring inside a window
- Metrics: counts by ownership type and expiry bucket
- Competitiveness: blanket / CSP coverage relative to direct tariffs
"""

from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from app.models.tariff import OWNERSHIP_TYPES
from app.services.tariff_records import (
    days_until_expiry,
    ensure_list,
    get_field,
    index_by_id,
    parse_date,
)

# Risk thresholds (days until expiry, inclusive upper bounds)
HIGH_RISK_DAYS = 30
MEDIUM_RISK_DAYS = 60
LOW_RISK_DAYS = 90

# Blanket coverage thresholds (percent of direct tariff count)
LOW_BLANKET_COVERAGE_PCT = 30
STRONG_BLANKET_COVERAGE_PCT = 60

MAX_RECOMMENDED_TARGETS = 10


@dataclass
class RiskAssessment:
    level: str  # unknown, critical, high, medium, low, none
    message: str


@dataclass
class CarrierBlocker:
    carrier_id: str
    carrier_name: Optional[str]
    carrier_scac: Optional[str]
    tariff_id: str
    tariff_ref: Optional[str]
    expiry_date: Optional[date]
    days_until_expiry: Optional[int]
    is_active: bool
    reason: str


@dataclass
class ExpirationOpportunity:
    tariff_id: str
    tariff_ref: Optional[str]
    carrier_id: Optional[str]
    carrier_name: str
    carrier_scac: Optional[str]
    expiry_date: date
    days_until_expiry: int
    priority: str  # high, medium, low
    action: str


def assess_risk_level(tariff: Any, today: date) -> RiskAssessment:
    """Classify a tariff by how close it is to expiry."""
    days = days_until_expiry(tariff, today)

    if days is None:
        return RiskAssessment(level="unknown", message="No expiry date set")
    if days <= 0:
        return RiskAssessment(level="critical", message="Tariff has expired")
    if days <= HIGH_RISK_DAYS:
        return RiskAssessment(level="high", message="Expires within 30 days")
    if days <= MEDIUM_RISK_DAYS:
        return RiskAssessment(level="medium", message="Expires within 60 days")
    if days <= LOW_RISK_DAYS:
        return RiskAssessment(level="low", message="Expires within 90 days")
    return RiskAssessment(level="none", message="No immediate risk")


def _carrier_for(tariff: Any, carriers_by_id: dict) -> Optional[Any]:
    carrier_id = get_field(tariff, "carrier_id")
    if carrier_id is None:
        # Multi-carrier rows: the first listed carrier owns the agreement
        listed = ensure_list(get_field(tariff, "carrier_ids"))
        carrier_id = listed[0] if listed else None
    if carrier_id is None:
        return None
    return carriers_by_id.get(str(carrier_id))


def identify_carrier_blockers(
    customer_direct_tariffs: List[Any],
    carriers: List[Any],
    today: date,
) -> List[CarrierBlocker]:
    """
    Carriers that cannot be targeted in a CSP because the customer holds an
    active direct tariff with them. Tariffs with no expiry date never lapse,
    so they always block; a tariff past (or on) its expiry date never does.
    """
    carriers_by_id = index_by_id(carriers)
    blockers = []

    for tariff in ensure_list(customer_direct_tariffs):
        carrier = _carrier_for(tariff, carriers_by_id)
        if carrier is None:
            continue

        days = days_until_expiry(tariff, today)
        is_active = days is None or days > 0
        if not is_active:
            continue

        if days is None:
            reason = "Active Customer Direct tariff (no expiry date)"
        else:
            reason = f"Active Customer Direct tariff (expires in {days} days)"

        blockers.append(CarrierBlocker(
            carrier_id=str(get_field(carrier, "id")),
            carrier_name=get_field(carrier, "name"),
            carrier_scac=get_field(carrier, "scac_code"),
            tariff_id=str(get_field(tariff, "id")),
            tariff_ref=get_field(tariff, "tariff_reference_id"),
            expiry_date=parse_date(get_field(tariff, "expiry_date")),
            days_until_expiry=days,
            is_active=True,
            reason=reason,
        ))

    return blockers


def _priority_for(days: int) -> str:
    if days <= HIGH_RISK_DAYS:
        return "high"
    if days <= MEDIUM_RISK_DAYS:
        return "medium"
    return "low"


def find_expiration_opportunities(
    customer_direct_tariffs: List[Any],
    carriers: List[Any],
    today: date,
    days_window: int = LOW_RISK_DAYS,
) -> List[ExpirationOpportunity]:
    """Direct tariffs expiring within the window, soonest first."""
    carriers_by_id = index_by_id(carriers)
    opportunities = []

    for tariff in ensure_list(customer_direct_tariffs):
        days = days_until_expiry(tariff, today)
        if days is None or not (0 < days <= days_window):
            continue

        carrier = _carrier_for(tariff, carriers_by_id)
        carrier_name = get_field(carrier, "name")
        expiry = parse_date(get_field(tariff, "expiry_date"))
        carrier_id = get_field(tariff, "carrier_id")

        opportunities.append(ExpirationOpportunity(
            tariff_id=str(get_field(tariff, "id")),
            tariff_ref=get_field(tariff, "tariff_reference_id"),
            carrier_id=str(carrier_id) if carrier_id else None,
            carrier_name=carrier_name or "Unknown",
            carrier_scac=get_field(carrier, "scac_code"),
            expiry_date=expiry,
            days_until_expiry=days,
            priority=_priority_for(days),
            action=f"Plan CSP outreach for {carrier_name or 'carrier'} before {expiry.strftime('%b %d, %Y')}",
        ))

    # sorted() is stable, ties keep input order
    return sorted(opportunities, key=lambda o: o.days_until_expiry)


def calculate_tariff_metrics(tariffs: List[Any], today: date) -> Dict[str, Any]:
    """
    Aggregate counts for a tariff list.

    `active` / `expired` are date based: a tariff with an expiry date in the
    future counts as active, one on or past its expiry date as expired.
    Tariffs without an expiry date only count in `total` and `by_ownership`.
    """
    tariffs = ensure_list(tariffs)
    metrics = {
        "total": len(tariffs),
        "by_ownership": {ownership: 0 for ownership in OWNERSHIP_TYPES},
        "expiring": {
            "next_30_days": 0,
            "next_60_days": 0,
            "next_90_days": 0,
        },
        "active": 0,
        "expired": 0,
    }

    for tariff in tariffs:
        ownership = get_field(tariff, "ownership_type", "unknown")
        metrics["by_ownership"][ownership] = metrics["by_ownership"].get(ownership, 0) + 1

        days = days_until_expiry(tariff, today)
        if days is None:
            continue

        if days > 0:
            metrics["active"] += 1
            if days <= HIGH_RISK_DAYS:
                metrics["expiring"]["next_30_days"] += 1
            if days <= MEDIUM_RISK_DAYS:
                metrics["expiring"]["next_60_days"] += 1
            if days <= LOW_RISK_DAYS:
                metrics["expiring"]["next_90_days"] += 1
        else:
            metrics["expired"] += 1

    return metrics


def _percent(part: int, whole: int) -> int:
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def analyze_tariff_competitiveness(
    customer_direct_tariffs: List[Any],
    blanket_tariffs: List[Any],
    csp_tariffs: List[Any],
) -> Dict[str, Any]:
    """Blanket and CSP coverage as a percentage of the direct tariff count."""
    direct = ensure_list(customer_direct_tariffs)
    blanket = ensure_list(blanket_tariffs)
    csp = ensure_list(csp_tariffs)

    # No direct tariffs: compare against 1 rather than divide by zero
    denominator = len(direct) or 1

    analysis = {
        "total_direct_tariffs": len(direct),
        "total_blanket_tariffs": len(blanket),
        "total_csp_tariffs": len(csp),
        "blanket_coverage_rate": _percent(len(blanket), denominator),
        "csp_coverage_rate": _percent(len(csp), denominator),
        "recommendations": [],
    }

    rate = analysis["blanket_coverage_rate"]
    if rate < LOW_BLANKET_COVERAGE_PCT:
        analysis["recommendations"].append({
            "type": "opportunity",
            "message": f"Low blanket coverage ({rate}%). Consider expanding blanket programs.",
            "priority": "high",
        })
    if rate > STRONG_BLANKET_COVERAGE_PCT:
        analysis["recommendations"].append({
            "type": "success",
            "message": f"Strong blanket adoption ({rate}%). Customer is well-positioned.",
            "priority": "low",
        })

    return analysis


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


def generate_insights(
    customer_direct_tariffs: List[Any],
    blanket_tariffs: List[Any],
    csp_tariffs: List[Any],
    carriers: List[Any],
    today: date,
) -> List[Dict[str, Any]]:
    """
    Dashboard insight cards for one customer, in display order:
    blockers, CSP opportunities, blanket analysis, recommended targets.
    """
    carriers = ensure_list(carriers)
    insights = []

    blockers = identify_carrier_blockers(customer_direct_tariffs, carriers, today)
    if blockers:
        names = ", ".join(b.carrier_scac or b.carrier_name or b.carrier_id for b in blockers)
        insights.append({
            "type": "carrier_blockers",
            "title": "Carrier Blockers Identified",
            "message": (
                f"{_plural(len(blockers), 'carrier')} cannot be competitively bid "
                f"due to Customer Direct tariffs: {names}"
            ),
            "data": [asdict(b) for b in blockers],
            "severity": "warning",
        })

    opportunities = find_expiration_opportunities(customer_direct_tariffs, carriers, today, LOW_RISK_DAYS)
    if opportunities:
        high_priority = [o for o in opportunities if o.priority == "high"]
        message = f"{_plural(len(opportunities), 'Customer Direct tariff')} expiring in next 90 days"
        if high_priority:
            message += f". {len(high_priority)} high priority"
        insights.append({
            "type": "expiration_opportunities",
            "title": "CSP Opportunities",
            "message": message,
            "data": [asdict(o) for o in opportunities],
            "severity": "high" if high_priority else "medium",
        })

    competitiveness = analyze_tariff_competitiveness(customer_direct_tariffs, blanket_tariffs, csp_tariffs)
    if competitiveness["recommendations"]:
        first = competitiveness["recommendations"][0]
        insights.append({
            "type": "competitiveness_analysis",
            "title": "Blanket vs Direct Analysis",
            "message": first["message"],
            "data": competitiveness,
            "severity": first["priority"],
        })

    blocked_ids = {b.carrier_id for b in blockers}
    available = [c for c in carriers if str(get_field(c, "id")) not in blocked_ids]
    if available:
        insights.append({
            "type": "recommended_targets",
            "title": "Recommended CSP Targets",
            "message": f"{_plural(len(available), 'carrier')} available for next CSP event",
            "data": [
                {"id": str(get_field(c, "id")), "name": get_field(c, "name"), "scac_code": get_field(c, "scac_code")}
                for c in available[:MAX_RECOMMENDED_TARGETS]
            ],
            "severity": "info",
        })

    return insights


def compare_tariff_to_alternatives(target: Any, alternatives: List[Any]) -> Dict[str, Any]:
    alternatives = ensure_list(alternatives)
    comparison = {
        "target_tariff": {
            "id": str(get_field(target, "id")),
            "ref": get_field(target, "tariff_reference_id"),
            "type": get_field(target, "ownership_type"),
        },
        "alternatives": [
            {
                "id": str(get_field(alt, "id")),
                "ref": get_field(alt, "tariff_reference_id"),
                "type": get_field(alt, "ownership_type"),
                "comparison": "comparable",
            }
            for alt in alternatives
        ],
    }

    if alternatives:
        comparison["recommendation"] = (
            f"{_plural(len(alternatives), 'alternative tariff')} available for comparison"
        )
    else:
        comparison["recommendation"] = "No alternative tariffs available for comparison"

    return comparison
