"""
Tests for the tariff comparison engine (risk, blockers, opportunities,
metrics, competitiveness, insight cards).
"""
from datetime import date, timedelta

import pytest

from app.services.tariff_comparison import (
    analyze_tariff_competitiveness,
    assess_risk_level,
    calculate_tariff_metrics,
    compare_tariff_to_alternatives,
    find_expiration_opportunities,
    generate_insights,
    identify_carrier_blockers,
)

TODAY = date(2025, 1, 15)

CARRIERS = [
    {"id": "c1", "name": "Estes Express", "scac_code": "EXLA"},
    {"id": "c2", "name": "Old Dominion", "scac_code": "ODFL"},
    {"id": "c3", "name": "Saia", "scac_code": "SAIA"},
]


def tariff(tid, days=None, ownership="customer_direct", carrier_id="c1", **extra):
    record = {
        "id": tid,
        "tariff_reference_id": f"REF-{tid}",
        "ownership_type": ownership,
        "carrier_id": carrier_id,
        "expiry_date": TODAY + timedelta(days=days) if days is not None else None,
    }
    record.update(extra)
    return record


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "days, level",
    [
        (-5, "critical"),
        (0, "critical"),
        (1, "high"),
        (30, "high"),
        (31, "medium"),
        (60, "medium"),
        (61, "low"),
        (90, "low"),
        (91, "none"),
        (400, "none"),
    ],
)
def test_risk_level_boundaries(days, level):
    assert assess_risk_level(tariff("t", days), TODAY).level == level


def test_risk_without_expiry_is_unknown():
    risk = assess_risk_level(tariff("t"), TODAY)
    assert risk.level == "unknown"
    assert risk.message == "No expiry date set"


def test_risk_accepts_iso_strings():
    record = {"expiry_date": "2025-02-01"}
    assert assess_risk_level(record, TODAY).level == "high"


# ---------------------------------------------------------------------------
# Carrier blockers
# ---------------------------------------------------------------------------

def test_blockers_only_include_unexpired_direct_tariffs():
    tariffs = [
        tariff("live", 45, carrier_id="c1"),
        tariff("expired", -1, carrier_id="c2"),
        tariff("expires-today", 0, carrier_id="c3"),
    ]

    blockers = identify_carrier_blockers(tariffs, CARRIERS, TODAY)

    assert [b.tariff_id for b in blockers] == ["live"]
    blocker = blockers[0]
    assert blocker.carrier_id == "c1"
    assert blocker.carrier_scac == "EXLA"
    assert blocker.is_active is True
    assert blocker.reason == "Active Customer Direct tariff (expires in 45 days)"


def test_blocker_without_expiry_date_always_blocks():
    blockers = identify_carrier_blockers([tariff("open", None, carrier_id="c2")], CARRIERS, TODAY)

    assert len(blockers) == 1
    assert blockers[0].days_until_expiry is None
    assert blockers[0].reason == "Active Customer Direct tariff (no expiry date)"


def test_blockers_skip_unknown_carriers():
    tariffs = [tariff("ghost", 10, carrier_id="missing"), tariff("none", 10, carrier_id=None)]
    assert identify_carrier_blockers(tariffs, CARRIERS, TODAY) == []


def test_blockers_fall_back_to_first_listed_carrier():
    record = tariff("multi", 10, carrier_id=None, carrier_ids=["c3", "c1"])
    blockers = identify_carrier_blockers([record], CARRIERS, TODAY)
    assert [b.carrier_id for b in blockers] == ["c3"]


# ---------------------------------------------------------------------------
# Expiration opportunities
# ---------------------------------------------------------------------------

def test_opportunities_are_windowed_and_sorted_by_urgency():
    tariffs = [
        tariff("later", 75, carrier_id="c2"),
        tariff("soon", 10, carrier_id="c1"),
        tariff("mid", 45, carrier_id="c3"),
        tariff("outside", 120, carrier_id="c1"),
        tariff("expired", -3, carrier_id="c1"),
        tariff("open", None, carrier_id="c1"),
    ]

    opportunities = find_expiration_opportunities(tariffs, CARRIERS, TODAY)

    assert [o.tariff_id for o in opportunities] == ["soon", "mid", "later"]
    assert [o.priority for o in opportunities] == ["high", "medium", "low"]
    assert opportunities[0].action == "Plan CSP outreach for Estes Express before Jan 25, 2025"


def test_opportunity_with_unknown_carrier():
    opportunities = find_expiration_opportunities([tariff("t", 5, carrier_id="zzz")], CARRIERS, TODAY)

    assert opportunities[0].carrier_name == "Unknown"
    assert opportunities[0].action.startswith("Plan CSP outreach for carrier before")


def test_opportunity_window_is_inclusive():
    tariffs = [tariff("edge", 30), tariff("past-edge", 31)]
    opportunities = find_expiration_opportunities(tariffs, CARRIERS, TODAY, days_window=30)
    assert [o.tariff_id for o in opportunities] == ["edge"]


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def test_metrics_scenario():
    tariffs = [
        tariff("a", 20, ownership="customer_direct"),
        tariff("b", 50, ownership="rocket_csp"),
        tariff("c", 80, ownership="rocket_csp"),
        tariff("d", 200, ownership="rocket_blanket"),
        tariff("e", -10, ownership="customer_csp"),
        tariff("f", None, ownership="priority1_blanket"),
    ]

    metrics = calculate_tariff_metrics(tariffs, TODAY)

    assert metrics["total"] == 6
    assert metrics["by_ownership"] == {
        "customer_direct": 1,
        "rocket_csp": 2,
        "customer_csp": 1,
        "rocket_blanket": 1,
        "priority1_blanket": 1,
    }
    assert metrics["expiring"] == {"next_30_days": 1, "next_60_days": 2, "next_90_days": 3}
    assert metrics["active"] == 4
    assert metrics["expired"] == 1


def test_metrics_buckets_are_nested():
    tariffs = [tariff(str(d), d) for d in range(-5, 120, 7)]
    expiring = calculate_tariff_metrics(tariffs, TODAY)["expiring"]
    assert expiring["next_30_days"] <= expiring["next_60_days"] <= expiring["next_90_days"]


def test_metrics_for_empty_list():
    metrics = calculate_tariff_metrics([], TODAY)
    assert metrics["total"] == 0
    assert metrics["active"] == metrics["expired"] == 0
    assert all(count == 0 for count in metrics["by_ownership"].values())


# ---------------------------------------------------------------------------
# Competitiveness
# ---------------------------------------------------------------------------

def test_competitiveness_rates_round_half_up():
    direct = [tariff(f"d{i}", 100) for i in range(8)]
    blanket = [tariff("b1", 100, ownership="rocket_blanket")]  # 12.5% -> 13
    csp = [tariff(f"c{i}", 100, ownership="rocket_csp") for i in range(3)]  # 37.5% -> 38

    analysis = analyze_tariff_competitiveness(direct, blanket, csp)

    assert analysis["blanket_coverage_rate"] == 13
    assert analysis["csp_coverage_rate"] == 38
    assert analysis["recommendations"][0]["type"] == "opportunity"
    assert analysis["recommendations"][0]["message"] == (
        "Low blanket coverage (13%). Consider expanding blanket programs."
    )


def test_competitiveness_without_direct_tariffs_uses_one_as_denominator():
    blanket = [tariff("b1", 100, ownership="rocket_blanket"), tariff("b2", 100, ownership="rocket_blanket")]

    analysis = analyze_tariff_competitiveness([], blanket, [])

    assert analysis["total_direct_tariffs"] == 0
    assert analysis["blanket_coverage_rate"] == 200
    assert [r["type"] for r in analysis["recommendations"]] == ["success"]


def test_competitiveness_middle_band_has_no_recommendation():
    direct = [tariff("d1", 100), tariff("d2", 100)]
    blanket = [tariff("b1", 100, ownership="rocket_blanket")]
    assert analyze_tariff_competitiveness(direct, blanket, [])["recommendations"] == []


# ---------------------------------------------------------------------------
# Insight cards
# ---------------------------------------------------------------------------

def test_insights_in_display_order():
    direct = [tariff("d1", 10, carrier_id="c1"), tariff("d2", 200, carrier_id="c2")]

    insights = generate_insights(direct, [], [], CARRIERS, TODAY)

    assert [i["type"] for i in insights] == [
        "carrier_blockers",
        "expiration_opportunities",
        "competitiveness_analysis",
        "recommended_targets",
    ]
    assert insights[0]["message"] == (
        "2 carriers cannot be competitively bid due to Customer Direct tariffs: EXLA, ODFL"
    )
    assert insights[1]["severity"] == "high"
    assert insights[1]["message"] == "1 Customer Direct tariff expiring in next 90 days. 1 high priority"
    assert [c["id"] for c in insights[3]["data"]] == ["c3"]


def test_insights_without_tariffs_recommend_every_carrier():
    insights = generate_insights([], [], [], CARRIERS, TODAY)

    types = [i["type"] for i in insights]
    assert "carrier_blockers" not in types
    assert "expiration_opportunities" not in types
    assert insights[-1]["message"] == "3 carriers available for next CSP event"


# ---------------------------------------------------------------------------
# Alternatives
# ---------------------------------------------------------------------------

def test_compare_to_alternatives():
    target = tariff("t", 30)
    alternatives = [tariff("a1", 90, ownership="rocket_blanket")]

    comparison = compare_tariff_to_alternatives(target, alternatives)

    assert comparison["target_tariff"] == {"id": "t", "ref": "REF-t", "type": "customer_direct"}
    assert comparison["alternatives"][0]["comparison"] == "comparable"
    assert comparison["recommendation"] == "1 alternative tariff available for comparison"
    assert compare_tariff_to_alternatives(target, [])["recommendation"] == (
        "No alternative tariffs available for comparison"
    )
