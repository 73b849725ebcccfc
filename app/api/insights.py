"""
Tariff insight endpoints - per-customer risk, blockers and coverage analysis.
"""

import uuid
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from app.api.deps import CurrentUser, DbSession, Today
from app.config import get_settings
from app.models.carrier import Carrier
from app.models.customer import Customer
from app.models.tariff import BLANKET_OWNERSHIP_TYPES, Tariff
from app.services.tariff_comparison import (
    analyze_tariff_competitiveness,
    calculate_tariff_metrics,
    find_expiration_opportunities,
    generate_insights,
    identify_carrier_blockers,
)

router = APIRouter()
settings = get_settings()


@router.get("/customers/{customer_id}")
async def get_customer_insights(
    customer_id: uuid.UUID,
    db: DbSession,
    user: CurrentUser,
    today: Today,
    days_window: Optional[int] = Query(None, ge=1, le=365),
):
    """
    Tariff picture for one customer: metrics, carrier blockers, CSP
    opportunities, blanket/CSP coverage and the insight cards built from them.
    """
    days_window = days_window or settings.expiring_window_days

    customer = await db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )

    tariffs = (await db.execute(select(Tariff))).scalars().all()
    carriers = (await db.execute(select(Carrier).order_by(Carrier.name))).scalars().all()

    key = str(customer_id)
    own = [t for t in tariffs if t.customer_id == customer_id]
    # Blankets apply to a customer through their customer pool
    blanket = [
        t for t in tariffs
        if t.ownership_type in BLANKET_OWNERSHIP_TYPES
        and (t.customer_id == customer_id or key in [str(c) for c in (t.customer_ids or [])])
    ]
    direct = [t for t in own if t.ownership_type == "customer_direct"]
    csp = [t for t in own if t.ownership_type in ("rocket_csp", "customer_csp")]

    return {
        "customer_id": key,
        "customer_name": customer.name,
        "metrics": calculate_tariff_metrics(own + [t for t in blanket if t not in own], today),
        "carrier_blockers": [asdict(b) for b in identify_carrier_blockers(direct, carriers, today)],
        "expiration_opportunities": [
            asdict(o) for o in find_expiration_opportunities(direct, carriers, today, days_window)
        ],
        "competitiveness": analyze_tariff_competitiveness(direct, blanket, csp),
        "insights": generate_insights(direct, blanket, csp, carriers, today),
    }
