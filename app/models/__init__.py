"""
SQLAlchemy models for the tariff desk.
All models inherit from RecordBase (UUID primary key + timestamps).
"""

from app.models.base import Base, RecordBase, TimestampMixin
from app.models.customer import Customer
from app.models.carrier import Carrier
from app.models.csp_event import CSPEvent, CSP_STAGES
from app.models.tariff import Tariff, TARIFF_STATUSES, OWNERSHIP_TYPES, BLANKET_OWNERSHIP_TYPES
from app.models.tariff_activity import TariffActivity
from app.models.user_pin import UserPin, PIN_TYPES

__all__ = [
    "Base",
    "RecordBase",
    "TimestampMixin",
    "Customer",
    "Carrier",
    "CSPEvent",
    "CSP_STAGES",
    "Tariff",
    "TARIFF_STATUSES",
    "OWNERSHIP_TYPES",
    "BLANKET_OWNERSHIP_TYPES",
    "TariffActivity",
    "UserPin",
    "PIN_TYPES",
]
