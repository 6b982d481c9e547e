"""
Derived Reporting Types

Immutable results of one aggregation run. A run replaces the whole
`DashboardSnapshot`; nothing here is updated in place.
"""

from dataclasses import dataclass, fields, is_dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


def to_plain(value: Any) -> Any:
    """JSON-shaped copy: dataclasses and mappings become dicts, tuples become lists"""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


@dataclass(frozen=True)
class MetricsSnapshot:
    """Scalar rollups for the selected period"""
    total_orders: int
    status_counts: Mapping[str, int]
    delivered_orders: int
    cancelled_orders: int
    pending_orders: int
    returned_orders: int
    total_revenue: float
    avg_order_value: float
    pending_payments: float
    received_payments: float
    collection_rate: float
    previous_period_revenue: float
    previous_period_orders: int
    revenue_change_pct: float
    orders_change_pct: float
    new_customers: int
    total_customers: int
    abandoned_carts: int
    abandoned_value: float
    conversion_rate: float
    active_products: int
    low_stock_products: int
    out_of_stock_products: int

    def __post_init__(self):
        # Read-only view over a private copy
        object.__setattr__(self, "status_counts", MappingProxyType(dict(self.status_counts)))


@dataclass(frozen=True)
class DailyRevenuePoint:
    """One calendar day of the (sparse) revenue series"""
    date: str
    revenue: float
    order_count: int


@dataclass(frozen=True)
class RankedProduct:
    """Best seller with all-time sales figures"""
    rank: int
    product_id: str
    name: str
    images: Tuple[str, ...]
    stock_quantity: int
    total_sold: int
    revenue: float


@dataclass(frozen=True)
class RankedCustomer:
    """Customer ranked by lifetime spend"""
    rank: int
    id: str
    full_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    total_orders: int
    total_spent: float
    is_premium: bool


@dataclass(frozen=True)
class PartnerPerformance:
    """Per delivery partner figures for the selected period"""
    partner_id: str
    partner_name: str
    sent: int
    delivered: int
    returned: int
    pending_payment: float
    received_payment: float
    success_rate: float


@dataclass(frozen=True)
class DashboardSnapshot:
    """Complete output of one aggregation run"""
    date_from: date
    date_to: date
    status: Optional[str]
    metrics: MetricsSnapshot
    daily_revenue: Tuple[DailyRevenuePoint, ...] = ()
    top_products: Tuple[RankedProduct, ...] = ()
    top_customers: Tuple[RankedCustomer, ...] = ()
    partner_performance: Tuple[PartnerPerformance, ...] = ()
    generated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)
