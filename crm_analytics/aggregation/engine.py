"""
Aggregation Engine

Turns the raw collections for one reporting period into the CRM dashboard
snapshot: scalar rollups, the daily revenue series, best-seller and customer
rankings, and delivery partner performance.

Orders and line items are loaded into polars frames so every rollup is a
filter/group-by expression; rankings are joined back to the input records for
display metadata.
"""

from dataclasses import dataclass, fields
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import polars as pl
import structlog

from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.config import get_settings
from crm_analytics.metrics.primitives import date_bucket_key, percent_change, safe_ratio
from crm_analytics.models.derived import (
    DailyRevenuePoint,
    DashboardSnapshot,
    MetricsSnapshot,
    PartnerPerformance,
    RankedCustomer,
    RankedProduct,
)
from crm_analytics.models.records import (
    AbandonedCart,
    Customer,
    DeliveryPartner,
    Order,
    OrderLineItem,
    OrderStatus,
    PartnerPaymentStatus,
    Product,
)

logger = structlog.get_logger(__name__)


ORDER_SCHEMA = {
    "status": pl.Utf8,
    "total": pl.Float64,
    "day": pl.Utf8,
    "returned": pl.Boolean,
    "partner_id": pl.Utf8,
    "payment_status": pl.Utf8,
    "payment_amount": pl.Float64,
}

LINE_ITEM_SCHEMA = {
    "product_id": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
}

IS_DELIVERED = pl.col("status") == OrderStatus.DELIVERED.value
# Cash still owed by partners only counts once the parcel is delivered
IS_PAYMENT_PENDING = (pl.col("payment_status") == PartnerPaymentStatus.PENDING.value) & IS_DELIVERED
IS_PAYMENT_RECEIVED = pl.col("payment_status") == PartnerPaymentStatus.RECEIVED.value
PENDING_AMOUNT = pl.coalesce(pl.col("payment_amount"), pl.col("total"))
RECEIVED_AMOUNT = pl.col("payment_amount").fill_null(0.0)


def _rollup_exprs() -> List[pl.Expr]:
    """Order rollups shared by the global figures and each partner"""
    return [
        pl.len().alias("sent"),
        IS_DELIVERED.sum().alias("delivered"),
        pl.col("total").filter(IS_DELIVERED).sum().alias("revenue"),
        pl.col("returned").sum().alias("returned"),
        PENDING_AMOUNT.filter(IS_PAYMENT_PENDING).sum().alias("pending_payment"),
        RECEIVED_AMOUNT.filter(IS_PAYMENT_RECEIVED).sum().alias("received_payment"),
    ]


@dataclass(frozen=True)
class ReportInputs:
    """
    Raw collections for one aggregation run.

    - orders: created within the period (and matching its status filter)
    - previous_orders: same rules, preceding window of equal length
    - customers, products, order_items: all, not date filtered
    - abandoned_carts: unrecovered carts
    - delivery_partners: active partners
    """
    orders: Tuple[Order, ...] = ()
    previous_orders: Tuple[Order, ...] = ()
    customers: Tuple[Customer, ...] = ()
    abandoned_carts: Tuple[AbandonedCart, ...] = ()
    products: Tuple[Product, ...] = ()
    order_items: Tuple[OrderLineItem, ...] = ()
    delivery_partners: Tuple[DeliveryPartner, ...] = ()

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, tuple(getattr(self, f.name)))


class AggregationEngine:
    """
    Computes a `DashboardSnapshot` from `ReportInputs`.

    The engine is stateless between runs: every call recomputes everything
    from its inputs and returns a new immutable snapshot.

    Example:
        engine = AggregationEngine()
        snapshot = engine.compute(inputs, ReportingPeriod(date_from, date_to))
    """

    def __init__(
        self,
        tz: Optional[tzinfo] = None,
        top_n: Optional[int] = None,
        low_stock_threshold: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        reporting = get_settings().reporting
        self.tz = tz or reporting.tzinfo
        self.top_n = top_n if top_n is not None else reporting.top_n
        self.low_stock_threshold = (
            low_stock_threshold if low_stock_threshold is not None else reporting.low_stock_threshold
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # frames
    # ------------------------------------------------------------------

    def _orders_frame(self, orders: Sequence[Order]) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "status": [o.status.value for o in orders],
                "total": [float(o.total) for o in orders],
                "day": [date_bucket_key(o.created_at, self.tz) for o in orders],
                "returned": [o.is_returned for o in orders],
                "partner_id": [o.delivery_partner_id for o in orders],
                "payment_status": [o.partner_payment_status.value for o in orders],
                "payment_amount": [
                    float(o.partner_payment_amount) if o.partner_payment_amount is not None else None
                    for o in orders
                ],
            },
            schema=ORDER_SCHEMA,
        )

    @staticmethod
    def _line_items_frame(items: Sequence[OrderLineItem]) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "product_id": [i.product_id for i in items],
                "quantity": [int(i.quantity) for i in items],
                "unit_price": [float(i.unit_price) for i in items],
            },
            schema=LINE_ITEM_SCHEMA,
        )

    # ------------------------------------------------------------------
    # rollups
    # ------------------------------------------------------------------

    @staticmethod
    def _rollups(frame: pl.DataFrame) -> Dict[str, float]:
        row = frame.select(_rollup_exprs()).row(0, named=True)
        return {key: value or 0 for key, value in row.items()}

    @staticmethod
    def _status_counts(frame: pl.DataFrame) -> Dict[str, int]:
        counts = dict(frame.group_by("status").len().iter_rows())
        return {status.value: int(counts.get(status.value, 0)) for status in OrderStatus}

    def daily_revenue(self, frame: pl.DataFrame) -> Tuple[DailyRevenuePoint, ...]:
        """Sparse ascending series; days without orders are absent"""
        daily = (
            frame.group_by("day")
            .agg(
                pl.col("total").filter(IS_DELIVERED).sum().alias("revenue"),
                pl.len().alias("order_count"),
            )
            .sort("day")
        )
        return tuple(
            DailyRevenuePoint(
                date=row["day"],
                revenue=float(row["revenue"] or 0),
                order_count=int(row["order_count"]),
            )
            for row in daily.iter_rows(named=True)
        )

    def top_products(
        self,
        products: Sequence[Product],
        order_items: Sequence[OrderLineItem],
    ) -> Tuple[RankedProduct, ...]:
        """
        Best sellers by all-time revenue.

        Ties keep the order of the product list; products without sales are
        left out.
        """
        sales = (
            self._line_items_frame(order_items)
            .group_by("product_id")
            .agg(
                pl.col("quantity").sum().alias("total_sold"),
                (pl.col("quantity") * pl.col("unit_price")).sum().alias("revenue"),
            )
        )
        catalog = pl.DataFrame(
            {
                "product_id": [p.id for p in products],
                "position": list(range(len(products))),
            },
            schema={"product_id": pl.Utf8, "position": pl.Int64},
        ).unique(subset="product_id", keep="first", maintain_order=True)

        ranked = (
            catalog.join(sales, on="product_id", how="inner")
            .sort(["revenue", "position"], descending=[True, False])
            .head(self.top_n)
        )

        by_id: Dict[str, Product] = {}
        for product in products:
            by_id.setdefault(product.id, product)

        return tuple(
            RankedProduct(
                rank=index + 1,
                product_id=row["product_id"],
                name=by_id[row["product_id"]].name,
                images=by_id[row["product_id"]].images,
                stock_quantity=by_id[row["product_id"]].stock_quantity,
                total_sold=int(row["total_sold"]),
                revenue=float(row["revenue"]),
            )
            for index, row in enumerate(ranked.iter_rows(named=True))
        )

    def top_customers(self, customers: Sequence[Customer]) -> Tuple[RankedCustomer, ...]:
        """Customers by lifetime spend; equal spend keeps input order"""
        ranked = sorted(customers, key=lambda c: c.total_spent, reverse=True)[: self.top_n]
        return tuple(
            RankedCustomer(
                rank=index + 1,
                id=c.id,
                full_name=c.full_name,
                email=c.email,
                phone=c.phone,
                total_orders=c.total_orders,
                total_spent=c.total_spent,
                is_premium=c.is_premium,
            )
            for index, c in enumerate(ranked)
        )

    def partner_performance(
        self,
        frame: pl.DataFrame,
        partners: Sequence[DeliveryPartner],
    ) -> Tuple[PartnerPerformance, ...]:
        per_partner = (
            frame.filter(pl.col("partner_id").is_not_null())
            .group_by("partner_id")
            .agg(_rollup_exprs())
        )
        by_partner = {row["partner_id"]: row for row in per_partner.iter_rows(named=True)}

        results = []
        for partner in partners:
            if not partner.is_active:
                continue
            row = by_partner.get(partner.id, {})
            sent = int(row.get("sent") or 0)
            delivered = int(row.get("delivered") or 0)
            results.append(
                PartnerPerformance(
                    partner_id=partner.id,
                    partner_name=partner.name,
                    sent=sent,
                    delivered=delivered,
                    returned=int(row.get("returned") or 0),
                    pending_payment=float(row.get("pending_payment") or 0),
                    received_payment=float(row.get("received_payment") or 0),
                    success_rate=safe_ratio(delivered, sent) * 100,
                )
            )
        return tuple(results)

    def _stock_counts(self, products: Iterable[Product]) -> Tuple[int, int, int]:
        active = [p for p in products if p.is_active]
        low = sum(1 for p in active if 0 < p.stock_quantity <= self.low_stock_threshold)
        out = sum(1 for p in active if p.stock_quantity == 0)
        return len(active), low, out

    # ------------------------------------------------------------------
    # snapshot
    # ------------------------------------------------------------------

    def compute(self, inputs: ReportInputs, period: ReportingPeriod) -> DashboardSnapshot:
        """
        Run every aggregation over the inputs.

        Args:
            inputs: Raw collections for the period
            period: Selected reporting period

        Returns:
            DashboardSnapshot: Immutable snapshot replacing any previous one
        """
        window = period.window(self.tz)
        orders = self._orders_frame(inputs.orders)
        previous = self._orders_frame(inputs.previous_orders)

        current = self._rollups(orders)
        prior = self._rollups(previous)
        status_counts = self._status_counts(orders)

        total_orders = int(current["sent"])
        delivered_count = int(current["delivered"])
        total_revenue = float(current["revenue"])
        pending_payments = float(current["pending_payment"])
        received_payments = float(current["received_payment"])

        # Guard on the actual denominator; safe_ratio also rejects non-finite results
        avg_order_value = safe_ratio(total_revenue, delivered_count) if delivered_count > 0 else 0.0

        open_carts = [c for c in inputs.abandoned_carts if not c.is_recovered]
        abandoned_count = len(open_carts)
        active_products, low_stock, out_of_stock = self._stock_counts(inputs.products)

        metrics = MetricsSnapshot(
            total_orders=total_orders,
            status_counts=status_counts,
            delivered_orders=delivered_count,
            cancelled_orders=status_counts[OrderStatus.CANCELLED.value],
            pending_orders=status_counts[OrderStatus.PENDING.value],
            returned_orders=int(current["returned"]),
            total_revenue=total_revenue,
            avg_order_value=avg_order_value,
            pending_payments=pending_payments,
            received_payments=received_payments,
            collection_rate=safe_ratio(received_payments, pending_payments + received_payments) * 100,
            previous_period_revenue=float(prior["revenue"]),
            previous_period_orders=int(prior["sent"]),
            revenue_change_pct=percent_change(total_revenue, float(prior["revenue"])),
            orders_change_pct=percent_change(total_orders, int(prior["sent"])),
            new_customers=sum(1 for c in inputs.customers if c.created_at >= window.start),
            total_customers=len(inputs.customers),
            abandoned_carts=abandoned_count,
            abandoned_value=float(sum(c.cart_total for c in open_carts)),
            conversion_rate=safe_ratio(total_orders, total_orders + abandoned_count) * 100,
            active_products=active_products,
            low_stock_products=low_stock,
            out_of_stock_products=out_of_stock,
        )

        snapshot = DashboardSnapshot(
            date_from=period.date_from,
            date_to=period.date_to,
            status=period.status_value,
            metrics=metrics,
            daily_revenue=self.daily_revenue(orders),
            top_products=self.top_products(inputs.products, inputs.order_items),
            top_customers=self.top_customers(inputs.customers),
            partner_performance=self.partner_performance(orders, inputs.delivery_partners),
            generated_at=self._clock(),
        )

        logger.info(
            "Aggregation complete",
            date_from=str(period.date_from),
            date_to=str(period.date_to),
            status=period.status_value,
            orders=total_orders,
            revenue=total_revenue,
            days=len(snapshot.daily_revenue),
        )
        return snapshot
