"""
CRM Report Views

The report tabs of the CRM dashboard, each a configured `DataGrid` over one
slice of a snapshot or its inputs:

- orders: orders in the selected period
- customers: top customers by lifetime spend
- products: best sellers by all-time revenue
- partners: delivery partner performance
- payments: per-order partner payment tracking
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from crm_analytics.aggregation.engine import ReportInputs
from crm_analytics.errors import UnknownReportError
from crm_analytics.models.derived import DashboardSnapshot
from crm_analytics.models.records import OrderStatus, PartnerPaymentStatus
from crm_analytics.reporting.grid import Column, DataGrid, FilterOption


@dataclass(frozen=True)
class ReportView:
    """A named, exportable report tab"""
    name: str
    title: str
    subtitle: str
    export_filename: str
    grid: DataGrid


@dataclass(frozen=True)
class PaymentRecord:
    """Cash a delivery partner collected (or still owes) for one order"""
    id: str
    order_number: str
    partner_name: str
    amount: float
    status: str
    due_date: Optional[date] = None


def money(value) -> str:
    return f"{float(value or 0):,.2f}"


def percent(value) -> str:
    return f"{float(value or 0):.1f}%"


def premium_label(value) -> str:
    return "Premium" if value else "Regular"


STATUS_OPTIONS = tuple((s.value, s.value.capitalize()) for s in OrderStatus)
PAYMENT_METHOD_OPTIONS = (("cod", "COD"), ("bkash", "bKash"), ("nagad", "Nagad"))


# =============================================================================
# VIEW BUILDERS
# =============================================================================

def orders_view(snapshot: DashboardSnapshot, inputs: ReportInputs) -> ReportView:
    grid = DataGrid(
        inputs.orders,
        columns=[
            Column("order_number", "Order #", sortable=True),
            Column("customer_name", "Customer", sortable=True),
            Column("total", "Total", sortable=True, render=money),
            Column("status", "Status"),
            Column("payment_method", "Payment"),
            Column("created_at", "Date", sortable=True),
        ],
        search_key="order_number",
        filters=[
            FilterOption("status", "Status", STATUS_OPTIONS),
            FilterOption("payment_method", "Payment", PAYMENT_METHOD_OPTIONS),
        ],
    )
    return ReportView(
        name="orders",
        title="Recent Orders",
        subtitle="Latest orders in selected period",
        export_filename="orders_report",
        grid=grid,
    )


def customers_view(snapshot: DashboardSnapshot, inputs: ReportInputs) -> ReportView:
    grid = DataGrid(
        snapshot.top_customers,
        columns=[
            Column("rank", "#"),
            Column("full_name", "Customer", sortable=True),
            Column("email", "Email"),
            Column("phone", "Phone"),
            Column("total_orders", "Orders", sortable=True),
            Column("total_spent", "Total Spent", sortable=True, render=money),
            Column("is_premium", "Status", render=premium_label),
        ],
        search_key="full_name",
        filters=[FilterOption("is_premium", "Status", (("true", "Premium"), ("false", "Regular")))],
    )
    return ReportView(
        name="customers",
        title="Top Customers",
        subtitle="Customers ranked by total spending",
        export_filename="customers_report",
        grid=grid,
    )


def products_view(snapshot: DashboardSnapshot, inputs: ReportInputs) -> ReportView:
    grid = DataGrid(
        snapshot.top_products,
        columns=[
            Column("rank", "#"),
            Column("name", "Product", sortable=True),
            Column("total_sold", "Sold", sortable=True),
            Column("revenue", "Revenue", sortable=True, render=money),
            Column("stock_quantity", "Stock", sortable=True),
        ],
        search_key="name",
        id_key="product_id",
    )
    return ReportView(
        name="products",
        title="Top Selling Products",
        subtitle="Products ranked by revenue",
        export_filename="products_report",
        grid=grid,
    )


def partners_view(snapshot: DashboardSnapshot, inputs: ReportInputs) -> ReportView:
    grid = DataGrid(
        snapshot.partner_performance,
        columns=[
            Column("partner_name", "Partner", sortable=True),
            Column("sent", "Total Orders", sortable=True),
            Column("delivered", "Delivered", sortable=True),
            Column("returned", "Returned", sortable=True),
            Column("success_rate", "Success Rate", sortable=True, render=percent),
            Column("pending_payment", "Pending", sortable=True, render=money),
            Column("received_payment", "Received", sortable=True, render=money),
        ],
        search_key="partner_name",
        id_key="partner_id",
    )
    return ReportView(
        name="partners",
        title="Delivery Partner Performance",
        subtitle="Orders and payments by delivery company",
        export_filename="partner_report",
        grid=grid,
    )


def payment_records(inputs: ReportInputs) -> List[PaymentRecord]:
    """Orders assigned to a partner with an open or settled partner payment"""
    names: Dict[str, str] = {p.id: p.name for p in inputs.delivery_partners}
    tracked = (PartnerPaymentStatus.PENDING, PartnerPaymentStatus.RECEIVED)
    return [
        PaymentRecord(
            id=o.id,
            order_number=o.order_number,
            partner_name=names.get(o.delivery_partner_id, "Unknown"),
            amount=o.partner_payment_amount if o.partner_payment_amount is not None else o.total,
            status=o.partner_payment_status.value,
            due_date=o.partner_payment_due_date,
        )
        for o in inputs.orders
        if o.delivery_partner_id and o.partner_payment_status in tracked
    ]


def payments_view(snapshot: DashboardSnapshot, inputs: ReportInputs) -> ReportView:
    grid = DataGrid(
        payment_records(inputs),
        columns=[
            Column("order_number", "Order #", sortable=True),
            Column("partner_name", "Partner", sortable=True),
            Column("amount", "Amount", sortable=True, render=money),
            Column("status", "Status"),
            Column("due_date", "Due Date"),
        ],
        search_key="order_number",
        filters=[FilterOption("status", "Status", (("pending", "Pending"), ("received", "Received")))],
    )
    return ReportView(
        name="payments",
        title="Payment Records",
        subtitle="Individual payment tracking by order",
        export_filename="payments_report",
        grid=grid,
    )


ViewBuilder = Callable[[DashboardSnapshot, ReportInputs], ReportView]

REPORT_BUILDERS: Dict[str, ViewBuilder] = {
    "orders": orders_view,
    "customers": customers_view,
    "products": products_view,
    "partners": partners_view,
    "payments": payments_view,
}

REPORT_NAMES: Tuple[str, ...] = tuple(REPORT_BUILDERS)


def build_report(name: str, snapshot: DashboardSnapshot, inputs: ReportInputs) -> ReportView:
    """
    Build a report view by name.

    Raises:
        UnknownReportError: If no report is registered under `name`
    """
    builder = REPORT_BUILDERS.get(name)
    if builder is None:
        raise UnknownReportError(name)
    return builder(snapshot, inputs)
