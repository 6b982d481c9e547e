"""
Unit Tests - Aggregation Engine
"""
from dataclasses import FrozenInstanceError, replace
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from crm_analytics.aggregation.engine import AggregationEngine, ReportInputs
from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.models.records import OrderLineItem, OrderStatus, Product

from conftest import utc


class TestReportingPeriod:
    """Tests for ReportingPeriod"""

    def test_window_bounds(self, week_period):
        """Test the window spans whole calendar days"""
        window = week_period.window(timezone.utc)
        assert window.start == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert window.end == datetime(2025, 1, 7, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_previous_window(self, week_period):
        """Test the previous window has equal length and ends before the period"""
        assert week_period.length_days(timezone.utc) == 7
        previous = week_period.previous_window(timezone.utc)
        assert previous.start == datetime(2024, 12, 25, tzinfo=timezone.utc)
        assert previous.end == datetime(2024, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_single_day_period(self):
        """Test a one-day period compares against the day before"""
        period = ReportingPeriod(date(2025, 3, 10), date(2025, 3, 10))
        previous = period.previous_window(timezone.utc)
        assert previous.start == datetime(2025, 3, 9, tzinfo=timezone.utc)

    def test_local_timezone(self):
        """Test bounds are midnight in the reporting timezone"""
        period = ReportingPeriod(date(2025, 1, 1), date(2025, 1, 1))
        window = period.window(ZoneInfo("Asia/Dhaka"))
        assert window.start.astimezone(timezone.utc) == datetime(2024, 12, 31, 18, tzinfo=timezone.utc)

    def test_inverted_range_rejected(self):
        """Test date_to before date_from is invalid"""
        with pytest.raises(ValueError):
            ReportingPeriod(date(2025, 1, 7), date(2025, 1, 1))

    def test_status_coerced(self):
        """Test status strings become OrderStatus"""
        period = ReportingPeriod(date(2025, 1, 1), date(2025, 1, 2), "delivered")
        assert period.status == OrderStatus.DELIVERED
        assert period.status_value == "delivered"

    def test_last_days(self):
        period = ReportingPeriod.last_days(30, today=date(2025, 2, 1))
        assert period.date_from == date(2025, 1, 2)
        assert period.date_to == date(2025, 2, 1)


class TestOrderRollups:
    """Tests for order-level metrics"""

    def test_revenue_scenario(self, engine, week_period, scenario_orders):
        """Test totals, average and daily series for the reference week"""
        snapshot = engine.compute(ReportInputs(orders=scenario_orders), week_period)
        metrics = snapshot.metrics

        assert metrics.total_orders == 3
        assert metrics.delivered_orders == 2
        assert metrics.total_revenue == 3000
        assert metrics.avg_order_value == 1500
        assert [(p.date, p.revenue, p.order_count) for p in snapshot.daily_revenue] == [
            ("2025-01-02", 3000, 2),
            ("2025-01-03", 0, 1),
        ]

    def test_status_counts_zero_filled(self, engine, week_period, scenario_orders):
        """Test every status is present in the counts"""
        metrics = engine.compute(ReportInputs(orders=scenario_orders), week_period).metrics
        assert metrics.status_counts == {
            "pending": 1,
            "confirmed": 0,
            "processing": 0,
            "shipped": 0,
            "delivered": 2,
            "cancelled": 0,
        }
        assert metrics.pending_orders == 1
        assert metrics.cancelled_orders == 0

    def test_average_without_deliveries(self, engine, week_period, make_order):
        """Test orders with no deliveries give a zero average"""
        orders = [make_order(status="pending"), make_order(status="cancelled")]
        metrics = engine.compute(ReportInputs(orders=orders), week_period).metrics
        assert metrics.total_orders == 2
        assert metrics.avg_order_value == 0.0

    def test_empty_inputs(self, engine, week_period):
        """Test an empty period produces a zeroed snapshot"""
        snapshot = engine.compute(ReportInputs(), week_period)
        assert snapshot.metrics.total_orders == 0
        assert snapshot.metrics.total_revenue == 0
        assert snapshot.metrics.conversion_rate == 0
        assert snapshot.daily_revenue == ()
        assert snapshot.top_products == ()
        assert snapshot.generated_at == datetime(2025, 1, 8, 12, tzinfo=timezone.utc)

    def test_previous_period_comparison(self, engine, week_period, scenario_orders, make_order):
        """Test deltas against the preceding window"""
        previous = [
            make_order(status="delivered", total=1500, created_at=utc(2024, 12, 28)),
            make_order(status="cancelled", total=80, created_at=utc(2024, 12, 30)),
        ]
        metrics = engine.compute(
            ReportInputs(orders=scenario_orders, previous_orders=previous), week_period
        ).metrics

        assert metrics.previous_period_revenue == 1500
        assert metrics.previous_period_orders == 2
        assert metrics.revenue_change_pct == pytest.approx(100.0)
        assert metrics.orders_change_pct == pytest.approx(50.0)

    def test_no_previous_orders(self, engine, week_period, scenario_orders):
        """Test missing baseline yields zero change"""
        metrics = engine.compute(ReportInputs(orders=scenario_orders), week_period).metrics
        assert metrics.revenue_change_pct == 0.0
        assert metrics.orders_change_pct == 0.0

    def test_returned_orders(self, engine, week_period, make_order):
        orders = [
            make_order(status="delivered", return_requested_at=utc(2025, 1, 5)),
            make_order(status="delivered"),
        ]
        metrics = engine.compute(ReportInputs(orders=orders), week_period).metrics
        assert metrics.returned_orders == 1

    def test_daily_buckets_use_reporting_timezone(self, week_period, make_order):
        """Test orders are bucketed by local calendar day"""
        engine = AggregationEngine(tz=ZoneInfo("Asia/Dhaka"))
        orders = [make_order(status="delivered", total=10, created_at=utc(2025, 1, 2, 20))]
        snapshot = engine.compute(ReportInputs(orders=orders), week_period)
        assert [p.date for p in snapshot.daily_revenue] == ["2025-01-03"]


class TestPartnerPayments:
    """Tests for partner payment rollups"""

    @pytest.fixture
    def payment_orders(self, make_order):
        return [
            make_order(status="delivered", total=400, delivery_partner_id="p1",
                       partner_payment_status="pending"),
            make_order(status="delivered", total=400, delivery_partner_id="p1",
                       partner_payment_status="pending", partner_payment_amount=350),
            make_order(status="shipped", total=500, delivery_partner_id="p1",
                       partner_payment_status="pending", partner_payment_amount=500),
            make_order(status="delivered", total=300, delivery_partner_id="p2",
                       partner_payment_status="received"),
            make_order(status="delivered", total=700, delivery_partner_id="p2",
                       partner_payment_status="received", partner_payment_amount=700,
                       return_requested_at=utc(2025, 1, 6)),
        ]

    def test_global_payment_sums(self, engine, week_period, payment_orders):
        """Test pending counts delivered orders only and falls back to the total"""
        metrics = engine.compute(ReportInputs(orders=payment_orders), week_period).metrics
        assert metrics.pending_payments == pytest.approx(750)
        assert metrics.received_payments == pytest.approx(700)
        assert metrics.collection_rate == pytest.approx(700 / 1450 * 100)

    def test_partner_performance(self, engine, week_period, payment_orders, sample_partners):
        """Test per-partner figures for active partners only"""
        snapshot = engine.compute(
            ReportInputs(orders=payment_orders, delivery_partners=sample_partners), week_period
        )
        by_id = {p.partner_id: p for p in snapshot.partner_performance}

        assert list(by_id) == ["p1", "p2"]
        assert by_id["p1"].sent == 3
        assert by_id["p1"].delivered == 2
        assert by_id["p1"].pending_payment == pytest.approx(750)
        assert by_id["p1"].success_rate == pytest.approx(200 / 3)
        assert by_id["p2"].returned == 1
        assert by_id["p2"].received_payment == pytest.approx(700)
        assert by_id["p2"].success_rate == pytest.approx(100)

    def test_partner_without_orders(self, engine, week_period, sample_partners):
        """Test idle partners report zeros"""
        snapshot = engine.compute(ReportInputs(delivery_partners=sample_partners), week_period)
        assert all(p.sent == 0 and p.success_rate == 0 for p in snapshot.partner_performance)


class TestRankings:
    """Tests for top products and top customers"""

    def test_top_products_tie_keeps_catalog_order(self, engine, week_period, sample_products, sample_line_items):
        """Test equal revenue is ranked by product list position"""
        snapshot = engine.compute(
            ReportInputs(products=sample_products, order_items=sample_line_items), week_period
        )
        ranked = [(p.rank, p.product_id, p.total_sold, p.revenue) for p in snapshot.top_products]
        assert ranked == [(1, "A", 3, 300), (2, "B", 1, 300)]
        assert snapshot.top_products[0].name == "Canvas Tote"
        assert snapshot.top_products[0].images == ("a.jpg",)

    def test_top_products_reverse_catalog(self, engine, week_period, sample_products, sample_line_items):
        """Test the tie-break follows the list, not the product id"""
        products = [sample_products[1], sample_products[0]]
        snapshot = engine.compute(ReportInputs(products=products, order_items=sample_line_items), week_period)
        assert [p.product_id for p in snapshot.top_products] == ["B", "A"]

    def test_top_products_truncated(self, week_period):
        """Test at most top_n products, ordered by revenue"""
        products = [Product(id=f"P{i}", name=f"Item {i}") for i in range(15)]
        items = [
            OrderLineItem(order_id=f"o{i}", product_id=f"P{i}", quantity=1, unit_price=10 * (i + 1))
            for i in range(15)
        ]
        snapshot = AggregationEngine(tz=timezone.utc, top_n=10).compute(
            ReportInputs(products=products, order_items=items), week_period
        )
        revenues = [p.revenue for p in snapshot.top_products]
        assert len(revenues) == 10
        assert revenues == sorted(revenues, reverse=True)
        assert snapshot.top_products[0].product_id == "P14"

    def test_unknown_product_lines_ignored(self, engine, week_period, sample_products):
        """Test line items for products not in the catalog are left out"""
        items = [OrderLineItem(order_id="o1", product_id="ghost", quantity=5, unit_price=999)]
        snapshot = engine.compute(ReportInputs(products=sample_products, order_items=items), week_period)
        assert snapshot.top_products == ()

    def test_top_customers_stable(self, engine, week_period, sample_customers):
        """Test spend ranking keeps input order for ties"""
        snapshot = engine.compute(ReportInputs(customers=sample_customers), week_period)
        assert [(c.rank, c.id) for c in snapshot.top_customers] == [(1, "c2"), (2, "c1"), (3, "c3")]
        assert snapshot.top_customers[2].is_premium is False


class TestCatalogAndCustomers:
    """Tests for stock, customer and cart metrics"""

    def test_stock_classification(self, engine, week_period, sample_products):
        """Test low and out of stock over active products"""
        metrics = engine.compute(ReportInputs(products=sample_products), week_period).metrics
        assert metrics.active_products == 3
        assert metrics.low_stock_products == 1
        assert metrics.out_of_stock_products == 1

    def test_new_customers(self, engine, week_period, sample_customers):
        """Test customers created from the start of the period count as new"""
        metrics = engine.compute(ReportInputs(customers=sample_customers), week_period).metrics
        assert metrics.new_customers == 2
        assert metrics.total_customers == 3

    def test_abandoned_carts_and_conversion(self, engine, week_period, scenario_orders, sample_carts):
        """Test recovered carts are excluded and conversion uses open carts"""
        metrics = engine.compute(
            ReportInputs(orders=scenario_orders, abandoned_carts=sample_carts), week_period
        ).metrics
        assert metrics.abandoned_carts == 2
        assert metrics.abandoned_value == 250
        assert metrics.conversion_rate == pytest.approx(60.0)


class TestSnapshotProperties:
    """Invariants over a generated storefront"""

    @pytest.fixture
    def demo_snapshot(self, demo_dataset):
        period = ReportingPeriod(date(2024, 12, 20), date(2025, 1, 8))
        tz = timezone.utc
        window = period.window(tz)
        inputs = ReportInputs(
            orders=[o for o in demo_dataset.orders if window.contains(o.created_at)],
            customers=demo_dataset.customers,
            abandoned_carts=[c for c in demo_dataset.abandoned_carts if not c.is_recovered],
            products=demo_dataset.products,
            order_items=demo_dataset.order_items,
            delivery_partners=[p for p in demo_dataset.delivery_partners if p.is_active],
        )
        return AggregationEngine(tz=tz).compute(inputs, period)

    def test_daily_revenue_sums_to_total(self, demo_snapshot):
        total = sum(p.revenue for p in demo_snapshot.daily_revenue)
        assert total == pytest.approx(demo_snapshot.metrics.total_revenue)
        assert sum(p.order_count for p in demo_snapshot.daily_revenue) == demo_snapshot.metrics.total_orders

    def test_daily_series_sorted_and_sparse(self, demo_snapshot):
        dates = [p.date for p in demo_snapshot.daily_revenue]
        assert dates == sorted(dates)
        assert len(dates) == len(set(dates))
        assert all(p.order_count > 0 for p in demo_snapshot.daily_revenue)

    def test_rates_bounded(self, demo_snapshot):
        assert 0 <= demo_snapshot.metrics.conversion_rate <= 100
        assert 0 <= demo_snapshot.metrics.collection_rate <= 100
        assert all(0 <= p.success_rate <= 100 for p in demo_snapshot.partner_performance)

    def test_top_products_non_increasing(self, demo_snapshot):
        revenues = [p.revenue for p in demo_snapshot.top_products]
        assert len(revenues) <= 10
        assert all(a >= b for a, b in zip(revenues, revenues[1:]))
        assert [p.rank for p in demo_snapshot.top_products] == list(range(1, len(revenues) + 1))

    def test_snapshot_serializes(self, demo_snapshot):
        data = demo_snapshot.to_dict()
        assert data["metrics"]["total_orders"] == demo_snapshot.metrics.total_orders
        assert isinstance(data["daily_revenue"], list)
        assert isinstance(data["metrics"]["status_counts"], dict)
        assert all(isinstance(p["images"], list) for p in data["top_products"])

    def test_snapshot_cannot_be_modified(self, demo_snapshot):
        counts = dict(demo_snapshot.metrics.status_counts)
        with pytest.raises(TypeError):
            demo_snapshot.metrics.status_counts["pending"] = 999
        with pytest.raises(FrozenInstanceError):
            demo_snapshot.metrics.total_orders = 0

        data = demo_snapshot.to_dict()
        data["metrics"]["status_counts"]["pending"] = 999
        data["daily_revenue"].clear()
        assert demo_snapshot.metrics.status_counts == counts
        assert demo_snapshot.daily_revenue

    def test_status_counts_copied_on_construction(self, engine, week_period, scenario_orders):
        metrics = engine.compute(ReportInputs(orders=scenario_orders), week_period).metrics
        source = dict(metrics.status_counts)
        rebuilt = replace(metrics, status_counts=source)
        source["pending"] = 999
        assert rebuilt.status_counts["pending"] == 1
