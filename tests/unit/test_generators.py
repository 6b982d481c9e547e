"""
Unit Tests - Demo Data Generator
"""
from crm_analytics.data.generators import PARTNER_NAMES, DemoDataGenerator
from crm_analytics.models.records import OrderStatus, PartnerPaymentStatus

from conftest import FIXED_NOW


class TestDemoDataGenerator:
    """Tests for DemoDataGenerator"""

    def test_same_seed_same_dataset(self, demo_dataset):
        again = DemoDataGenerator(seed=7, now=FIXED_NOW).generate_all(
            n_customers=40, n_products=25, n_orders=200, n_abandoned_carts=20, days=30
        )
        assert [o.id for o in again.orders] == [o.id for o in demo_dataset.orders]
        assert [o.total for o in again.orders] == [o.total for o in demo_dataset.orders]
        assert [c.full_name for c in again.customers] == [c.full_name for c in demo_dataset.customers]

    def test_sizes(self, demo_dataset):
        assert len(demo_dataset.customers) == 40
        assert len(demo_dataset.products) == 25
        assert len(demo_dataset.orders) == 200
        assert len(demo_dataset.abandoned_carts) == 20
        assert [p.name for p in demo_dataset.delivery_partners] == PARTNER_NAMES
        assert not demo_dataset.delivery_partners[-1].is_active

    def test_orders_within_window(self, demo_dataset):
        assert all(o.created_at <= FIXED_NOW for o in demo_dataset.orders)
        assert len({o.order_number for o in demo_dataset.orders}) == 200

    def test_line_items_reference_known_rows(self, demo_dataset):
        order_ids = {o.id for o in demo_dataset.orders}
        product_ids = {p.id for p in demo_dataset.products}
        assert all(i.order_id in order_ids for i in demo_dataset.order_items)
        assert all(i.product_id in product_ids for i in demo_dataset.order_items)

    def test_partner_assignment(self, demo_dataset):
        """Test only dispatched orders carry a partner, and only delivered ones a payment"""
        dispatched = (OrderStatus.SHIPPED, OrderStatus.DELIVERED)
        for order in demo_dataset.orders:
            assert (order.delivery_partner_id is not None) == (order.status in dispatched)
            if order.partner_payment_status != PartnerPaymentStatus.NONE:
                assert order.status == OrderStatus.DELIVERED
                assert order.partner_payment_due_date is not None
            if order.is_returned:
                assert order.is_delivered

    def test_customer_totals_match_orders(self, demo_dataset):
        for customer in demo_dataset.customers:
            placed = [o for o in demo_dataset.orders if o.customer_name == customer.full_name]
            assert customer.total_orders == len(placed)
            assert customer.total_spent == round(sum(o.total for o in placed if o.is_delivered), 2)

    def test_in_memory_source(self, demo_dataset):
        source = demo_dataset.to_source()
        assert len(source.orders) == 200
        assert source.delivery_partners == demo_dataset.delivery_partners
