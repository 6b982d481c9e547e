"""
Synthetic Data Generator

Generates realistic storefront records for demo mode, local development and
invariant tests:
- Customers whose lifetime counters match their generated orders
- A product catalog with some low and out-of-stock items
- Orders with line items, delivery partners and partner payments
- Abandoned carts, some recovered
"""

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from faker import Faker

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
from crm_analytics.sources.memory import InMemoryDataSource


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = {
    "bags": ["Tote", "Backpack", "Clutch", "Satchel"],
    "jewelry": ["Necklace", "Bracelet", "Earrings", "Ring"],
    "clothing": ["Kurti", "Saree", "Panjabi", "Scarf"],
    "home": ["Cushion", "Lamp", "Vase", "Throw"],
}

PARTNER_NAMES = ["Pathao", "Steadfast", "RedX", "Paperfly", "eCourier"]

PAYMENT_METHODS = ["cod", "bkash", "nagad"]

ORDER_STATUSES = [
    (OrderStatus.PENDING, 0.10),
    (OrderStatus.CONFIRMED, 0.08),
    (OrderStatus.PROCESSING, 0.07),
    (OrderStatus.SHIPPED, 0.10),
    (OrderStatus.DELIVERED, 0.58),
    (OrderStatus.CANCELLED, 0.07),
]

SHIPPING_FEES = [60.0, 120.0]


@dataclass
class DemoDataset:
    """All collections of one generated storefront"""
    customers: List[Customer] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    delivery_partners: List[DeliveryPartner] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)
    order_items: List[OrderLineItem] = field(default_factory=list)
    abandoned_carts: List[AbandonedCart] = field(default_factory=list)

    def to_source(self) -> InMemoryDataSource:
        return InMemoryDataSource(
            orders=self.orders,
            order_items=self.order_items,
            customers=self.customers,
            products=self.products,
            abandoned_carts=self.abandoned_carts,
            delivery_partners=self.delivery_partners,
        )


# =============================================================================
# GENERATOR
# =============================================================================

class DemoDataGenerator:
    """
    Seeded generator for a consistent storefront dataset.

    The same seed and clock always produce the same dataset.

    Example:
        dataset = DemoDataGenerator(seed=42).generate_all(n_orders=500)
        source = dataset.to_source()
    """

    def __init__(self, seed: int = 42, now: Optional[datetime] = None):
        self.rng = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.now = now or datetime.now(timezone.utc)

    def _uuid(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def _instant_within(self, days: int) -> datetime:
        return self.now - timedelta(seconds=self.rng.uniform(0, days * 86400))

    def customers(self, n: int, days: int) -> List[Customer]:
        return [
            Customer(
                id=self._uuid(),
                full_name=self.fake.name(),
                email=self.fake.email(),
                phone=self.fake.phone_number(),
                is_premium=self.rng.random() < 0.15,
                created_at=self._instant_within(days * 3),
            )
            for _ in range(n)
        ]

    def products(self, n: int) -> List[Product]:
        products = []
        for index in range(n):
            category = self.rng.choice(list(CATEGORIES))
            kind = self.rng.choice(CATEGORIES[category])
            sku = f"SKU-{index + 1:05d}"
            roll = self.rng.random()
            if roll < 0.08:
                stock = 0
            elif roll < 0.2:
                stock = self.rng.randint(1, 5)
            else:
                stock = self.rng.randint(6, 200)
            products.append(
                Product(
                    id=self._uuid(),
                    name=f"{self.fake.word().title()} {kind}",
                    sku=sku,
                    category=category,
                    images=(f"https://cdn.example.com/products/{sku.lower()}.jpg",),
                    stock_quantity=stock,
                    price=round(self.rng.uniform(200, 5000), 0),
                    is_active=self.rng.random() > 0.05,
                )
            )
        return products

    def delivery_partners(self) -> List[DeliveryPartner]:
        return [
            DeliveryPartner(id=self._uuid(), name=name, is_active=index < len(PARTNER_NAMES) - 1)
            for index, name in enumerate(PARTNER_NAMES)
        ]

    def orders(
        self,
        n: int,
        days: int,
        customers: List[Customer],
        products: List[Product],
        partners: List[DeliveryPartner],
    ):
        """Generate n orders with their line items"""
        orders: List[Order] = []
        items: List[OrderLineItem] = []

        for index in range(n):
            order_id = self._uuid()
            created_at = self._instant_within(days)
            customer = self.rng.choice(customers)

            subtotal = 0.0
            for _ in range(self.rng.choices([1, 2, 3], weights=[0.6, 0.3, 0.1])[0]):
                product = self.rng.choice(products)
                quantity = self.rng.choices([1, 2, 3], weights=[0.7, 0.2, 0.1])[0]
                unit_price = round(product.price * self.rng.choice([1.0, 1.0, 0.9]), 2)
                items.append(
                    OrderLineItem(
                        order_id=order_id,
                        product_id=product.id,
                        quantity=quantity,
                        unit_price=unit_price,
                    )
                )
                subtotal += quantity * unit_price

            status = self.rng.choices(
                [s for s, _ in ORDER_STATUSES],
                weights=[w for _, w in ORDER_STATUSES],
            )[0]

            partner_id = None
            payment_status = PartnerPaymentStatus.NONE
            payment_amount = None
            due_date = None
            returned_at = None
            total = round(subtotal + self.rng.choice(SHIPPING_FEES), 2)

            if status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
                partner_id = self.rng.choice(partners).id
            if status == OrderStatus.DELIVERED:
                payment_status = self.rng.choices(
                    [PartnerPaymentStatus.PENDING, PartnerPaymentStatus.RECEIVED],
                    weights=[0.4, 0.6],
                )[0]
                # Some partners report no amount; the order total applies then
                if self.rng.random() > 0.2:
                    payment_amount = total
                due_date = (created_at + timedelta(days=7)).date()
                if self.rng.random() < 0.05:
                    returned_at = min(self.now, created_at + timedelta(days=self.rng.randint(1, 5)))

            orders.append(
                Order(
                    id=order_id,
                    order_number=f"ORD-{index + 1:06d}",
                    status=status,
                    total=total,
                    created_at=created_at,
                    return_requested_at=returned_at,
                    delivery_partner_id=partner_id,
                    partner_payment_status=payment_status,
                    partner_payment_amount=payment_amount,
                    partner_payment_due_date=due_date,
                    customer_name=customer.full_name,
                    phone=customer.phone,
                    district=self.fake.city(),
                    payment_method=self.rng.choice(PAYMENT_METHODS),
                )
            )

        return orders, items

    def abandoned_carts(self, n: int, days: int) -> List[AbandonedCart]:
        return [
            AbandonedCart(
                id=self._uuid(),
                cart_total=None if self.rng.random() < 0.1 else round(self.rng.uniform(300, 8000), 2),
                is_recovered=self.rng.random() < 0.25,
                created_at=self._instant_within(days),
            )
            for _ in range(n)
        ]

    @staticmethod
    def _with_lifetime_totals(customers: List[Customer], orders: List[Order]) -> List[Customer]:
        """Align customer counters with the orders placed under their name"""
        by_name: Dict[str, List[Order]] = {}
        for order in orders:
            by_name.setdefault(order.customer_name, []).append(order)

        updated = []
        for customer in customers:
            placed = by_name.get(customer.full_name, [])
            spent = sum(o.total for o in placed if o.is_delivered)
            updated.append(
                customer.model_copy(update={"total_orders": len(placed), "total_spent": round(spent, 2)})
            )
        return updated

    def generate_all(
        self,
        n_customers: int = 200,
        n_products: int = 60,
        n_orders: int = 1000,
        n_abandoned_carts: int = 80,
        days: int = 90,
    ) -> DemoDataset:
        """Generate a complete, internally consistent dataset"""
        customers = self.customers(n_customers, days)
        products = self.products(n_products)
        partners = self.delivery_partners()
        orders, items = self.orders(n_orders, days, customers, products, partners)

        return DemoDataset(
            customers=self._with_lifetime_totals(customers, orders),
            products=products,
            delivery_partners=partners,
            orders=orders,
            order_items=items,
            abandoned_carts=self.abandoned_carts(n_abandoned_carts, days),
        )
