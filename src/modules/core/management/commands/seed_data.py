from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.farmers.models import Farmer
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, DeliveryAddressDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product, ProductStatus
from modules.products.repositories.django_repository import ProductDjangoRepository
from shared.infrastructure.bus import InMemoryEventBus

# Status paths walked after creation; the first element is the final status.
STATUS_PATHS = [
    (OrderStatus.PENDING, []),
    (OrderStatus.PROCESSING, [OrderStatus.PROCESSING]),
    (OrderStatus.SHIPPED, [OrderStatus.PROCESSING, OrderStatus.SHIPPED]),
    (
        OrderStatus.DELIVERED,
        [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED],
    ),
    (OrderStatus.CANCELLED, [OrderStatus.CANCELLED]),
]


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=20)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        farmers = self._seed_farmers()
        products = self._seed_products(farmers)
        orders_created = self._seed_orders(products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"farmers={len(farmers)}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="customer").exists():
            User.objects.create_user(
                "customer", email="customer@example.com", password="customer123"
            )
            created += 1
        return created

    def _seed_farmers(self) -> list[Farmer]:
        self.stdout.write("Creating farmers...")
        seed_farmers = [
            ("Adaeze Okafor", "Green Valley Farms", "Enugu", "+2348030000001", True),
            ("Musa Bello", "Sahel Grains", "Kano", "+2348030000002", True),
            ("Funmi Adeyemi", "Sunrise Poultry", "Oyo", "+2348030000003", True),
            ("Chidi Nwosu", "Delta Fisheries", "Delta", "+2348030000004", False),
        ]
        farmers: list[Farmer] = []
        for name, farm_name, location, phone, verified in seed_farmers:
            email = f"{name.split()[0].lower()}@example.com"
            farmer, _ = Farmer.objects.get_or_create(
                email=email,
                defaults={
                    "name": name,
                    "farm_name": farm_name,
                    "location": location,
                    "phone": phone,
                    "is_verified": verified,
                    "verification_date": timezone.now() if verified else None,
                },
            )
            farmers.append(farmer)
        self.stdout.write(self.style.SUCCESS("Creating farmers... Done!"))
        return farmers

    def _seed_products(self, farmers: list[Farmer]) -> list[Product]:
        self.stdout.write("Creating products...")
        catalog = [
            (0, "Tomatoes", "basket", Decimal("4500.00")),
            (0, "Sweet Peppers", "kg", Decimal("1200.00")),
            (1, "Maize", "bag", Decimal("28000.00")),
            (1, "Sorghum", "bag", Decimal("26000.00")),
            (2, "Eggs", "crate", Decimal("3200.00")),
            (2, "Broiler Chicken", "bird", Decimal("7500.00")),
            (3, "Smoked Catfish", "kg", Decimal("6000.00")),
        ]
        products: list[Product] = []
        for farmer_index, name, unit, price in catalog:
            product, _ = Product.objects.get_or_create(
                farmer=farmers[farmer_index],
                name=name,
                defaults={
                    "unit": unit,
                    "price": price,
                    "stock_quantity": random.randint(50, 200),
                    "status": ProductStatus.ACTIVE,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, products: list[Product], count: int) -> int:
        self.stdout.write("Creating orders...")
        orderable = [p for p in products if p.farmer.is_verified]
        if not orderable:
            self.stdout.write(self.style.WARNING("Skipping orders (no orderable products)."))
            return 0

        # A private bus: seeded history must not notify anyone.
        service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            event_bus=InMemoryEventBus(),
        )
        customers = [
            ("Ana Eze", "ana@example.com", "+2348090000001", "Lagos", "Lagos"),
            ("Bayo Ojo", "bayo@example.com", "+2348090000002", "Ibadan", "Oyo"),
            ("Grace Udo", "grace@example.com", "+2348090000003", "Abuja", "FCT"),
        ]

        created_count = 0
        for i in range(count):
            name, email, phone, city, state = random.choice(customers)
            product = random.choice(orderable)
            dto = CreateOrderDTO(
                customer_name=name,
                customer_email=email,
                customer_phone=phone,
                product_id=product.id,
                quantity=random.randint(1, 3),
                delivery_address=DeliveryAddressDTO(
                    address=f"{i + 1} Market Road", city=city, state=state
                ),
                idempotency_key=f"seed-{i + 1}",
            )
            order, created = service.create_order(dto)
            if not created:
                continue

            _, path = random.choice(STATUS_PATHS)
            for target in path:
                service.transition(order.id, target, note="Seeded transition")
            created_count += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return created_count
