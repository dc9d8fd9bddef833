"""
Seed data for development and testing.
Creates a small catalog (flavors, packs), delivery zones, kitchens,
a delivery man, promo codes and the default site settings.

Idempotent: nothing is inserted when flavors already exist.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import DiscountType, FlavorSize, OrderMode, PromoType
from shared.config.logging import get_logger
from shared.infrastructure.db import transaction
from shop_api.models import DeliveryMan, Flavor, Kitchen, Product, PromoCode, Zone
from shop_api.services.domain.site_settings_service import CancellationPolicy, SiteSettings
from shop_api.services.domain.stock_service import StockService

logger = get_logger(__name__)


# (name, category, mini, medium, large prices in piastres, mini, medium, large stock)
SEED_FLAVORS = [
    ("Chocolate Chip", "classic", 2500, 4500, 6500, 40, 30, 20),
    ("Red Velvet", "classic", 2800, 5000, 7000, 30, 25, 15),
    ("Lotus Biscoff", "signature", 3000, 5500, 7500, 25, 20, 10),
    ("Pistachio Kunafa", "signature", 3500, 6000, 8500, 20, 15, 8),
    ("Salted Caramel", "seasonal", 3000, 5500, 7500, 0, 10, 5),
]

# (name, product_type, is_pack, flavor_size, count, base price)
SEED_PRODUCTS = [
    ("Single Large Cookie", "pack", True, FlavorSize.LARGE.value, 1, 0),
    ("Box of 4 Medium", "pack", True, FlavorSize.MEDIUM.value, 4, 0),
    ("Box of 6 Mini", "pack", True, FlavorSize.MINI.value, 6, 0),
    ("Mixed Box of 3", "pack", True, None, 3, 1000),
    ("Gift Wrapping", "extra", False, None, 1, 1500),
]

# (name, city, delivery fee)
SEED_ZONES = [
    ("Zamalek", "Cairo", 3000),
    ("Maadi", "Cairo", 4000),
    ("Dokki", "Giza", 3500),
]

SEED_KITCHENS = [
    ("Zamalek Kitchen", 15, "01000000001"),
    ("Maadi Kitchen", 10, "01000000002"),
]


def seed_catalog(db: Session) -> None:
    stock = StockService(db)
    for name, category, mini, medium, large, s_mini, s_medium, s_large in SEED_FLAVORS:
        flavor = Flavor(
            name=name,
            category=category,
            mini_price_cents=mini,
            medium_price_cents=medium,
            large_price_cents=large,
            stock_quantity_mini=s_mini,
            stock_quantity_medium=s_medium,
            stock_quantity_large=s_large,
        )
        db.add(flavor)
        db.flush()
        # The ledger starts at the initial counters so it always sums to them
        stock.record_initial_stock(flavor, changed_by="seed")

    for order, (name, product_type, is_pack, flavor_size, count, price) in enumerate(SEED_PRODUCTS):
        db.add(
            Product(
                name=name,
                product_type=product_type,
                is_pack=is_pack,
                flavor_size=flavor_size,
                count=count,
                base_price_cents=price,
                display_order=order,
            )
        )


def seed_logistics(db: Session) -> None:
    db.add_all(Zone(name=name, city=city, delivery_fee_cents=fee) for name, city, fee in SEED_ZONES)
    db.add_all(
        Kitchen(name=name, capacity=capacity, phone=phone) for name, capacity, phone in SEED_KITCHENS
    )
    db.add(DeliveryMan(name="Ahmed Hassan", phone="01100000001"))


def seed_promo_codes(db: Session) -> None:
    db.add_all([
        PromoCode(
            code="WELCOME10",
            name="10% off your first order",
            enhanced_type=PromoType.FIRST_TIME_CUSTOMER,
            discount_type=DiscountType.PERCENTAGE,
            discount_value=10,
            maximum_discount_cents=5000,
        ),
        PromoCode(
            code="FREESHIP",
            name="Free delivery",
            enhanced_type=PromoType.FREE_DELIVERY,
            discount_type=DiscountType.FIXED_AMOUNT,
            discount_value=0,
            minimum_order_cents=20000,
        ),
    ])


def seed(db: Session) -> None:
    """Seed development data unless the catalog already exists."""
    if db.scalar(select(Flavor.id).limit(1)):
        logger.info("Database already seeded, skipping")
        return

    with transaction(db):
        seed_catalog(db)
        seed_logistics(db)
        seed_promo_codes(db)

    settings_accessor = SiteSettings(db)
    settings_accessor.set_order_mode(OrderMode.STOCK_BASED)
    settings_accessor.set_cancellation_policy(CancellationPolicy())

    logger.info(
        "Seed data created",
        flavors=len(SEED_FLAVORS),
        products=len(SEED_PRODUCTS),
        zones=len(SEED_ZONES),
        kitchens=len(SEED_KITCHENS),
    )
