"""
Catalog Router.
Public listing of flavors (with per-size availability badges) and products.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import FlavorSize
from shared.infrastructure.db import get_db
from shared.utils.schemas import FlavorOutput, ProductOutput
from shop_api.models import Flavor, Product
from shop_api.services.domain import SiteSettings
from shop_api.services.domain.stock_policy import availability_status


router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get("/flavors", response_model=list[FlavorOutput])
def list_flavors(db: Session = Depends(get_db)) -> list[FlavorOutput]:
    mode = SiteSettings(db).get_order_mode()
    flavors = db.scalars(
        select(Flavor).where(Flavor.is_active.is_(True)).order_by(Flavor.name)
    ).all()
    return [
        FlavorOutput(
            id=flavor.id,
            name=flavor.name,
            description=flavor.description,
            category=flavor.category,
            mini_price_cents=flavor.mini_price_cents,
            medium_price_cents=flavor.medium_price_cents,
            large_price_cents=flavor.large_price_cents,
            stock_quantity_mini=flavor.stock_quantity_mini,
            stock_quantity_medium=flavor.stock_quantity_medium,
            stock_quantity_large=flavor.stock_quantity_large,
            availability={
                size.value: availability_status(flavor.stock_for(size), mode)
                for size in FlavorSize
            },
        )
        for flavor in flavors
    ]


@router.get("/products", response_model=list[ProductOutput])
def list_products(db: Session = Depends(get_db)) -> list[ProductOutput]:
    products = db.scalars(
        select(Product)
        .where(Product.is_active.is_(True))
        .order_by(Product.display_order, Product.id)
    ).all()
    return [ProductOutput.model_validate(product) for product in products]
