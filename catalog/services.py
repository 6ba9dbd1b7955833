from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .models import Product


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: str
    seller_id: str
    category_id: Optional[str]
    name: str
    unit_price: int


def _snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        product_id=str(product.id),
        seller_id=str(product.seller_id),
        category_id=str(product.category_id) if product.category_id else None,
        name=product.name,
        unit_price=int(product.price),
    )


def get_product_snapshots(product_ids: Iterable) -> Dict[str, ProductSnapshot]:
    """Read-only price/seller/category lookup keyed by product id string."""
    ids = set()
    for pid in product_ids:
        try:
            ids.add(str(uuid.UUID(str(pid))))
        except ValueError:
            continue
    if not ids:
        return {}
    products = Product.objects.filter(id__in=ids).only("id", "seller_id", "category_id", "name", "price")
    return {str(product.id): _snapshot(product) for product in products}
