"""
Catalog snapshot and the product filter/sort pipeline.

Products are plain dicts as served by GET /api/products: `name`,
`description`, `price`, `rating` and a `category` that is either a category id
or a populated `{"id", "name"}` mapping.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

ALL_CATEGORIES = "all"


class SortKey(str, Enum):
    NAME = "name"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    RATING = "rating"


@dataclass
class CatalogQuery:
    term: str = ""
    category: str = ALL_CATEGORIES
    min_price: float = 0.0
    max_price: float = math.inf
    sort: SortKey = SortKey.NAME


def category_id(product: Dict[str, Any]) -> Optional[str]:
    category = product.get("category")
    if isinstance(category, dict):
        return category.get("id")
    return category


def _matches(product: Dict[str, Any], term: str, query: CatalogQuery) -> bool:
    if term:
        name = (product.get("name") or "").lower()
        description = (product.get("description") or "").lower()
        if term not in name and term not in description:
            return False
    if query.category != ALL_CATEGORIES and category_id(product) != query.category:
        return False
    return query.min_price <= product.get("price", 0) <= query.max_price


def filter_products(products: Iterable[Dict[str, Any]], query: Optional[CatalogQuery] = None) -> List[Dict[str, Any]]:
    """Return the products matching `query`, ordered by its sort key.

    Sorting is stable, so products that tie on the key keep their catalog order.
    """
    query = query or CatalogQuery()
    term = query.term.lower()
    result = [p for p in products if _matches(p, term, query)]

    sort = SortKey(query.sort)
    if sort == SortKey.PRICE_LOW:
        result.sort(key=lambda p: p.get("price", 0))
    elif sort == SortKey.PRICE_HIGH:
        result.sort(key=lambda p: p.get("price", 0), reverse=True)
    elif sort == SortKey.RATING:
        result.sort(key=lambda p: p.get("rating", 0), reverse=True)
    else:
        result.sort(key=lambda p: (p.get("name") or "").casefold())
    return result


@dataclass
class CatalogSnapshot:
    products: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[Dict[str, Any]] = field(default_factory=list)

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        for p in self.products:
            if p.get("id") == product_id:
                return p
        return None

    def get_category(self, cat_id: str) -> Optional[Dict[str, Any]]:
        for c in self.categories:
            if c.get("id") == cat_id:
                return c
        return None

    def search(self, query: Optional[CatalogQuery] = None) -> List[Dict[str, Any]]:
        return filter_products(self.products, query)
