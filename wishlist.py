"""Wishlist of product snapshots, persisted client-side."""
import logging
from typing import Any, Dict, List, Union

from cart import snapshot_product
from errors import StorageError
from schemas import ProductSnapshot
from storage import Storage, load_json, save_json

logger = logging.getLogger(__name__)

WISHLIST_KEY = "sustainSportsWishlist"


class Wishlist:

    def __init__(self, storage: Storage):
        self.storage = storage

    def items(self) -> List[ProductSnapshot]:
        return [ProductSnapshot.model_validate(d) for d in load_json(self.storage, WISHLIST_KEY, [])]

    def contains(self, product_id: str) -> bool:
        return any(item.id == product_id for item in self.items())

    def _write(self, items: List[Dict[str, Any]]) -> bool:
        try:
            save_json(self.storage, WISHLIST_KEY, items)
        except StorageError as e:
            logger.warning("Wishlist not saved: %s", e)
            return False
        return True

    def add(self, product: Union[ProductSnapshot, Dict[str, Any]]) -> bool:
        """Add a product; returns False if it was already wishlisted or could not be saved."""
        snap = snapshot_product(product)
        items = load_json(self.storage, WISHLIST_KEY, [])
        if any(d.get("id") == snap["id"] for d in items):
            return False
        return self._write(items + [snap])

    def remove(self, product_id: str) -> bool:
        items = load_json(self.storage, WISHLIST_KEY, [])
        return self._write([d for d in items if d.get("id") != product_id])
