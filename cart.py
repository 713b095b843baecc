"""
Shopping cart held on the client.

Lines are keyed by product id and keep the price captured when the product was
added. The cart is written to storage after every change.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from errors import StorageError
from schemas import CartLine, ProductSnapshot
from storage import Storage, load_json, save_json

logger = logging.getLogger(__name__)

CART_KEY = "sustainSportsCart"


def snapshot_product(product: Union[ProductSnapshot, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(product, BaseModel):
        product = product.model_dump()
    return ProductSnapshot.model_validate(product).model_dump()


class Cart:

    def __init__(self, storage: Storage):
        self.storage = storage
        self._lines: List[CartLine] = [CartLine.model_validate(d) for d in load_json(storage, CART_KEY, [])]

    @property
    def lines(self) -> List[CartLine]:
        return [line.model_copy() for line in self._lines]

    def _find(self, product_id: str) -> Optional[CartLine]:
        for line in self._lines:
            if line.id == product_id:
                return line
        return None

    def _commit(self, previous: List[CartLine]) -> bool:
        try:
            save_json(self.storage, CART_KEY, [line.model_dump() for line in self._lines])
        except StorageError as e:
            logger.warning("Cart not saved, reverting: %s", e)
            self._lines = previous
            return False
        return True

    def _snapshot(self) -> List[CartLine]:
        return [line.model_copy() for line in self._lines]

    def add(self, product: Union[ProductSnapshot, Dict[str, Any]], quantity: int = 1) -> bool:
        quantity = max(1, int(quantity))
        snap = snapshot_product(product)
        previous = self._snapshot()
        line = self._find(snap["id"])
        if line is not None:
            line.quantity += quantity
        else:
            self._lines.append(CartLine(**snap, quantity=quantity))
        return self._commit(previous)

    def remove(self, product_id: str) -> bool:
        previous = self._snapshot()
        self._lines = [line for line in self._lines if line.id != product_id]
        return self._commit(previous)

    def set_quantity(self, product_id: str, quantity: int) -> bool:
        line = self._find(product_id)
        if line is None:
            return False
        previous = self._snapshot()
        line.quantity = max(1, int(quantity))
        return self._commit(previous)

    def clear(self) -> bool:
        previous = self._snapshot()
        self._lines = []
        return self._commit(previous)

    def total(self) -> float:
        return round(sum(line.line_total for line in self._lines), 2)

    def count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def __len__(self) -> int:
        return len(self._lines)
