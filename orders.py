"""
Order ledger kept in client-side storage.

Every order placed on this installation lives in one JSON list under
ORDERS_KEY, newest first. Orders are never deleted; they only move through
the status machine below.
"""
import logging
from typing import Dict, FrozenSet, List, Optional, Union

import pydantic

from errors import InvalidTransitionError, NotFoundError, StorageError, ValidationError
from schemas import Order, OrderStatus
from storage import Storage, load_json, save_json

logger = logging.getLogger(__name__)

ORDERS_KEY = "sustainSportsUserOrders"

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

_UNSET = object()


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status value: {value!r}")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def validate_transition(current: OrderStatus, target: Union[str, OrderStatus]) -> OrderStatus:
    target = parse_status(target)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)
    return target


def _newest_first(orders: List[Order]) -> List[Order]:
    return sorted(orders, key=lambda o: o.date, reverse=True)


class OrderLedger:

    def __init__(self, storage: Storage):
        self.storage = storage

    def _load(self) -> List[Order]:
        try:
            return [Order.model_validate(d) for d in load_json(self.storage, ORDERS_KEY, [])]
        except pydantic.ValidationError as e:
            raise StorageError(f"Corrupt order ledger: {e}") from e

    def _save(self, orders: List[Order]) -> None:
        save_json(self.storage, ORDERS_KEY, [o.model_dump(mode="json") for o in orders])

    def _replace(self, updated: Order) -> None:
        orders = [updated if o.id == updated.id else o for o in self._load()]
        self._save(orders)

    def append(self, order: Order) -> Order:
        """Prepend `order` to the ledger. Raises StorageError if it cannot be written."""
        self._save([order] + self._load())
        logger.info("Order %s recorded for %s", order.id, order.user_email)
        return order

    def list_all(self) -> List[Order]:
        return _newest_first(self._load())

    def list_for_user(self, email: str) -> List[Order]:
        return _newest_first([o for o in self._load() if o.user_email == email])

    def get(self, order_id: str, email: str) -> Order:
        """Return the order if it exists and belongs to `email`.

        An order owned by someone else is reported exactly like a missing one.
        """
        for o in self._load():
            if o.id == order_id and o.user_email == email:
                return o
        raise NotFoundError(f"Order {order_id} not found")

    def search(self, email: str, term: str) -> List[Order]:
        term = term.lower()
        return [
            o for o in self.list_for_user(email)
            if term in o.id.lower() or any(term in item.name.lower() for item in o.items)
        ]

    def cancel(self, order_id: str, email: str, reason: str) -> Order:
        if not reason or not reason.strip():
            raise ValidationError("Please provide a reason for the cancellation.")
        order = self.get(order_id, email)
        validate_transition(order.status, OrderStatus.CANCELLED)
        updated = order.model_copy(update={"status": OrderStatus.CANCELLED, "cancellation_reason": reason.strip()})
        self._replace(updated)
        logger.info("Order %s cancelled by %s", order_id, email)
        return updated

    def admin_update(self, order_id: str, *, status: Optional[Union[str, OrderStatus]] = None,
                     tracking_number=_UNSET) -> Order:
        """Save an admin edit to an order.

        Status changes follow the transition table but need no reason. Passing
        tracking_number=None clears it; leaving it out keeps the stored value.
        """
        order = next((o for o in self._load() if o.id == order_id), None)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        changes = {}
        if status is not None:
            target = parse_status(status)
            if target != order.status:
                changes["status"] = validate_transition(order.status, target)
        if tracking_number is not _UNSET:
            changes["tracking_number"] = tracking_number or None
        if not changes:
            return order
        updated = order.model_copy(update=changes)
        self._replace(updated)
        logger.info("Order %s updated by admin: %s", order_id, sorted(changes))
        return updated
