"""
Product reviews and the list of orders that have already been reviewed.

Reviews are stored per product, newest first, and are never edited.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from errors import PreconditionError, StorageError, ValidationError
from orders import OrderLedger
from schemas import Order, OrderStatus, Review
from storage import Storage, load_json, save_json

logger = logging.getLogger(__name__)

REVIEWED_ORDERS_KEY = "sustainSportsReviewedOrders"


def reviews_key(product_id: str) -> str:
    return f"reviews_{product_id}"


class ReviewStore:

    def __init__(self, storage: Storage):
        self.storage = storage

    def list(self, product_id: str) -> List[Review]:
        return [Review.model_validate(d) for d in load_json(self.storage, reviews_key(product_id), [])]

    def build(self, product_id: str, name: str, rating: int, comment: str, verified: bool = True,
              user_id: Optional[str] = None, now: Optional[datetime] = None) -> Review:
        """Validate the input and return an unsaved Review."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if not name or not name.strip() or not comment or not comment.strip():
            raise ValidationError("Please provide a rating, name, and comment.")
        now = now or datetime.now(timezone.utc)
        return Review(
            id=int(now.timestamp() * 1000),
            product_id=product_id,
            name=name.strip(),
            rating=rating,
            comment=comment.strip(),
            date=now,
            verified=verified,
            user_id=user_id,
        )

    def save(self, review: Review) -> bool:
        key = reviews_key(review.product_id)
        existing = load_json(self.storage, key, [])
        try:
            save_json(self.storage, key, [review.model_dump(mode="json")] + existing)
        except StorageError as e:
            logger.warning("Review for %s not saved: %s", review.product_id, e)
            return False
        return True

    def add(self, product_id: str, name: str, rating: int, comment: str, verified: bool = True,
            user_id: Optional[str] = None, now: Optional[datetime] = None) -> Optional[Review]:
        """Validate and store a review. Returns None if it could not be written."""
        review = self.build(product_id, name, rating, comment, verified=verified, user_id=user_id, now=now)
        return review if self.save(review) else None


class ReviewedOrders:

    def __init__(self, storage: Storage):
        self.storage = storage

    def ids(self) -> List[str]:
        return load_json(self.storage, REVIEWED_ORDERS_KEY, [])

    def contains(self, order_id: str) -> bool:
        return order_id in self.ids()

    def _write(self, ids: List[str]) -> bool:
        try:
            save_json(self.storage, REVIEWED_ORDERS_KEY, ids)
        except StorageError as e:
            logger.warning("Reviewed orders not saved: %s", e)
            return False
        return True

    def mark(self, order_id: str) -> bool:
        ids = self.ids()
        if order_id in ids:
            return True
        return self._write(ids + [order_id])

    def unmark(self, order_id: str) -> bool:
        ids = self.ids()
        if order_id not in ids:
            return True
        return self._write([i for i in ids if i != order_id])


def can_review(order: Order, reviewed: ReviewedOrders) -> bool:
    return order.status == OrderStatus.DELIVERED and bool(order.items) and not reviewed.contains(order.id)


def review_order_item(ledger: OrderLedger, reviews: ReviewStore, reviewed: ReviewedOrders,
                      order_id: str, email: str, product_id: str, author: str, rating: int,
                      comment: str, user_id: Optional[str] = None) -> Optional[Review]:
    """Post a verified review for an item of a delivered order and mark the order reviewed.

    The order is marked before the review is written and unmarked again if that
    write fails, so a stored verified review always has a marked order. Returns
    None when either write fails.
    """
    order = ledger.get(order_id, email)
    if not can_review(order, reviewed):
        raise PreconditionError(f"Order {order_id} cannot be reviewed")
    if not any(item.id == product_id for item in order.items):
        raise ValidationError(f"Product {product_id} is not part of order {order_id}")
    review = reviews.build(product_id, author, rating, comment, verified=True, user_id=user_id)
    if not reviewed.mark(order_id):
        return None
    if not reviews.save(review):
        if not reviewed.unmark(order_id):
            logger.error("Order %s left marked reviewed without a review", order_id)
        return None
    logger.info("Review %s posted for product %s from order %s", review.id, product_id, order_id)
    return review
