from datetime import datetime, timezone

import pytest

from errors import NotFoundError, PreconditionError, ValidationError
from orders import OrderLedger
from reviews import REVIEWED_ORDERS_KEY, ReviewedOrders, ReviewStore, can_review, review_order_item, reviews_key
from schemas import BillingAddress, CartLine, Order, OrderStatus, ShippingAddress
from storage import MemoryStorage
from wishlist import WISHLIST_KEY, Wishlist


def delivered_order(order_id="SS-DONE", status=OrderStatus.DELIVERED):
    return Order(
        id=order_id,
        user_email="sam@greenmail.org",
        date=datetime(2026, 8, 1, tzinfo=timezone.utc),
        status=status,
        items=[CartLine(id="mat", name="Eco Bamboo Yoga Mat", price=89.99)],
        subtotal=89.99,
        tax=7.2,
        total=97.19,
        shipping_address=ShippingAddress(name="Sam Rivera", address="12 Fern St"),
        billing_address=BillingAddress(name="S RIVERA", address="12 Fern St"),
        payment_method="Card ending in 1234",
    )


def test_reviews_are_kept_per_product_newest_first(storage):
    store = ReviewStore(storage)
    first = store.add("mat", "Lee", 5, "Great grip", now=datetime(2026, 7, 1, tzinfo=timezone.utc))
    second = store.add("mat", "Ana", 4, "Smells like bamboo", now=datetime(2026, 7, 2, tzinfo=timezone.utc))
    store.add("ball", "Kai", 3, "Okay", verified=False)

    assert [r.id for r in store.list("mat")] == [second.id, first.id]
    assert [r.name for r in store.list("ball")] == ["Kai"]
    assert store.list("rope") == []
    assert storage.get_item(reviews_key("mat")) is not None


@pytest.mark.parametrize("rating, name, comment", [
    (0, "Lee", "ok"), (6, "Lee", "ok"), (True, "Lee", "ok"), (4.5, "Lee", "ok"), (4, " ", "ok"), (4, "Lee", ""),
])
def test_review_validation(storage, rating, name, comment):
    with pytest.raises(ValidationError):
        ReviewStore(storage).add("mat", name, rating, comment)


def test_review_order_item_marks_order(storage):
    ledger = OrderLedger(storage)
    ledger.append(delivered_order())
    reviews, reviewed = ReviewStore(storage), ReviewedOrders(storage)

    assert can_review(ledger.get("SS-DONE", "sam@greenmail.org"), reviewed)
    review = review_order_item(ledger, reviews, reviewed, "SS-DONE", "sam@greenmail.org", "mat",
                               "Sam", 5, "Love it", user_id="u1")
    assert review.verified is True
    assert reviewed.ids() == ["SS-DONE"]
    assert not can_review(ledger.get("SS-DONE", "sam@greenmail.org"), reviewed)

    with pytest.raises(PreconditionError):
        review_order_item(ledger, reviews, reviewed, "SS-DONE", "sam@greenmail.org", "mat", "Sam", 4, "Again")


def test_only_delivered_owned_orders_can_be_reviewed(storage):
    ledger = OrderLedger(storage)
    ledger.append(delivered_order("SS-SHIP", status=OrderStatus.SHIPPED))
    ledger.append(delivered_order("SS-DONE"))
    reviews, reviewed = ReviewStore(storage), ReviewedOrders(storage)

    with pytest.raises(PreconditionError):
        review_order_item(ledger, reviews, reviewed, "SS-SHIP", "sam@greenmail.org", "mat", "Sam", 5, "Nice")
    with pytest.raises(NotFoundError):
        review_order_item(ledger, reviews, reviewed, "SS-DONE", "kai@greenmail.org", "mat", "Kai", 5, "Nice")
    with pytest.raises(ValidationError):
        review_order_item(ledger, reviews, reviewed, "SS-DONE", "sam@greenmail.org", "ball", "Sam", 5, "Nice")
    assert reviewed.ids() == []


def test_wishlist_ignores_duplicates(storage):
    wishlist = Wishlist(storage)
    assert wishlist.add({"id": "mat", "name": "Eco Bamboo Yoga Mat", "price": 89.99, "rating": 4.8})
    assert not wishlist.add({"id": "mat", "name": "Eco Bamboo Yoga Mat", "price": 79.99})
    assert wishlist.add({"id": "ball", "name": "Recycled Soccer Ball", "price": 34.99})
    assert [i.id for i in wishlist.items()] == ["mat", "ball"]
    assert wishlist.items()[0].price == 89.99

    wishlist.remove("mat")
    assert not wishlist.contains("mat")
    assert Wishlist(storage).contains("ball")


def test_unmarkable_order_stores_no_review(locked_storage):
    ledger = OrderLedger(locked_storage)
    ledger.append(delivered_order())
    reviews, reviewed = ReviewStore(locked_storage), ReviewedOrders(locked_storage)
    locked_storage.locked.add(REVIEWED_ORDERS_KEY)

    assert review_order_item(ledger, reviews, reviewed, "SS-DONE", "sam@greenmail.org", "mat",
                             "Sam", 5, "Love it") is None
    assert reviews.list("mat") == []
    assert reviewed.ids() == []


def test_failed_review_write_unmarks_order(locked_storage):
    ledger = OrderLedger(locked_storage)
    ledger.append(delivered_order())
    reviews, reviewed = ReviewStore(locked_storage), ReviewedOrders(locked_storage)
    locked_storage.locked.add(reviews_key("mat"))

    assert review_order_item(ledger, reviews, reviewed, "SS-DONE", "sam@greenmail.org", "mat",
                             "Sam", 5, "Love it") is None
    assert reviews.list("mat") == []
    assert can_review(ledger.get("SS-DONE", "sam@greenmail.org"), reviewed)

    locked_storage.locked.clear()
    review = review_order_item(ledger, reviews, reviewed, "SS-DONE", "sam@greenmail.org", "mat",
                               "Sam", 5, "Love it")
    assert [r.id for r in reviews.list("mat")] == [review.id]
    assert reviewed.ids() == ["SS-DONE"]


def test_review_store_reports_failed_write(locked_storage):
    locked_storage.locked.add(reviews_key("mat"))
    assert ReviewStore(locked_storage).add("mat", "Lee", 5, "Great grip") is None


def test_wishlist_reports_failed_writes(locked_storage):
    assert not Wishlist(MemoryStorage(quota=10)).add({"id": "mat", "name": "Eco Bamboo Yoga Mat", "price": 89.99})

    wishlist = Wishlist(locked_storage)
    assert wishlist.add({"id": "mat", "name": "Eco Bamboo Yoga Mat", "price": 89.99})
    locked_storage.locked.add(WISHLIST_KEY)
    assert not wishlist.add({"id": "ball", "name": "Recycled Soccer Ball", "price": 34.99})
    assert not wishlist.remove("mat")
    assert [i.id for i in wishlist.items()] == ["mat"]
