"""
Checkout pricing and order placement.

The discount is taken off the subtotal first and tax is charged on what
remains; shipping is always free.
"""
import logging
import random
import string
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from cart import Cart
from errors import CheckoutError
from orders import OrderLedger
from schemas import BillingAddress, Order, OrderStatus, ShippingAddress

logger = logging.getLogger(__name__)

PROMO_PREFIX = "ECO-REWARD-"
PROMO_DISCOUNT_RATE = 0.15
TAX_RATE = 0.08
SHIPPING_COST = 0.0
SHIPPING_METHOD = "Free Shipping"
INVALID_PROMO_MESSAGE = "This code is not valid or has expired."


class PriceQuote(BaseModel):
    subtotal: float
    discount: float = 0.0
    tax: float
    shipping: float = SHIPPING_COST
    total: float
    promo_code: Optional[str] = None
    promo_error: Optional[str] = None


class CheckoutForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    card_number: str = Field(..., min_length=4)
    expiry_date: str = Field(..., min_length=1)
    cvv: str = Field(..., min_length=3)
    name_on_card: str = Field(..., min_length=1)

    @property
    def full_address(self) -> str:
        return f"{self.address}, {self.city}, {self.state} {self.zip_code}"


def is_promo_code(code: str) -> bool:
    return code.strip().upper().startswith(PROMO_PREFIX)


def generate_promo_code() -> str:
    return PROMO_PREFIX + "".join(random.choices(string.ascii_uppercase + string.digits, k=6))


def generate_order_id() -> str:
    return "SS-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=9))


def generate_tracking_number() -> str:
    return "1Z" + "".join(random.choices(string.digits, k=16))


def price_checkout(subtotal: float, promo_code: Optional[str] = None) -> PriceQuote:
    """Price a cart subtotal, applying a reward code if one is given.

    An unrecognised code is not an error: the quote carries `promo_error` and
    no discount. A blank code is ignored.
    """
    subtotal = round(subtotal, 2)
    discount = 0.0
    applied = None
    error = None
    code = (promo_code or "").strip()
    if code:
        if is_promo_code(code):
            discount = round(subtotal * PROMO_DISCOUNT_RATE, 2)
            applied = code.upper()
        else:
            error = INVALID_PROMO_MESSAGE
    tax = round((subtotal - discount) * TAX_RATE, 2)
    total = round(subtotal - discount + tax + SHIPPING_COST, 2)
    return PriceQuote(subtotal=subtotal, discount=discount, tax=tax, total=total,
                      promo_code=applied, promo_error=error)


def place_order(cart: Cart, ledger: OrderLedger, user_email: str, form: CheckoutForm,
                promo_code: Optional[str] = None, now: Optional[datetime] = None) -> Order:
    """Turn the cart into an order and record it.

    The cart is only cleared once the order has been written to the ledger; if
    the ledger write raises StorageError the cart is left as it was.
    """
    if not len(cart):
        raise CheckoutError("Cart is empty")
    quote = price_checkout(cart.total(), promo_code)
    order = Order(
        id=generate_order_id(),
        user_email=user_email,
        date=now or datetime.now(timezone.utc),
        status=OrderStatus.PROCESSING,
        items=cart.lines,
        subtotal=quote.subtotal,
        discount=quote.discount,
        tax=quote.tax,
        shipping=quote.shipping,
        total=quote.total,
        shipping_address=ShippingAddress(name=f"{form.first_name} {form.last_name}", address=form.full_address),
        billing_address=BillingAddress(name=form.name_on_card, address=form.full_address),
        shipping_method=SHIPPING_METHOD,
        payment_method=f"Card ending in {form.card_number[-4:]}",
        tracking_number=generate_tracking_number(),
    )
    ledger.append(order)
    if not cart.clear():
        logger.warning("Order %s placed but the cart could not be cleared", order.id)
    logger.info("Order %s placed by %s for %.2f", order.id, user_email, order.total)
    return order
