"""Errors raised by the client-held storefront state (cart, orders, reviews)."""


class StoreError(Exception):
    """Base class for storefront state errors."""


class NotFoundError(StoreError):
    pass


class ValidationError(StoreError):
    pass


class PreconditionError(StoreError):
    pass


class InvalidTransitionError(PreconditionError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from {current} to {target}")


class StorageError(StoreError):
    """The storage backend could not read or write a key."""


class CheckoutError(StoreError):
    pass
