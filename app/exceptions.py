"""
Domain errors raised by the order, payment and inventory services.

Each error carries the HTTP status the API answers with and a message that
is safe to show to the caller. The handlers in ``app.main`` turn them into
``{"message": ...}`` responses.
"""


class StoreError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(StoreError):
    status_code = 400
    message = "Invalid request"


class MissingFieldsError(ValidationError):
    message = "Missing required payment fields"


class EmptyCartError(ValidationError):
    message = "Cart is empty"


class NotFoundError(StoreError):
    status_code = 404
    message = "Not found"


class ProductNotFoundError(NotFoundError):
    message = "Product not found"


class ForbiddenError(StoreError):
    status_code = 403
    message = "Forbidden"


class ConflictError(StoreError):
    status_code = 409
    message = "Conflict"


class DuplicateStockAdjustmentError(ConflictError):
    message = "Stock already adjusted for this order line"


class InsufficientStockError(StoreError):
    status_code = 400

    def __init__(self, product_name: str, available: int = None, requested: int = None):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for product: {product_name}")


class InvalidTransitionError(StoreError):
    status_code = 400
    message = "Invalid status transition"


# Payment verification failures keep a generic message on purpose.
class InvalidSignatureError(StoreError):
    status_code = 400
    message = "Payment verification failed"


class PaymentNotCapturedError(StoreError):
    status_code = 400
    message = "Payment not captured"


class ProviderError(StoreError):
    status_code = 502
    message = "Payment provider unavailable. Please try again."
