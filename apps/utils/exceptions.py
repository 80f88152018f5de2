from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    Expected outcome: always rolled back, shown to the caller, never logged as a fault.
    """
    default_code = "business_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code=None, **details):
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(message)


class ValidationError(BusinessLogicException):
    """Malformed input. Raised before any transaction is opened."""
    default_code = "validation_error"


class ProductNotFound(BusinessLogicException):
    default_code = "product_not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found", product_id=product_id)


class InsufficientStock(BusinessLogicException):
    default_code = "insufficient_stock"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, product_id, requested, available=None, product_name=None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        label = product_name or f"product {product_id}"
        message = f"Insufficient stock for {label}. Requested: {requested}"
        if available is not None:
            message += f", Available: {available}"
        super().__init__(
            message, product_id=product_id, requested=requested, available=available
        )


class OrderNotFound(BusinessLogicException):
    default_code = "order_not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class AccessDenied(BusinessLogicException):
    default_code = "access_denied"
    http_status = status.HTTP_403_FORBIDDEN

    def __init__(self, message="Access denied"):
        super().__init__(message)


class InvalidTransition(BusinessLogicException):
    default_code = "invalid_transition"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move order from '{current}' to '{requested}'",
            current=current, requested=requested,
        )


class OrderNotCancellable(BusinessLogicException):
    default_code = "order_not_cancellable"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, order_id, current):
        self.order_id = order_id
        self.current = current
        super().__init__(
            "Order cannot be cancelled at this stage",
            order_id=order_id, status=current,
        )


class TransientStoreError(Exception):
    """
    Deadlock / serialization failure / lost connection that survived the retry.
    NOT a business error: the caller should simply try again.
    """
    code = "transient_store_error"

    def __init__(self, message="Temporary storage failure. Please try again."):
        self.message = message
        super().__init__(message)


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        body = {"error": exc.message, "code": exc.code}
        if exc.details:
            body["details"] = {k: v for k, v in exc.details.items() if v is not None}
        return Response(body, status=exc.http_status)

    if isinstance(exc, TransientStoreError):
        return Response(
            {"error": exc.message, "code": exc.code},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
