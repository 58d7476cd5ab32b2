"""Domain error taxonomy.

Services raise these when a business rule is violated. Every FastAPI app
registers ``register_error_handlers`` so the caller receives the status code
of the error class and a ``{"detail", "code"}`` body.
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class ERPError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    @property
    def code(self) -> str:
        return self.__class__.__name__


# --- NotFound ---

class NotFound(ERPError):
    status_code = status.HTTP_404_NOT_FOUND


class CustomerNotFound(NotFound):
    """The customer does not exist or is not a customer account."""


class ProductNotFound(NotFound):
    pass


class OrderNotFound(NotFound):
    pass


class PaymentNotFound(NotFound):
    pass


class UserNotFound(NotFound):
    pass


# --- Validation ---

class ValidationFailed(ERPError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmount(ValidationFailed):
    pass


class InvalidQuantity(ValidationFailed):
    pass


class InvalidPrice(ValidationFailed):
    pass


class WeakPassword(ValidationFailed):
    pass


class UnsupportedPaymentMethod(ValidationFailed):
    pass


# --- Conflict ---

class Conflict(ERPError):
    """A request that is well-formed but clashes with current state."""
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStock(Conflict):
    pass


class ProductInactive(Conflict):
    """A product referenced by an order or reservation is deactivated."""


# Inventory ledger name for the same condition
InactiveProduct = ProductInactive


class InvalidTransition(Conflict):
    pass


class OrderNotEditable(Conflict):
    pass


class OrderNotCancellable(Conflict):
    pass


class OrderNotPayable(Conflict):
    pass


class OverpaymentNotAllowed(Conflict):
    pass


class UnderpaymentNotAllowed(Conflict):
    pass


class PaymentNotRefundable(Conflict):
    pass


class RefundExceedsPayment(Conflict):
    pass


class RefundFailed(Conflict):
    pass


class DuplicateSku(Conflict):
    status_code = status.HTTP_409_CONFLICT


class EmailAlreadyRegistered(Conflict):
    status_code = status.HTTP_409_CONFLICT


class OrderNumberCollision(Conflict):
    status_code = status.HTTP_409_CONFLICT


# --- Auth ---

class Unauthorized(ERPError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(ERPError):
    status_code = status.HTTP_403_FORBIDDEN


# --- External ---

class GatewayError(ERPError):
    """A payment gateway rejected or failed a charge/refund call."""
    status_code = status.HTTP_502_BAD_GATEWAY


async def erp_error_handler(request: Request, exc: ERPError) -> JSONResponse:
    logger.info(
        "request_rejected",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        detail=exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ERPError, erp_error_handler)
