"""Order lifecycle constants: statuses and the allowed transitions between them."""
import enum


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


VALID_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

TERMINAL_STATES: set[OrderStatus] = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

CANCELLABLE_STATES: set[OrderStatus] = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Orders that may still receive payments
PAYABLE_STATES: set[OrderStatus] = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

ORDER_NUMBER_MAX_RETRIES = 5


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())
