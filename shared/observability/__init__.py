from .setup import setup_observability
from .metrics import (
    erp_orders_created_total,
    erp_order_transitions_total,
    erp_stock_reservations_total,
    erp_payments_total,
    erp_refunds_total,
    erp_gateway_call_duration_seconds,
    erp_notifications_failed_total,
    erp_websocket_connections,
)
