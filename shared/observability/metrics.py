from prometheus_client import Counter, Histogram, Gauge

# Business metrics
erp_orders_created_total = Counter(
    "erp_orders_created_total",
    "Orders successfully created",
)

erp_order_transitions_total = Counter(
    "erp_order_transitions_total",
    "Order status transitions",
    ["from_status", "to_status"],
)

erp_stock_reservations_total = Counter(
    "erp_stock_reservations_total",
    "Inventory ledger reservations",
    ["outcome"],  # reserved, insufficient, inactive
)

erp_payments_total = Counter(
    "erp_payments_total",
    "Payments by method and resulting status",
    ["method", "status"],
)

erp_refunds_total = Counter(
    "erp_refunds_total",
    "Refunds by method and resulting status",
    ["method", "status"],
)

erp_gateway_call_duration_seconds = Histogram(
    "erp_gateway_call_duration_seconds",
    "Latency of payment gateway calls",
    ["gateway", "operation"],
)

erp_notifications_failed_total = Counter(
    "erp_notifications_failed_total",
    "Notification events that could not be delivered",
    ["event"],
)

erp_websocket_connections = Gauge(
    "erp_websocket_connections",
    "Open notification WebSocket connections",
)
