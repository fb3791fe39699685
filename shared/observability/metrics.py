from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_orders_created_total = Counter(
    "ecomm_orders_created_total",
    "Total checkouts that produced an order",
    ["customer_type"] # Labels: 'guest', 'registered'
)

ecomm_order_creation_duration_seconds = Histogram(
    "ecomm_order_creation_duration_seconds",
    "Time spent validating and persisting an order"
)

ecomm_order_status_changes_total = Counter(
    "ecomm_order_status_changes_total",
    "Order status updates applied by admins",
    ["status"] # Labels: the new status
)

ecomm_order_number_collisions_total = Counter(
    "ecomm_order_number_collisions_total",
    "Generated order numbers that were already taken"
)

ecomm_stats_cache_requests_total = Counter(
    "ecomm_stats_cache_requests_total",
    "Stats snapshot lookups against the cache",
    ["cache", "result"] # Labels: cache='order_stats'|'dashboard_stats', result='hit'|'miss'
)
