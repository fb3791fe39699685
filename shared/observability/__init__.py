from .setup import setup_observability
from .metrics import (
    ecomm_orders_created_total,
    ecomm_order_creation_duration_seconds,
    ecomm_order_status_changes_total,
    ecomm_order_number_collisions_total,
    ecomm_stats_cache_requests_total
)