# apps/orders/signals.py
from django.dispatch import Signal

# Fired after an order status change is committed
# args: order, old_status, new_status, actor
order_status_changed = Signal()

# Fired after checkout creates an order
# args: order
order_created = Signal()
