"""
Top-level models import shim for the Orders app, so that
    from apps.orders.models import Order
works while the models live in separate modules.
"""

from .order import *          # Order
from .item import *           # OrderItem
from .timeline import *       # OrderStatusHistory
from .cart import *           # Cart, CartItem
