from .inventory import Product
from .customers import Client
from .orders import Order, OrderItem, TicketSequence
from .settings import Setting
from .auth import SessionToken

__all__ = [
    'Product',
    'Client',
    'Order', 'OrderItem', 'TicketSequence',
    'Setting',
    'SessionToken',
]
