from .auth import User, SessionToken
from .catalog import Drink
from .orders import Order, OrderItem

__all__ = [
    'User', 'SessionToken',
    'Drink',
    'Order', 'OrderItem',
]
