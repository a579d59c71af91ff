from .auth import AuthClient
from .base import BaseClient
from .orders import OrdersClient

__all__ = ["AuthClient", "BaseClient", "OrdersClient"]
