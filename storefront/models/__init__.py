from storefront.models.admin import Admin
from storefront.models.city import City
from storefront.models.order import ORDER_STATUSES, Order, OrderItem
from storefront.models.product import Inventory, Product

__all__ = ["Admin", "City", "Inventory", "ORDER_STATUSES", "Order", "OrderItem", "Product"]
