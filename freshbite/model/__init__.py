# ------ freshbite/model/__init__.py ------

from .user import User, RefreshToken
from .category import Category
from .product import Product, ProductImage
from .combo import Combo, ComboItem, ComboImage
from .cart import CartItem
from .voucher import Voucher, UserVoucher
from .order import Order, OrderItem
from .review import Review

__all__ = [
    "User",
    "RefreshToken",
    "Category",
    "Product",
    "ProductImage",
    "Combo",
    "ComboItem",
    "ComboImage",
    "CartItem",
    "Voucher",
    "UserVoucher",
    "Order",
    "OrderItem",
    "Review",
]
