"""Route group exports."""

from . import admin, checkout, delivery_settings, health, orders

__all__ = ["admin", "checkout", "orders", "delivery_settings", "health"]
