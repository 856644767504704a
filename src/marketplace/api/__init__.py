"""Marketplace HTTP API package."""

from marketplace.api.routes import cart_router, flash_sale_router, mpesa_router, order_router

__all__ = ["order_router", "mpesa_router", "flash_sale_router", "cart_router"]
