"""
HTTP proxy for the reconciled cart
"""

from .cart_routes import create_app

__all__ = ["create_app"]
