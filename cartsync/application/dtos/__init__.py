"""
Data Transfer Objects
"""

from .cart_dtos import CartOperationResponse

__all__ = ["CartOperationResponse"]
