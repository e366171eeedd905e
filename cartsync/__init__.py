"""
cartsync

Cart add-on price reconciliation for a session-cart storefront.
"""

__version__ = "0.1.0"
