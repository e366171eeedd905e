"""
Application services
"""

from .addon_resolution import AddonInput, ResolvedAddons, price_for, resolve_addon_selections

__all__ = ["AddonInput", "ResolvedAddons", "price_for", "resolve_addon_selections"]
