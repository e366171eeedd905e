"""
Dependency injection package
"""

from .dependency_injection import DependencyContainer

__all__ = ["DependencyContainer"]
