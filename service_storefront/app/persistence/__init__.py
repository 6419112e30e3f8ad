"""
Persistence adapters for the storefront service.
"""

from .postgres import PostgreSQLStore

__all__ = ["PostgreSQLStore"]
