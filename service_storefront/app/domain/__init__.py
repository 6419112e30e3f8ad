"""
Domain rules for the storefront service.

Pure functions and models with no I/O: order status transitions,
affiliate commissions, store settings and audit entries.
"""
