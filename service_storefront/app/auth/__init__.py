"""
Authentication and authorization utilities for the storefront service.
"""

from .guard import AccessGuard, Authorized, Denied, DenialKind, GuardResult, Principal
from .session import Session, SessionResolver

__all__ = [
    "AccessGuard",
    "Authorized",
    "Denied",
    "DenialKind",
    "GuardResult",
    "Principal",
    "Session",
    "SessionResolver",
]
