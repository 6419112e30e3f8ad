"""
Audit trail entries for admin actions.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request


@dataclass
class AuditEntry:
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    actor_user_id: Optional[str] = None
    before: Optional[Any] = None
    after: Optional[Any] = None
    ip: Optional[str] = None


def get_request_ip(request: Optional[Request]) -> Optional[str]:
    """Client address as reported by the proxy in front of the service."""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.headers.get("x-real-ip")
