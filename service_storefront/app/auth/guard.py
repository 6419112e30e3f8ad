"""
Role-based access guard for privileged storefront routes.

``authorize`` resolves the caller and answers with a tagged result instead
of raising. The checks run in a fixed order and stop at the first failure:

1. a valid session exists,
2. the session's user still exists,
3. the user is not blocked,
4. the user's role is one of the required roles.

A stale session pointing at a deleted user is reported as unauthenticated,
and a blocked user is reported as blocked whatever their role. Route
handlers return ``Denied.response`` as is.
"""

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Optional, Protocol, Union

from fastapi import Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger, set_user_context
from ..domain.models import UserRole
from .session import SessionResolver


ADMIN_ROLES = frozenset({UserRole.ADMIN})
AFFILIATE_ROLES = frozenset({UserRole.AFFILIATE, UserRole.ADMIN})


class DenialKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    BLOCKED = "blocked"
    FORBIDDEN = "forbidden"


DENIAL_STATUS = {
    DenialKind.UNAUTHENTICATED: 401,
    DenialKind.BLOCKED: 403,
    DenialKind.FORBIDDEN: 403,
}

DENIAL_MESSAGES = {
    DenialKind.UNAUTHENTICATED: "احراز هویت انجام نشده است.",
    DenialKind.BLOCKED: "حساب کاربری شما مسدود است.",
    DenialKind.FORBIDDEN: "دسترسی مجاز نیست.",
}


@dataclass(frozen=True)
class Principal:
    id: str
    role: UserRole
    is_blocked: bool


class PrincipalStore(Protocol):
    async def get_principal(self, subject_id: str) -> Optional[Principal]:
        ...


@dataclass(frozen=True)
class Authorized:
    principal: Principal
    ok: bool = True


@dataclass(frozen=True)
class Denied:
    kind: DenialKind
    ok: bool = False

    @property
    def status_code(self) -> int:
        return DENIAL_STATUS[self.kind]

    @property
    def message(self) -> str:
        return DENIAL_MESSAGES[self.kind]

    @property
    def response(self) -> JSONResponse:
        return JSONResponse({"error": self.message}, status_code=self.status_code)


GuardResult = Union[Authorized, Denied]


class AccessGuard:
    """Authorization check shared by admin and affiliate routes."""

    def __init__(self, session_resolver: SessionResolver, principal_store: PrincipalStore,
                 metrics=None):
        self.session_resolver = session_resolver
        self.principal_store = principal_store
        self.metrics = metrics
        self.logger = get_logger("storefront.access_guard")

    def _deny(self, kind: DenialKind, **context) -> Denied:
        self.logger.warning("Access denied", outcome=kind.value, **context)
        if self.metrics:
            self.metrics.increment_counter("guard_decisions_total", outcome=kind.value)
        return Denied(kind)

    async def authorize(self, request: Request, required_roles: AbstractSet[UserRole]) -> GuardResult:
        session = await self.session_resolver.resolve(request)
        if session is None:
            return self._deny(DenialKind.UNAUTHENTICATED, path=request.url.path)

        # Store failures propagate to the caller
        principal = await self.principal_store.get_principal(session.subject_id)
        if principal is None:
            return self._deny(DenialKind.UNAUTHENTICATED, subject_id=session.subject_id)

        if principal.is_blocked:
            return self._deny(DenialKind.BLOCKED, subject_id=principal.id)

        if principal.role not in required_roles:
            return self._deny(
                DenialKind.FORBIDDEN,
                subject_id=principal.id,
                role=principal.role.value,
            )

        set_user_context(principal.id)
        if self.metrics:
            self.metrics.increment_counter("guard_decisions_total", outcome="authorized")
        return Authorized(principal)

    async def require_admin(self, request: Request) -> GuardResult:
        return await self.authorize(request, ADMIN_ROLES)

    async def require_affiliate(self, request: Request) -> GuardResult:
        # Admins may act as affiliates for oversight
        return await self.authorize(request, AFFILIATE_ROLES)
