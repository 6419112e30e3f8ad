"""
Storefront service for the Stylino shop.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Optional, Type, TypeVar

from fastapi import Query, Request, Response
from pydantic import BaseModel, ValidationError as PydanticValidationError

from shared.base_service import BaseService, first_validation_message
from shared.config import ServiceConfig
from shared.errors import NotFoundError, ValidationError

from .auth.guard import AccessGuard
from .auth.session import SessionResolver
from .caching.catalog_cache import CatalogCache, cache_control_header
from .domain import affiliate as affiliate_rules
from .domain import commission as commission_rules
from .domain import order_status as order_rules
from .domain import settings as settings_rules
from .domain import stock as stock_rules
from .domain.audit import AuditEntry, get_request_ip
from .domain.models import (
    AdminSettingsUpdateRequest,
    AffiliateBankInfoRequest,
    CommissionStatus,
    OrderShippingUpdateRequest,
    OrderStatus,
    OrderStatusUpdateRequest,
    StockMovementCreateRequest,
    StockMovementReason,
    UserAccessUpdateRequest,
    UserRole,
)
from .persistence.postgres import PostgreSQLStore

M = TypeVar("M", bound=BaseModel)
E = TypeVar("E", bound=Enum)

MAX_ORDERS_PER_PAGE = 50


def parse_date_param(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date filter; unparseable values are ignored."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if end_of_day:
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999999)
    return parsed


def parse_int_param(value: Optional[str], default: int) -> int:
    """Leading integer of a query value, or ``default``."""
    return settings_rules.parse_int_setting(value, default)


def parse_enum_param(enum_type: Type[E], value: Optional[str]) -> Optional[E]:
    if not value:
        return None
    try:
        return enum_type(value)
    except ValueError:
        return None


class StorefrontService(BaseService):
    """Storefront service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 store: Optional[PostgreSQLStore] = None,
                 session_resolver: Optional[SessionResolver] = None):
        super().__init__("storefront", 8020, config)

        self.store = store or PostgreSQLStore(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool,
            max_size=self.config.postgres_max_pool,
        )
        self.session_resolver = session_resolver or SessionResolver(
            self.config.session_secret,
            cookie_name=self.config.session_cookie_name,
        )
        self.guard = AccessGuard(self.session_resolver, self.store, metrics=self.metrics)
        self.catalog_cache = CatalogCache.from_config(self.config, metrics=self.metrics)

        self._setup_storefront_routes()

    async def _parse_body(self, request: Request, model: Type[M]) -> M:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError("بدنه درخواست نامعتبر است.")
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(first_validation_message(e))

    def _setup_storefront_routes(self):
        """Set up storefront-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "storefront",
                "message": "Stylino - Storefront Service",
                "version": "1.0.0",
                "capabilities": ["catalog", "admin", "affiliate", "caching"]
            }

        # Public catalog

        @self.app.get("/api/categories")
        async def get_categories(response: Response):
            """Active categories with their active product counts."""
            categories = self.catalog_cache.get_categories()
            if categories is None:
                categories = await self.store.list_active_categories()
                self.catalog_cache.set_categories(categories)

            response.headers["Cache-Control"] = cache_control_header(int(self.catalog_cache.categories_ttl))
            return categories

        @self.app.get("/api/products/{slug}")
        async def get_product(slug: str, response: Response):
            """Product detail with variants and related products."""
            payload = self.catalog_cache.get_product(slug)
            if payload is None:
                product = await self.store.get_product_by_slug(slug)
                if not product or not product.get("isActive"):
                    raise NotFoundError("محصول یافت نشد")

                related = await self.store.get_related_products(product["categoryId"], product["id"])
                payload = {"product": product, "relatedProducts": related}
                self.catalog_cache.set_product(slug, payload)

            response.headers["Cache-Control"] = cache_control_header(int(self.catalog_cache.product_ttl))
            return payload

        @self.app.get("/api/settings/public")
        async def get_public_settings(response: Response):
            """Settings the checkout needs before sign-in."""
            payload = self.catalog_cache.get_public_settings()
            if payload is None:
                values = await self.store.get_settings([settings_rules.SHIPPING_COST_KEY])
                payload = settings_rules.public_settings_view(values)
                self.catalog_cache.set_public_settings(payload)

            response.headers["Cache-Control"] = cache_control_header(int(self.catalog_cache.settings_ttl))
            return payload

        # Admin

        @self.app.get("/api/admin/orders")
        async def list_orders(
            request: Request,
            status: Optional[str] = Query(None, description="Filter by order status"),
            search: Optional[str] = Query(None, description="Order id or tracking code"),
            page: Optional[str] = Query(None, description="Page number"),
            per_page: Optional[str] = Query(None, alias="perPage", description="Items per page")
        ):
            """Paged order list for the back-office."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            # Paging is parsed leniently, after the guard
            page = max(parse_int_param(page, 1), 1)
            per_page = min(max(parse_int_param(per_page, 10), 1), MAX_ORDERS_PER_PAGE)
            # Unknown statuses are ignored rather than rejected
            status_filter = parse_enum_param(OrderStatus, status)
            search = search.strip() if search else None

            total, orders = await self.store.list_orders(status_filter, search or None, page, per_page)
            return {
                "data": orders,
                "meta": {
                    "total": total,
                    "page": page,
                    "perPage": per_page,
                    "totalPages": max(math.ceil(total / per_page), 1),
                }
            }

        @self.app.patch("/api/admin/orders/{order_id}/status")
        async def update_order_status(order_id: str, request: Request):
            """Move an order along its lifecycle."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            payload = await self._parse_body(request, OrderStatusUpdateRequest)
            order = await self.store.get_order(order_id)
            if order is None:
                raise NotFoundError("سفارش یافت نشد.")

            current = OrderStatus(order["status"])
            target = payload.status
            if current == target:
                return {"order": order}

            if not order_rules.is_valid_transition(current, target):
                raise ValidationError(order_rules.transition_error_message(current, target))

            updated = await self.store.update_order_status(
                order_id,
                target,
                updated_by=guard.principal.id,
                restock=order_rules.should_restock(current, target),
                commission_update=commission_rules.update_for_order_status(target),
            )
            await self.store.create_audit_log(AuditEntry(
                action="order.status_update",
                entity_type="order",
                entity_id=order_id,
                actor_user_id=guard.principal.id,
                before={"status": current.value},
                after={"status": target.value},
                ip=get_request_ip(request),
            ))
            return {"order": updated}

        @self.app.patch("/api/admin/orders/{order_id}/shipping")
        async def update_order_shipping(order_id: str, request: Request):
            """Record carrier and tracking code."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            payload = await self._parse_body(request, OrderShippingUpdateRequest)
            updated = await self.store.update_order_shipping(
                order_id, payload.shipping_carrier, payload.tracking_code
            )
            if updated is None:
                raise NotFoundError("سفارش پیدا نشد.")

            return {"order": updated}

        @self.app.get("/api/admin/stock-movements")
        async def list_stock_movements(
            request: Request,
            product_id: Optional[str] = Query(None, alias="productId"),
            variant_id: Optional[str] = Query(None, alias="variantId"),
            reason: Optional[str] = Query(None, description="Filter by movement reason"),
            start_date: Optional[str] = Query(None, alias="from"),
            end_date: Optional[str] = Query(None, alias="to")
        ):
            """Stock history of one product, newest first."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            if not product_id:
                raise ValidationError("productId الزامی است.")

            movements = await self.store.list_stock_movements(
                product_id,
                variant_id=variant_id or None,
                reason=parse_enum_param(StockMovementReason, reason),
                start=parse_date_param(start_date),
                end=parse_date_param(end_date, end_of_day=True),
            )
            return [stock_rules.with_reason_label(m) for m in movements]

        @self.app.post("/api/admin/stock-movements")
        async def create_stock_movement(request: Request):
            """Manual stock adjustment."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            payload = await self._parse_body(request, StockMovementCreateRequest)
            if payload.reason not in stock_rules.MANUAL_REASONS:
                raise ValidationError("دلیل انتخاب شده مجاز نیست.")

            result = await self.store.adjust_stock(
                payload.variant_id,
                payload.delta,
                payload.reason,
                payload.note,
                created_by=guard.principal.id,
            )
            if result is None:
                raise ValidationError("تغییر موجودی معتبر نیست یا باعث منفی شدن موجودی می شود.")

            return {"success": True, "result": result}

        @self.app.patch("/api/admin/users/{user_id}")
        async def update_user(user_id: str, request: Request):
            """Change a user's role or block status."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            payload = await self._parse_body(request, UserAccessUpdateRequest)
            if user_id == guard.principal.id and payload.is_blocked is True:
                raise ValidationError("امکان مسدود کردن حساب خودتان وجود ندارد.")

            existing = await self.store.get_user_access(user_id)
            if existing is None:
                raise NotFoundError("کاربر موردنظر پیدا نشد.")

            role = payload.role or UserRole(existing["role"])
            is_blocked = payload.is_blocked if payload.is_blocked is not None else existing["isBlocked"]
            updated = await self.store.update_user_access(user_id, role, is_blocked)

            ip = get_request_ip(request)
            if payload.role is not None and payload.role.value != existing["role"]:
                await self.store.create_audit_log(AuditEntry(
                    action="user.role_update",
                    entity_type="user",
                    entity_id=user_id,
                    actor_user_id=guard.principal.id,
                    before={"role": existing["role"]},
                    after={"role": updated["role"]},
                    ip=ip,
                ))
            if payload.is_blocked is not None and payload.is_blocked != existing["isBlocked"]:
                await self.store.create_audit_log(AuditEntry(
                    action="user.block_toggle",
                    entity_type="user",
                    entity_id=user_id,
                    actor_user_id=guard.principal.id,
                    before={"isBlocked": existing["isBlocked"]},
                    after={"isBlocked": updated["isBlocked"]},
                    ip=ip,
                ))

            return {"user": updated}

        @self.app.get("/api/admin/settings")
        async def get_admin_settings(request: Request):
            """Shipping cost and commission percentages."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            values = await self.store.get_settings(settings_rules.ALL_KEYS)
            return settings_rules.admin_settings_view(values)

        @self.app.patch("/api/admin/settings")
        async def update_admin_settings(request: Request):
            """Update shipping cost and commission percentages."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            payload = await self._parse_body(request, AdminSettingsUpdateRequest)
            values = {
                settings_rules.SHIPPING_COST_KEY: str(payload.flat_shipping_cost),
                settings_rules.COMMISSION_LEVEL1_KEY: str(payload.commission_level1_percent),
                settings_rules.COMMISSION_LEVEL2_KEY: str(payload.commission_level2_percent),
            }
            await self.store.upsert_settings(
                values, settings_rules.SETTING_DESCRIPTIONS, updated_by=guard.principal.id
            )
            view = settings_rules.admin_settings_view(values)
            await self.store.create_audit_log(AuditEntry(
                action="settings.update",
                entity_type="settings",
                actor_user_id=guard.principal.id,
                after=view,
                ip=get_request_ip(request),
            ))
            return view

        @self.app.get("/api/cache/stats")
        async def get_cache_stats(request: Request):
            """In-process cache occupancy."""
            guard = await self.guard.require_admin(request)
            if not guard.ok:
                return guard.response

            return {
                "caches": self.catalog_cache.stats(),
                "timestamp": datetime.now().isoformat()
            }

        # Affiliate

        @self.app.get("/api/affiliate/dashboard")
        async def affiliate_dashboard(request: Request):
            """Commission totals and sub-affiliates for the signed-in affiliate."""
            guard = await self.guard.require_affiliate(request)
            if not guard.ok:
                return guard.response

            overview = await self.store.get_affiliate_overview(guard.principal.id)
            if not overview or not overview.get("affiliateCode"):
                raise NotFoundError("کاربر یافت نشد")

            return {
                "user": {
                    "id": overview["id"],
                    "affiliateCode": overview["affiliateCode"],
                    "subAffiliates": overview["subAffiliates"],
                    "commissions": overview["commissions"],
                },
                **commission_rules.summarize(overview["commissions"]),
            }

        @self.app.get("/api/affiliate/commissions")
        async def affiliate_commissions(
            request: Request,
            status: Optional[str] = Query(None, description="Filter by commission status"),
            start_date: Optional[str] = Query(None, alias="startDate"),
            end_date: Optional[str] = Query(None, alias="endDate")
        ):
            """Own commissions, newest first."""
            guard = await self.guard.require_affiliate(request)
            if not guard.ok:
                return guard.response

            status_filter = parse_enum_param(CommissionStatus, status)
            if status and status_filter is None:
                raise ValidationError("وضعیت نامعتبر است.")

            commissions = await self.store.list_commissions(
                guard.principal.id,
                status=status_filter,
                start=parse_date_param(start_date),
                end=parse_date_param(end_date, end_of_day=True),
            )
            return {"commissions": commissions}

        @self.app.get("/api/affiliate/bank-info")
        async def get_bank_info(request: Request):
            """Payout bank details of the signed-in affiliate."""
            guard = await self.guard.require_affiliate(request)
            if not guard.ok:
                return guard.response

            bank_info = await self.store.get_bank_info(guard.principal.id)
            if bank_info is None:
                raise NotFoundError("کاربر پیدا نشد.")

            return {"bankInfo": bank_info, "bankInfoComplete": affiliate_rules.bank_info_complete(bank_info)}

        @self.app.put("/api/affiliate/bank-info")
        async def update_bank_info(request: Request):
            """Replace payout bank details."""
            guard = await self.guard.require_affiliate(request)
            if not guard.ok:
                return guard.response

            payload = await self._parse_body(request, AffiliateBankInfoRequest)
            updated = await self.store.update_bank_info(
                guard.principal.id, payload.bank_shaba, payload.bank_card, payload.bank_account
            )
            if updated is None:
                raise NotFoundError("کاربر پیدا نشد.")

            return {"bankInfo": updated, "bankInfoComplete": True}

    async def _check_dependencies(self):
        """Check storefront service dependencies."""
        return {"postgres": "ok" if await self.store.health_check() else "error"}

    async def start(self):
        """Start storefront service components."""
        await self.store.start()
        self.logger.info("Storefront service started")

    async def stop(self):
        """Stop storefront service components."""
        await self.store.stop()
        self.logger.info("Storefront service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create storefront service application."""
    service = StorefrontService(config)
    return service.app


if __name__ == "__main__":
    service = StorefrontService()
    service.run()
