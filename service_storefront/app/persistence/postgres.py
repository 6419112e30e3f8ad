"""
PostgreSQL persistence layer for the storefront service.

Tables (managed outside this service): users, categories, products,
product_variants, stock_movements, orders, order_items, commissions, settings,
audit_logs.
Rows are returned as plain dicts with the camelCase keys the storefront
clients consume.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

import asyncpg

from shared.errors import PersistenceError
from shared.logging import get_logger
from ..auth.guard import Principal
from ..domain.audit import AuditEntry
from ..domain.commission import CommissionSettings, CommissionUpdate, plan_commissions
from ..domain.models import CommissionStatus, OrderStatus, StockMovementReason, UserRole

# Driver, protocol and timeout failures all mean the database is unavailable
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError)


class PostgreSQLStore:
    """asyncpg-backed store for catalog, users, orders and commissions."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("storefront.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30,
                init=self._init_connection,
            )
            self.logger.info("PostgreSQL store started")
        except DATABASE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL store", error=str(e))
            raise PersistenceError(details={"operation": "start"}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL store stopped")

    @staticmethod
    async def _init_connection(conn):
        for type_name in ("json", "jsonb"):
            await conn.set_type_codec(
                type_name, encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
            )

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        if self.pool is None:
            raise PersistenceError(details={"operation": operation, "reason": "not started"})
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except DATABASE_ERRORS as e:
            self.logger.error("Database operation failed", operation=operation, error=str(e))
            raise PersistenceError(details={"operation": operation}) from e

    # Users and access

    async def get_principal(self, subject_id: str) -> Optional[Principal]:
        async with self._connection("get_principal") as conn:
            row = await conn.fetchrow(
                "SELECT id, role, is_blocked FROM users WHERE id = $1", subject_id
            )
        if row is None:
            return None
        return Principal(id=row["id"], role=UserRole(row["role"]), is_blocked=row["is_blocked"])

    async def get_user_access(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self._connection("get_user_access") as conn:
            row = await conn.fetchrow(
                'SELECT id, role, is_blocked AS "isBlocked" FROM users WHERE id = $1', user_id
            )
        return dict(row) if row else None

    async def update_user_access(self, user_id: str, role: UserRole, is_blocked: bool) -> Dict[str, Any]:
        async with self._connection("update_user_access") as conn:
            row = await conn.fetchrow(
                """
                UPDATE users SET role = $2, is_blocked = $3, updated_at = NOW()
                WHERE id = $1
                RETURNING id, role, is_blocked AS "isBlocked"
                """,
                user_id, role.value, is_blocked,
            )
        return dict(row)

    async def get_bank_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self._connection("get_bank_info") as conn:
            row = await conn.fetchrow(
                """
                SELECT bank_shaba AS "bankShaba", bank_card AS "bankCard", bank_account AS "bankAccount"
                FROM users WHERE id = $1
                """,
                user_id,
            )
        return dict(row) if row else None

    async def update_bank_info(self, user_id: str, bank_shaba: str, bank_card: str,
                               bank_account: str) -> Optional[Dict[str, Any]]:
        async with self._connection("update_bank_info") as conn:
            row = await conn.fetchrow(
                """
                UPDATE users SET bank_shaba = $2, bank_card = $3, bank_account = $4, updated_at = NOW()
                WHERE id = $1
                RETURNING bank_shaba AS "bankShaba", bank_card AS "bankCard", bank_account AS "bankAccount"
                """,
                user_id, bank_shaba, bank_card, bank_account,
            )
        return dict(row) if row else None

    # Catalog

    async def list_active_categories(self) -> List[Dict[str, Any]]:
        async with self._connection("list_active_categories") as conn:
            rows = await conn.fetch(
                """
                SELECT c.id, c.name, c.slug, c.sort_order AS "order",
                       COUNT(p.id) FILTER (WHERE p.is_active) AS "productCount"
                FROM categories c
                LEFT JOIN products p ON p.category_id = c.id
                WHERE c.is_active = TRUE
                GROUP BY c.id
                ORDER BY c.sort_order ASC
                """
            )
        return [dict(row) for row in rows]

    async def get_product_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        async with self._connection("get_product_by_slug") as conn:
            row = await conn.fetchrow(
                """
                SELECT p.id, p.name, p.slug, p.description, p.base_price AS "basePrice",
                       p.images, p.is_active AS "isActive", p.featured,
                       p.category_id AS "categoryId",
                       json_build_object('id', c.id, 'name', c.name, 'slug', c.slug) AS category
                FROM products p
                JOIN categories c ON c.id = p.category_id
                WHERE p.slug = $1
                """,
                slug,
            )
            if row is None:
                return None
            variants = await conn.fetch(
                """
                SELECT id, size, color, color_hex AS "colorHex", stock_on_hand AS "stockOnHand",
                       sku, price_override AS "priceOverride"
                FROM product_variants
                WHERE product_id = $1
                ORDER BY size ASC, color ASC
                """,
                row["id"],
            )
        product = dict(row)
        product["variants"] = [dict(v) for v in variants]
        return product

    async def get_related_products(self, category_id: str, exclude_id: str, limit: int = 4) -> List[Dict[str, Any]]:
        async with self._connection("get_related_products") as conn:
            rows = await conn.fetch(
                """
                SELECT p.id, p.name, p.slug, p.base_price AS "basePrice", p.images,
                       (SELECT json_build_object('id', v.id, 'priceOverride', v.price_override)
                        FROM product_variants v WHERE v.product_id = p.id
                        ORDER BY v.id LIMIT 1) AS "firstVariant"
                FROM products p
                WHERE p.category_id = $1 AND p.id <> $2 AND p.is_active = TRUE
                LIMIT $3
                """,
                category_id, exclude_id, limit,
            )
        return [dict(row) for row in rows]

    # Settings

    async def get_settings(self, keys: Iterable[str]) -> Dict[str, str]:
        async with self._connection("get_settings") as conn:
            rows = await conn.fetch(
                "SELECT key, value FROM settings WHERE key = ANY($1::text[])", list(keys)
            )
        return {row["key"]: row["value"] for row in rows}

    async def upsert_settings(self, values: Dict[str, str], descriptions: Dict[str, str],
                              updated_by: str) -> None:
        async with self._connection("upsert_settings") as conn:
            async with conn.transaction():
                for key, value in values.items():
                    await conn.execute(
                        """
                        INSERT INTO settings (key, value, description, updated_by, updated_at)
                        VALUES ($1, $2, $3, $4, NOW())
                        ON CONFLICT (key) DO UPDATE SET
                            value = EXCLUDED.value,
                            updated_by = EXCLUDED.updated_by,
                            updated_at = EXCLUDED.updated_at
                        """,
                        key, value, descriptions.get(key), updated_by,
                    )
        self.logger.info("Settings updated", keys=sorted(values), updated_by=updated_by)

    # Orders

    async def list_orders(self, status: Optional[OrderStatus], search: Optional[str],
                          page: int, per_page: int) -> Tuple[int, List[Dict[str, Any]]]:
        conditions = []
        args: List[Any] = []
        if status is not None:
            args.append(status.value)
            conditions.append(f"o.status = ${len(args)}")
        if search:
            args.append(f"%{search}%")
            conditions.append(f"(o.id ILIKE ${len(args)} OR o.tracking_code ILIKE ${len(args)})")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        async with self._connection("list_orders") as conn:
            async with conn.transaction(readonly=True):
                total = await conn.fetchval(f"SELECT COUNT(*) FROM orders o {where}", *args)
                rows = await conn.fetch(
                    f"""
                    SELECT o.id, o.status, o.total_amount AS "totalAmount",
                           o.tracking_code AS "trackingCode", o.created_at AS "createdAt",
                           json_build_object('name', u.name, 'email', u.email) AS "user",
                           COALESCE(
                               (SELECT json_agg(json_build_object(
                                    'id', i.id, 'variantId', i.variant_id,
                                    'quantity', i.quantity, 'price', i.price))
                                FROM order_items i WHERE i.order_id = o.id),
                               '[]'::json) AS items
                    FROM orders o
                    LEFT JOIN users u ON u.id = o.user_id
                    {where}
                    ORDER BY o.created_at DESC
                    OFFSET ${len(args) + 1} LIMIT ${len(args) + 2}
                    """,
                    *args, (page - 1) * per_page, per_page,
                )
        return total or 0, [dict(row) for row in rows]

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        async with self._connection("get_order") as conn:
            row = await conn.fetchrow("SELECT id, status FROM orders WHERE id = $1", order_id)
        return dict(row) if row else None

    async def update_order_status(self, order_id: str, status: OrderStatus, updated_by: str,
                                  restock: bool = False,
                                  commission_update: Optional[CommissionUpdate] = None) -> Dict[str, Any]:
        """Move an order to ``status`` with its stock and commission side effects, atomically."""
        async with self._connection("update_order_status") as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    UPDATE orders
                    SET status = $2, status_updated_at = NOW(), updated_by = $3
                    WHERE id = $1
                    RETURNING id, status, total_amount AS "totalAmount",
                              status_updated_at AS "statusUpdatedAt", updated_by AS "updatedBy"
                    """,
                    order_id, status.value, updated_by,
                )
                if restock:
                    await conn.execute(
                        """
                        UPDATE product_variants v
                        SET stock_on_hand = v.stock_on_hand + i.quantity
                        FROM order_items i
                        WHERE i.order_id = $1 AND i.variant_id = v.id
                        """,
                        order_id,
                    )
                if commission_update is not None:
                    if commission_update.only_from is not None:
                        await conn.execute(
                            "UPDATE commissions SET status = $2 WHERE order_id = $1 AND status = $3",
                            order_id, commission_update.target.value, commission_update.only_from.value,
                        )
                    else:
                        await conn.execute(
                            "UPDATE commissions SET status = $2 WHERE order_id = $1",
                            order_id, commission_update.target.value,
                        )
        self.logger.info("Order status updated", order_id=order_id, status=status.value, restock=restock)
        return dict(row)

    async def update_order_shipping(self, order_id: str, shipping_carrier: Optional[str],
                                    tracking_code: Optional[str]) -> Optional[Dict[str, Any]]:
        """Set carrier and tracking code; stamps ``shipped_at`` once for shipped orders."""
        async with self._connection("update_order_shipping") as conn:
            row = await conn.fetchrow(
                """
                UPDATE orders
                SET shipping_carrier = $2,
                    tracking_code = $3,
                    shipped_at = CASE
                        WHEN status = 'shipped' AND shipped_at IS NULL THEN NOW()
                        ELSE shipped_at
                    END
                WHERE id = $1
                RETURNING id, status, shipping_carrier AS "shippingCarrier",
                          tracking_code AS "trackingCode", shipped_at AS "shippedAt"
                """,
                order_id, shipping_carrier, tracking_code,
            )
        return dict(row) if row else None

    # Stock

    async def list_stock_movements(self, product_id: str, variant_id: Optional[str] = None,
                                   reason: Optional[StockMovementReason] = None,
                                   start: Optional[datetime] = None,
                                   end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        conditions = ["m.product_id = $1"]
        args: List[Any] = [product_id]
        if variant_id:
            args.append(variant_id)
            conditions.append(f"m.variant_id = ${len(args)}")
        if reason is not None:
            args.append(reason.value)
            conditions.append(f"m.reason = ${len(args)}")
        if start is not None:
            args.append(start)
            conditions.append(f"m.created_at >= ${len(args)}")
        if end is not None:
            args.append(end)
            conditions.append(f"m.created_at <= ${len(args)}")

        async with self._connection("list_stock_movements") as conn:
            rows = await conn.fetch(
                f"""
                SELECT m.id, m.product_id AS "productId", m.variant_id AS "variantId", m.delta,
                       m.reason, m.note, m.created_by_user_id AS "createdByUserId",
                       m.created_at AS "createdAt",
                       json_build_object('id', v.id, 'size', v.size, 'color', v.color,
                                         'sku', v.sku, 'stockOnHand', v.stock_on_hand) AS variant
                FROM stock_movements m
                JOIN product_variants v ON v.id = m.variant_id
                WHERE {' AND '.join(conditions)}
                ORDER BY m.created_at DESC
                """,
                *args,
            )
        return [dict(row) for row in rows]

    async def adjust_stock(self, variant_id: str, delta: int, reason: StockMovementReason,
                           note: Optional[str], created_by: str) -> Optional[Dict[str, Any]]:
        """Apply ``delta`` to a variant and record the movement, atomically.

        Returns None when the variant is unknown or the result would drop
        below zero or below the reserved quantity.
        """
        async with self._connection("adjust_stock") as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    UPDATE product_variants
                    SET stock_on_hand = stock_on_hand + $2
                    WHERE id = $1
                      AND stock_on_hand + $2 >= 0
                      AND stock_on_hand + $2 >= stock_reserved
                    RETURNING id, product_id AS "productId"
                    """,
                    variant_id, delta,
                )
                if row is None:
                    return None
                await conn.execute(
                    """
                    INSERT INTO stock_movements (product_id, variant_id, delta, reason, note, created_by_user_id)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    row["productId"], variant_id, delta, reason.value, note, created_by,
                )
        self.logger.info("Stock adjusted", variant_id=variant_id, delta=delta, reason=reason.value)
        return dict(row)

    # Commissions

    async def create_commissions(self, order_id: str, settings: CommissionSettings) -> int:
        """Create referral commissions for a paid order. Idempotent per order.

        Returns the number of commissions created.
        """
        async with self._connection("create_commissions") as conn:
            async with conn.transaction():
                order = await conn.fetchrow(
                    """
                    SELECT o.id, o.total_amount, o.ref_affiliate_id, a.parent_affiliate_id
                    FROM orders o
                    LEFT JOIN users a ON a.id = o.ref_affiliate_id
                    WHERE o.id = $1
                    """,
                    order_id,
                )
                if order is None or not order["ref_affiliate_id"]:
                    return 0

                existing = await conn.fetchval(
                    "SELECT COUNT(*) FROM commissions WHERE order_id = $1", order_id
                )
                if existing:
                    return 0

                shares = plan_commissions(
                    order["total_amount"],
                    settings,
                    order["ref_affiliate_id"],
                    order["parent_affiliate_id"],
                )
                for share in shares:
                    await conn.execute(
                        """
                        INSERT INTO commissions (affiliate_id, order_id, level, percentage, amount, status)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        """,
                        share.affiliate_id, order_id, share.level, share.percentage,
                        share.amount, CommissionStatus.PENDING.value,
                    )
        self.logger.info("Commissions created", order_id=order_id, count=len(shares))
        return len(shares)

    async def list_commissions(self, affiliate_id: str, status: Optional[CommissionStatus] = None,
                               start: Optional[datetime] = None,
                               end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        conditions = ["affiliate_id = $1"]
        args: List[Any] = [affiliate_id]
        if status is not None:
            args.append(status.value)
            conditions.append(f"status = ${len(args)}")
        if start is not None:
            args.append(start)
            conditions.append(f"created_at >= ${len(args)}")
        if end is not None:
            args.append(end)
            conditions.append(f"created_at <= ${len(args)}")

        async with self._connection("list_commissions") as conn:
            rows = await conn.fetch(
                f"""
                SELECT id, order_id AS "orderId", level, amount, status, created_at AS "createdAt"
                FROM commissions
                WHERE {' AND '.join(conditions)}
                ORDER BY created_at DESC
                """,
                *args,
            )
        return [dict(row) for row in rows]

    async def get_affiliate_overview(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self._connection("get_affiliate_overview") as conn:
            user = await conn.fetchrow(
                'SELECT id, affiliate_code AS "affiliateCode" FROM users WHERE id = $1', user_id
            )
            if user is None:
                return None
            commissions = await conn.fetch(
                """
                SELECT id, order_id AS "orderId", level, percentage, amount, status,
                       created_at AS "createdAt"
                FROM commissions WHERE affiliate_id = $1
                ORDER BY created_at DESC
                """,
                user_id,
            )
            sub_affiliates = await conn.fetch(
                """
                SELECT id, name, affiliate_code AS "affiliateCode", created_at AS "createdAt"
                FROM users WHERE parent_affiliate_id = $1
                ORDER BY created_at DESC
                """,
                user_id,
            )
        overview = dict(user)
        overview["commissions"] = [dict(c) for c in commissions]
        overview["subAffiliates"] = [dict(s) for s in sub_affiliates]
        return overview

    # Audit

    async def create_audit_log(self, entry: AuditEntry) -> None:
        async with self._connection("create_audit_log") as conn:
            await conn.execute(
                """
                INSERT INTO audit_logs (actor_user_id, action, entity_type, entity_id, before, after, ip)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                entry.actor_user_id, entry.action, entry.entity_type, entry.entity_id,
                entry.before, entry.after, entry.ip,
            )

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except DATABASE_ERRORS as e:
            self.logger.warning("PostgreSQL health check failed", error=str(e))
            return False
