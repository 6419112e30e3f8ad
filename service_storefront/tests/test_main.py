"""
Unit tests for Storefront main service.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from service_storefront.app.auth.guard import Principal
from service_storefront.app.domain.commission import CommissionUpdate
from service_storefront.app.domain.models import CommissionStatus, OrderStatus, StockMovementReason, UserRole
from service_storefront.app.main import (
    StorefrontService,
    parse_date_param,
    parse_enum_param,
    parse_int_param,
)
from shared.config import get_config
from shared.errors import PersistenceError

SECRET = "storefront-test-secret"

PRINCIPALS = {
    "admin-1": Principal("admin-1", UserRole.ADMIN, False),
    "blocked-admin": Principal("blocked-admin", UserRole.ADMIN, True),
    "affiliate-1": Principal("affiliate-1", UserRole.AFFILIATE, False),
    "customer-1": Principal("customer-1", UserRole.CUSTOMER, False),
}


def auth_headers(user_id: str, secret: str = SECRET) -> dict:
    token = jwt.encode(
        {"sub": user_id, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        secret,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


class TestStorefrontService:
    """Test cases for StorefrontService."""

    @pytest.fixture
    def mock_store(self):
        """Store double with every query awaited."""
        store = MagicMock()
        store.get_principal = AsyncMock(side_effect=lambda user_id: PRINCIPALS.get(user_id))
        store.list_active_categories = AsyncMock(return_value=[
            {"id": "cat-1", "name": "مانتو", "slug": "manto", "order": 1, "productCount": 12},
        ])
        store.get_product_by_slug = AsyncMock(return_value={
            "id": "p-1",
            "slug": "silk-shawl",
            "name": "شال ابریشمی",
            "isActive": True,
            "categoryId": "cat-2",
            "variants": [],
        })
        store.get_related_products = AsyncMock(return_value=[{"id": "p-2", "slug": "cotton-shawl"}])
        store.get_settings = AsyncMock(return_value={})
        store.upsert_settings = AsyncMock()
        store.list_orders = AsyncMock(return_value=(0, []))
        store.get_order = AsyncMock(return_value={"id": "o-1", "status": "shipped"})
        store.update_order_status = AsyncMock(return_value={"id": "o-1", "status": "delivered"})
        store.get_user_access = AsyncMock(return_value={"id": "user-2", "role": "customer", "isBlocked": False})
        store.update_user_access = AsyncMock(
            side_effect=lambda user_id, role, is_blocked: {"id": user_id, "role": role.value, "isBlocked": is_blocked}
        )
        store.get_affiliate_overview = AsyncMock(return_value={
            "id": "affiliate-1",
            "affiliateCode": "STY-1001",
            "subAffiliates": [],
            "commissions": [
                {"amount": 40_000, "status": "available", "level": 1},
                {"amount": 10_000, "status": "pending", "level": 2},
            ],
        })
        store.list_commissions = AsyncMock(return_value=[])
        store.create_audit_log = AsyncMock()
        store.update_order_shipping = AsyncMock(return_value={
            "id": "o-1", "status": "shipped", "shippingCarrier": "پست", "trackingCode": "TRK-1",
        })
        store.list_stock_movements = AsyncMock(return_value=[])
        store.adjust_stock = AsyncMock(return_value={"id": "v-1", "productId": "p-1"})
        store.get_bank_info = AsyncMock(return_value={"bankShaba": None, "bankCard": None, "bankAccount": None})
        store.update_bank_info = AsyncMock(
            side_effect=lambda user_id, shaba, card, account: {"bankShaba": shaba, "bankCard": card, "bankAccount": account}
        )
        store.health_check = AsyncMock(return_value=True)
        return store

    @pytest.fixture
    def storefront_service(self, mock_store):
        """Create StorefrontService instance."""
        config = get_config("storefront", 8020, session_secret=SECRET, env="test")
        return StorefrontService(config=config, store=mock_store)

    @pytest.fixture
    def client(self, storefront_service):
        """Create test client."""
        return TestClient(storefront_service.app)

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "storefront"
        assert data["message"] == "Stylino - Storefront Service"

    def test_health_ok(self, client):
        """Test health endpoint with a reachable database."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["dependencies"] == {"postgres": "ok"}

    def test_health_degraded(self, client, mock_store):
        """Test health endpoint with the database down."""
        mock_store.health_check.return_value = False

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_metrics_endpoint(self, client):
        """Test Prometheus exposition."""
        client.get("/api/categories")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_misses_total" in response.text

    def test_request_id_is_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_uptime_counts_from_service_start(self, storefront_service, client):
        storefront_service._start_time -= 30

        response = client.get("/health")

        assert response.json()["uptime_seconds"] >= 30

    def test_unmatched_paths_share_one_metric_label(self, client):
        assert client.get("/no-such-page-123").status_code == 404

        text = client.get("/metrics").text

        assert 'endpoint="unmatched"' in text
        assert "/no-such-page-123" not in text

    # Public catalog

    def test_categories_are_cached(self, client, mock_store):
        """Test categories are served from cache on the second request."""
        first = client.get("/api/categories")
        second = client.get("/api/categories")

        assert first.status_code == 200
        assert second.json() == first.json()
        assert first.headers["Cache-Control"] == (
            "public, max-age=120, s-maxage=120, stale-while-revalidate=120"
        )
        mock_store.list_active_categories.assert_awaited_once()

    def test_empty_category_list_is_cached(self, client, mock_store):
        mock_store.list_active_categories.return_value = []

        client.get("/api/categories")
        response = client.get("/api/categories")

        assert response.json() == []
        mock_store.list_active_categories.assert_awaited_once()

    def test_product_detail(self, client, mock_store):
        """Test product detail with related products."""
        response = client.get("/api/products/silk-shawl")

        assert response.status_code == 200
        data = response.json()
        assert data["product"]["slug"] == "silk-shawl"
        assert data["relatedProducts"] == [{"id": "p-2", "slug": "cotton-shawl"}]
        mock_store.get_related_products.assert_awaited_once_with("cat-2", "p-1")

        client.get("/api/products/silk-shawl")
        mock_store.get_product_by_slug.assert_awaited_once_with("silk-shawl")

    def test_missing_product(self, client, mock_store):
        mock_store.get_product_by_slug.return_value = None

        response = client.get("/api/products/unknown")

        assert response.status_code == 404
        assert response.json()["error"] == "محصول یافت نشد"

    def test_inactive_product_is_not_found(self, client, mock_store):
        mock_store.get_product_by_slug.return_value = {"id": "p-9", "slug": "old", "isActive": False}

        response = client.get("/api/products/old")

        assert response.status_code == 404
        mock_store.get_related_products.assert_not_called()

    def test_public_settings(self, client, mock_store):
        mock_store.get_settings.return_value = {"shipping_cost": "65000"}

        response = client.get("/api/settings/public")

        assert response.status_code == 200
        assert response.json() == {"flatShippingCost": 65000}

    def test_database_outage_is_reported(self, client, mock_store):
        mock_store.list_active_categories.side_effect = PersistenceError()

        response = client.get("/api/categories")

        assert response.status_code == 503
        assert response.json()["error"] == "پایگاه داده در دسترس نیست."

    # Guard outcomes

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/admin/orders"),
        ("patch", "/api/admin/orders/o-1/status"),
        ("patch", "/api/admin/users/user-2"),
        ("get", "/api/admin/settings"),
        ("patch", "/api/admin/settings"),
        ("get", "/api/cache/stats"),
        ("get", "/api/affiliate/dashboard"),
        ("get", "/api/affiliate/commissions"),
        ("patch", "/api/admin/orders/o-1/shipping"),
        ("get", "/api/admin/stock-movements"),
        ("post", "/api/admin/stock-movements"),
        ("get", "/api/affiliate/bank-info"),
        ("put", "/api/affiliate/bank-info"),
    ])
    def test_protected_routes_require_session(self, client, method, path):
        response = client.request(method.upper(), path, json={})

        assert response.status_code == 401
        assert response.json() == {"error": "احراز هویت انجام نشده است."}

    def test_unauthenticated_before_body_validation(self, client, mock_store):
        """Test a bad body from an anonymous caller is still 401."""
        response = client.patch("/api/admin/users/user-2", content=b"not json")

        assert response.status_code == 401
        mock_store.get_user_access.assert_not_called()

    def test_forged_token_is_unauthenticated(self, client):
        response = client.get("/api/admin/orders", headers=auth_headers("admin-1", secret="forged"))

        assert response.status_code == 401

    def test_unknown_user_is_unauthenticated(self, client):
        response = client.get("/api/admin/orders", headers=auth_headers("deleted-user"))

        assert response.status_code == 401

    def test_blocked_admin(self, client, mock_store):
        response = client.get("/api/admin/orders", headers=auth_headers("blocked-admin"))

        assert response.status_code == 403
        assert response.json() == {"error": "حساب کاربری شما مسدود است."}
        mock_store.list_orders.assert_not_called()

    @pytest.mark.parametrize("user_id", ["customer-1", "affiliate-1"])
    def test_non_admin_is_forbidden(self, client, user_id):
        response = client.get("/api/admin/settings", headers=auth_headers(user_id))

        assert response.status_code == 403
        assert response.json() == {"error": "دسترسی مجاز نیست."}

    def test_customer_is_forbidden_from_affiliate_routes(self, client):
        response = client.get("/api/affiliate/dashboard", headers=auth_headers("customer-1"))

        assert response.status_code == 403
        assert response.json() == {"error": "دسترسی مجاز نیست."}

    def test_session_cookie_is_accepted(self, client):
        token = auth_headers("admin-1")["Authorization"].split(" ", 1)[1]
        client.cookies.set("stylino_session", token)

        response = client.get("/api/admin/settings")

        assert response.status_code == 200

    # Admin orders

    def test_list_orders(self, client, mock_store):
        mock_store.list_orders.return_value = (23, [{"id": "o-1"}])

        response = client.get(
            "/api/admin/orders",
            params={"status": "pending", "search": " TRK-1 ", "page": 2, "perPage": 10},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 200
        assert response.json() == {
            "data": [{"id": "o-1"}],
            "meta": {"total": 23, "page": 2, "perPage": 10, "totalPages": 3},
        }
        mock_store.list_orders.assert_awaited_once_with(OrderStatus.PENDING, "TRK-1", 2, 10)

    def test_list_orders_clamps_paging_and_ignores_unknown_status(self, client, mock_store):
        response = client.get(
            "/api/admin/orders",
            params={"status": "lost", "page": 0, "perPage": 500},
            headers=auth_headers("admin-1"),
        )

        assert response.json()["meta"] == {"total": 0, "page": 1, "perPage": 50, "totalPages": 1}
        mock_store.list_orders.assert_awaited_once_with(None, None, 1, 50)

    def test_order_status_update(self, client, mock_store):
        response = client.patch(
            "/api/admin/orders/o-1/status",
            json={"status": "delivered"},
            headers={**auth_headers("admin-1"), "X-Forwarded-For": "10.1.1.1, 172.16.0.1"},
        )

        assert response.status_code == 200
        assert response.json() == {"order": {"id": "o-1", "status": "delivered"}}
        mock_store.update_order_status.assert_awaited_once_with(
            "o-1",
            OrderStatus.DELIVERED,
            updated_by="admin-1",
            restock=False,
            commission_update=CommissionUpdate(CommissionStatus.AVAILABLE, only_from=CommissionStatus.PENDING),
        )
        entry = mock_store.create_audit_log.await_args.args[0]
        assert entry.action == "order.status_update"
        assert entry.before == {"status": "shipped"}
        assert entry.after == {"status": "delivered"}
        assert entry.ip == "10.1.1.1"

    def test_cancellation_restocks_and_voids(self, client, mock_store):
        mock_store.get_order.return_value = {"id": "o-1", "status": "processing"}

        client.patch("/api/admin/orders/o-1/status", json={"status": "canceled"}, headers=auth_headers("admin-1"))

        kwargs = mock_store.update_order_status.await_args.kwargs
        assert kwargs["restock"] is True
        assert kwargs["commission_update"] == CommissionUpdate(CommissionStatus.VOID)

    def test_invalid_order_transition(self, client, mock_store):
        mock_store.get_order.return_value = {"id": "o-1", "status": "pending"}

        response = client.patch(
            "/api/admin/orders/o-1/status", json={"status": "delivered"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "تغییر وضعیت از «در انتظار» به «تحویل شد» مجاز نیست."
        mock_store.update_order_status.assert_not_called()

    def test_same_status_is_a_no_op(self, client, mock_store):
        response = client.patch(
            "/api/admin/orders/o-1/status", json={"status": "shipped"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 200
        assert response.json() == {"order": {"id": "o-1", "status": "shipped"}}
        mock_store.update_order_status.assert_not_called()
        mock_store.create_audit_log.assert_not_called()

    def test_missing_order(self, client, mock_store):
        mock_store.get_order.return_value = None

        response = client.patch(
            "/api/admin/orders/o-404/status", json={"status": "shipped"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 404
        assert response.json()["error"] == "سفارش یافت نشد."

    def test_unknown_order_status_is_rejected(self, client):
        response = client.patch(
            "/api/admin/orders/o-1/status", json={"status": "teleported"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 400

    def test_list_orders_bad_paging_from_anonymous_is_unauthenticated(self, client, mock_store):
        """Test query parsing never runs ahead of the guard."""
        response = client.get("/api/admin/orders", params={"page": "abc", "perPage": "xyz"})

        assert response.status_code == 401
        assert response.json() == {"error": "احراز هویت انجام نشده است."}
        mock_store.list_orders.assert_not_called()

    def test_list_orders_lenient_paging(self, client, mock_store):
        response = client.get(
            "/api/admin/orders",
            params={"page": "abc", "perPage": "20rows"},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 200
        mock_store.list_orders.assert_awaited_once_with(None, None, 1, 20)

    def test_order_shipping_update(self, client, mock_store):
        response = client.patch(
            "/api/admin/orders/o-1/shipping",
            json={"shippingCarrier": " پست ", "trackingCode": "TRK-1"},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 200
        assert response.json()["order"]["trackingCode"] == "TRK-1"
        mock_store.update_order_shipping.assert_awaited_once_with("o-1", "پست", "TRK-1")

    def test_order_shipping_requires_a_field(self, client, mock_store):
        response = client.patch(
            "/api/admin/orders/o-1/shipping",
            json={"shippingCarrier": "", "trackingCode": "  "},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "حداقل یکی از فیلدهای شرکت حمل یا کد رهگیری را وارد کنید."
        mock_store.update_order_shipping.assert_not_called()

    def test_order_shipping_unknown_order(self, client, mock_store):
        mock_store.update_order_shipping.return_value = None

        response = client.patch(
            "/api/admin/orders/o-404/shipping", json={"trackingCode": "TRK-9"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 404
        assert response.json()["error"] == "سفارش پیدا نشد."

    # Stock movements

    def test_stock_movements_require_product(self, client, mock_store):
        response = client.get("/api/admin/stock-movements", headers=auth_headers("admin-1"))

        assert response.status_code == 400
        assert response.json()["error"] == "productId الزامی است."
        mock_store.list_stock_movements.assert_not_called()

    def test_stock_movements_are_labelled(self, client, mock_store):
        mock_store.list_stock_movements.return_value = [
            {"id": "m-1", "variantId": "v-1", "delta": 3, "reason": "manual_adjust"},
        ]

        response = client.get(
            "/api/admin/stock-movements",
            params={"productId": "p-1", "reason": "bogus", "from": "2024-02-01", "to": "2024-02-29"},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 200
        assert response.json() == [
            {"id": "m-1", "variantId": "v-1", "delta": 3, "reason": "manual_adjust", "reasonLabel": "تنظیم دستی"},
        ]
        mock_store.list_stock_movements.assert_awaited_once_with(
            "p-1",
            variant_id=None,
            reason=None,
            start=datetime(2024, 2, 1),
            end=datetime(2024, 2, 29, 23, 59, 59, 999999),
        )

    def test_create_stock_movement(self, client, mock_store):
        response = client.post(
            "/api/admin/stock-movements",
            json={"variantId": "v-1", "delta": 5, "reason": "initial_stock", "note": None},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "result": {"id": "v-1", "productId": "p-1"}}
        mock_store.adjust_stock.assert_awaited_once_with(
            "v-1", 5, StockMovementReason.INITIAL_STOCK, None, created_by="admin-1"
        )

    def test_order_driven_stock_reason_is_rejected(self, client, mock_store):
        response = client.post(
            "/api/admin/stock-movements",
            json={"variantId": "v-1", "delta": -1, "reason": "order_committed"},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "دلیل انتخاب شده مجاز نیست."
        mock_store.adjust_stock.assert_not_called()

    def test_stock_cannot_go_negative(self, client, mock_store):
        mock_store.adjust_stock.return_value = None

        response = client.post(
            "/api/admin/stock-movements",
            json={"variantId": "v-1", "delta": -50, "reason": "manual_adjust"},
            headers=auth_headers("admin-1"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "تغییر موجودی معتبر نیست یا باعث منفی شدن موجودی می شود."

    # Admin users

    def test_block_user(self, client, mock_store):
        response = client.patch(
            "/api/admin/users/user-2", json={"isBlocked": True}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 200
        assert response.json() == {"user": {"id": "user-2", "role": "customer", "isBlocked": True}}
        mock_store.update_user_access.assert_awaited_once_with("user-2", UserRole.CUSTOMER, True)
        entry = mock_store.create_audit_log.await_args.args[0]
        assert entry.action == "user.block_toggle"
        assert entry.actor_user_id == "admin-1"

    def test_promote_user_audits_role_change(self, client, mock_store):
        response = client.patch(
            "/api/admin/users/user-2", json={"role": "affiliate"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 200
        actions = [call.args[0].action for call in mock_store.create_audit_log.await_args_list]
        assert actions == ["user.role_update"]

    def test_admin_cannot_block_self(self, client, mock_store):
        response = client.patch(
            "/api/admin/users/admin-1", json={"isBlocked": True}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "امکان مسدود کردن حساب خودتان وجود ندارد."
        mock_store.update_user_access.assert_not_called()

    def test_empty_user_update(self, client):
        response = client.patch("/api/admin/users/user-2", json={}, headers=auth_headers("admin-1"))

        assert response.status_code == 400
        assert response.json()["error"] == "هیچ تغییری ارسال نشده است."

    def test_malformed_body(self, client):
        response = client.patch(
            "/api/admin/users/user-2", content=b"{not json", headers=auth_headers("admin-1")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "بدنه درخواست نامعتبر است."

    def test_unknown_user(self, client, mock_store):
        mock_store.get_user_access.return_value = None

        response = client.patch(
            "/api/admin/users/ghost", json={"role": "admin"}, headers=auth_headers("admin-1")
        )

        assert response.status_code == 404
        assert response.json()["error"] == "کاربر موردنظر پیدا نشد."

    # Admin settings

    def test_admin_settings_defaults(self, client):
        response = client.get("/api/admin/settings", headers=auth_headers("admin-1"))

        assert response.json() == {
            "flatShippingCost": 50000,
            "commissionLevel1Percent": 10,
            "commissionLevel2Percent": 5,
        }

    def test_update_admin_settings(self, client, mock_store):
        payload = {"flatShippingCost": 70000, "commissionLevel1Percent": 12, "commissionLevel2Percent": 4}

        response = client.patch("/api/admin/settings", json=payload, headers=auth_headers("admin-1"))

        assert response.status_code == 200
        assert response.json() == payload
        values = mock_store.upsert_settings.await_args.args[0]
        assert values == {
            "shipping_cost": "70000",
            "commission_level1_percentage": "12",
            "commission_level2_percentage": "4",
        }
        assert mock_store.upsert_settings.await_args.kwargs["updated_by"] == "admin-1"
        assert mock_store.create_audit_log.await_args.args[0].action == "settings.update"

    def test_update_admin_settings_out_of_range(self, client, mock_store):
        payload = {"flatShippingCost": 70000, "commissionLevel1Percent": 12, "commissionLevel2Percent": 140}

        response = client.patch("/api/admin/settings", json=payload, headers=auth_headers("admin-1"))

        assert response.status_code == 400
        mock_store.upsert_settings.assert_not_called()

    def test_cache_stats(self, client):
        client.get("/api/categories")

        response = client.get("/api/cache/stats", headers=auth_headers("admin-1"))

        assert response.status_code == 200
        assert response.json()["caches"]["categories"] == {"entries": 1, "max_entries": 50}

    # Affiliate

    def test_affiliate_dashboard(self, client):
        response = client.get("/api/affiliate/dashboard", headers=auth_headers("affiliate-1"))

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["affiliateCode"] == "STY-1001"
        assert data["availableCommissions"] == 40_000
        assert data["pendingCommissions"] == 10_000
        assert data["level2Commissions"] == 10_000

    def test_dashboard_without_affiliate_code(self, client, mock_store):
        mock_store.get_affiliate_overview.return_value = {
            "id": "admin-1", "affiliateCode": None, "subAffiliates": [], "commissions": [],
        }

        response = client.get("/api/affiliate/dashboard", headers=auth_headers("admin-1"))

        assert response.status_code == 404
        assert response.json()["error"] == "کاربر یافت نشد"

    def test_affiliate_commissions_filters(self, client, mock_store):
        response = client.get(
            "/api/affiliate/commissions",
            params={"status": "paid", "startDate": "2024-01-01", "endDate": "2024-01-31"},
            headers=auth_headers("affiliate-1"),
        )

        assert response.status_code == 200
        assert response.json() == {"commissions": []}
        mock_store.list_commissions.assert_awaited_once_with(
            "affiliate-1",
            status=CommissionStatus.PAID,
            start=datetime(2024, 1, 1),
            end=datetime(2024, 1, 31, 23, 59, 59, 999999),
        )

    def test_affiliate_commissions_bad_status(self, client, mock_store):
        response = client.get(
            "/api/affiliate/commissions", params={"status": "lost"}, headers=auth_headers("affiliate-1")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "وضعیت نامعتبر است."
        mock_store.list_commissions.assert_not_called()


    # Affiliate bank info

    def test_bank_info_incomplete(self, client, mock_store):
        response = client.get("/api/affiliate/bank-info", headers=auth_headers("affiliate-1"))

        assert response.status_code == 200
        assert response.json()["bankInfoComplete"] is False
        mock_store.get_bank_info.assert_awaited_once_with("affiliate-1")

    def test_bank_info_complete(self, client, mock_store):
        mock_store.get_bank_info.return_value = {
            "bankShaba": "IR123456789012345678901234", "bankCard": "6037991812345678", "bankAccount": "0101",
        }

        response = client.get("/api/affiliate/bank-info", headers=auth_headers("affiliate-1"))

        assert response.json()["bankInfoComplete"] is True

    def test_bank_info_missing_user(self, client, mock_store):
        mock_store.get_bank_info.return_value = None

        response = client.get("/api/affiliate/bank-info", headers=auth_headers("affiliate-1"))

        assert response.status_code == 404
        assert response.json()["error"] == "کاربر پیدا نشد."

    def test_update_bank_info_normalizes(self, client, mock_store):
        response = client.put(
            "/api/affiliate/bank-info",
            json={
                "bankShaba": "ir12 3456 7890 1234 5678 9012 34",
                "bankCard": "6037 9918 1234 5678",
                "bankAccount": " 0101 ",
            },
            headers=auth_headers("affiliate-1"),
        )

        assert response.status_code == 200
        assert response.json() == {
            "bankInfo": {
                "bankShaba": "IR123456789012345678901234",
                "bankCard": "6037991812345678",
                "bankAccount": "0101",
            },
            "bankInfoComplete": True,
        }
        mock_store.update_bank_info.assert_awaited_once_with(
            "affiliate-1", "IR123456789012345678901234", "6037991812345678", "0101"
        )

    def test_update_bank_info_rejects_bad_shaba(self, client, mock_store):
        response = client.put(
            "/api/affiliate/bank-info",
            json={"bankShaba": "IR12", "bankCard": "6037", "bankAccount": "0101"},
            headers=auth_headers("affiliate-1"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "شماره شبا معتبر نیست. مثال: IR123456789012345678901234"
        mock_store.update_bank_info.assert_not_called()

    def test_customer_cannot_read_bank_info(self, client):
        response = client.get("/api/affiliate/bank-info", headers=auth_headers("customer-1"))

        assert response.status_code == 403


class TestQueryHelpers:
    """Test cases for query parameter helpers."""

    def test_parse_date_param(self):
        assert parse_date_param("2024-03-05") == datetime(2024, 3, 5)
        assert parse_date_param("yesterday") is None
        assert parse_date_param(None) is None

    def test_parse_enum_param(self):
        assert parse_enum_param(OrderStatus, "shipped") == OrderStatus.SHIPPED
        assert parse_enum_param(OrderStatus, "unknown") is None
        assert parse_enum_param(OrderStatus, "") is None

    def test_parse_int_param(self):
        assert parse_int_param("3", 1) == 3
        assert parse_int_param("15abc", 1) == 15
        assert parse_int_param("abc", 10) == 10
        assert parse_int_param(None, 10) == 10
