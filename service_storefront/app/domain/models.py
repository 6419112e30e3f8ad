"""
Domain enums and request models for the storefront service.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .affiliate import IRAN_SHEBA, normalize_bank_info


class UserRole(str, Enum):
    """Permission levels a user account can hold."""
    CUSTOMER = "customer"
    AFFILIATE = "affiliate"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    """Order lifecycle states."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"
    RETURNED = "returned"
    REFUNDED = "refunded"


class CommissionStatus(str, Enum):
    """Affiliate commission states."""
    PENDING = "pending"
    AVAILABLE = "available"
    PAID = "paid"
    VOID = "void"


class StockMovementReason(str, Enum):
    """Why a variant's stock on hand changed."""
    MANUAL_ADJUST = "manual_adjust"
    ORDER_RESERVED = "order_reserved"
    ORDER_COMMITTED = "order_committed"
    ORDER_RELEASED = "order_released"
    REFUND_RETURN = "refund_return"
    INITIAL_STOCK = "initial_stock"


class UserAccessUpdateRequest(BaseModel):
    """Admin change to a user's role and/or block flag."""
    model_config = ConfigDict(populate_by_name=True)

    role: Optional[UserRole] = Field(None, description="New role")
    is_blocked: Optional[bool] = Field(None, alias="isBlocked", description="New block flag")

    @model_validator(mode="after")
    def _require_change(self):
        if self.role is None and self.is_blocked is None:
            raise ValueError("هیچ تغییری ارسال نشده است.")
        return self


class OrderStatusUpdateRequest(BaseModel):
    """Admin order status change."""
    status: OrderStatus = Field(..., description="Target status")


class AdminSettingsUpdateRequest(BaseModel):
    """Shipping cost and commission percentages editable by admins."""
    model_config = ConfigDict(populate_by_name=True)

    flat_shipping_cost: int = Field(..., alias="flatShippingCost")
    commission_level1_percent: int = Field(..., alias="commissionLevel1Percent")
    commission_level2_percent: int = Field(..., alias="commissionLevel2Percent")

    @model_validator(mode="after")
    def _check_ranges(self):
        if self.flat_shipping_cost < 0:
            raise ValueError("هزینه ارسال نمی تواند منفی باشد.")
        if not 0 <= self.commission_level1_percent <= 100:
            raise ValueError("درصد سطح ۱ باید بین ۰ تا ۱۰۰ باشد.")
        if not 0 <= self.commission_level2_percent <= 100:
            raise ValueError("درصد سطح ۲ باید بین ۰ تا ۱۰۰ باشد.")
        return self


class OrderShippingUpdateRequest(BaseModel):
    """Carrier and tracking code for a shipped order."""
    model_config = ConfigDict(populate_by_name=True)

    shipping_carrier: Optional[str] = Field(None, alias="shippingCarrier")
    tracking_code: Optional[str] = Field(None, alias="trackingCode")

    @field_validator("shipping_carrier", "tracking_code")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if len(value) > 100:
            raise ValueError("حداکثر ۱۰۰ کاراکتر مجاز است.")
        return value or None

    @model_validator(mode="after")
    def _require_one(self):
        if self.shipping_carrier is None and self.tracking_code is None:
            raise ValueError("حداقل یکی از فیلدهای شرکت حمل یا کد رهگیری را وارد کنید.")
        return self


class StockMovementCreateRequest(BaseModel):
    """Manual stock adjustment of one variant."""
    model_config = ConfigDict(populate_by_name=True)

    variant_id: str = Field(..., alias="variantId")
    delta: int = Field(..., strict=True)
    reason: StockMovementReason
    note: Optional[str] = None

    @field_validator("variant_id")
    @classmethod
    def _variant_required(cls, value: str) -> str:
        if not value:
            raise ValueError("شناسه تنوع محصول الزامی است.")
        return value

    @field_validator("delta")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("مقدار تغییر موجودی نباید صفر باشد.")
        return value

    @field_validator("note")
    @classmethod
    def _note_length(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > 500:
            raise ValueError("یادداشت حداکثر ۵۰۰ کاراکتر است.")
        return value


class AffiliateBankInfoRequest(BaseModel):
    """Payout bank details; input is normalized before validation."""
    model_config = ConfigDict(populate_by_name=True)

    bank_shaba: str = Field(..., alias="bankShaba")
    bank_card: str = Field(..., alias="bankCard")
    bank_account: str = Field(..., alias="bankAccount")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if isinstance(data, dict):
            return normalize_bank_info(data)
        return data

    @field_validator("bank_shaba")
    @classmethod
    def _check_shaba(cls, value: str) -> str:
        if not value:
            raise ValueError("شماره شبا الزامی است.")
        if not IRAN_SHEBA.fullmatch(value):
            raise ValueError("شماره شبا معتبر نیست. مثال: IR123456789012345678901234")
        return value

    @field_validator("bank_card")
    @classmethod
    def _card_required(cls, value: str) -> str:
        if not value:
            raise ValueError("شماره کارت الزامی است.")
        return value

    @field_validator("bank_account")
    @classmethod
    def _account_required(cls, value: str) -> str:
        if not value:
            raise ValueError("شماره حساب الزامی است.")
        return value
