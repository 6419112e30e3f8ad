"""
Store-wide settings keys and defaults.
"""

import re
from typing import Mapping, Optional


SHIPPING_COST_KEY = "shipping_cost"
COMMISSION_LEVEL1_KEY = "commission_level1_percentage"
COMMISSION_LEVEL2_KEY = "commission_level2_percentage"

DEFAULT_SHIPPING_COST = 50000
DEFAULT_COMMISSION_LEVEL1 = 10
DEFAULT_COMMISSION_LEVEL2 = 5

SETTING_DESCRIPTIONS = {
    SHIPPING_COST_KEY: "هزینه ارسال ثابت",
    COMMISSION_LEVEL1_KEY: "درصد کمیسیون سطح اول",
    COMMISSION_LEVEL2_KEY: "درصد کمیسیون سطح دوم",
}

ALL_KEYS = (SHIPPING_COST_KEY, COMMISSION_LEVEL1_KEY, COMMISSION_LEVEL2_KEY)


LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def parse_int_setting(value: Optional[str], default: int) -> int:
    """Parse the leading integer of a stored value; missing or garbled values fall back to ``default``."""
    if value is None:
        return default
    match = LEADING_INT.match(str(value))
    if match is None:
        return default
    return int(match.group(1))


def admin_settings_view(values: Mapping[str, str]) -> dict:
    return {
        "flatShippingCost": parse_int_setting(values.get(SHIPPING_COST_KEY), DEFAULT_SHIPPING_COST),
        "commissionLevel1Percent": parse_int_setting(values.get(COMMISSION_LEVEL1_KEY), DEFAULT_COMMISSION_LEVEL1),
        "commissionLevel2Percent": parse_int_setting(values.get(COMMISSION_LEVEL2_KEY), DEFAULT_COMMISSION_LEVEL2),
    }


def public_settings_view(values: Mapping[str, str]) -> dict:
    return {
        "flatShippingCost": parse_int_setting(values.get(SHIPPING_COST_KEY), DEFAULT_SHIPPING_COST),
    }
