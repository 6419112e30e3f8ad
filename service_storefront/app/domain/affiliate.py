"""
Affiliate payout details.
"""

import re
from typing import Any, Mapping, Optional

IRAN_SHEBA = re.compile(r"IR[0-9]{24}")
WHITESPACE = re.compile(r"\s+")

BANK_INFO_FIELDS = ("bankShaba", "bankCard", "bankAccount")


def normalize_bank_info(data: Mapping[str, Any]) -> dict:
    """Strip spaces from SHEBA and card numbers; SHEBA is upper-cased."""
    return {
        "bankShaba": WHITESPACE.sub("", str(data.get("bankShaba") or "")).upper(),
        "bankCard": WHITESPACE.sub("", str(data.get("bankCard") or "")),
        "bankAccount": str(data.get("bankAccount") or "").strip(),
    }


def bank_info_complete(info: Optional[Mapping[str, Any]]) -> bool:
    return bool(info) and all(info.get(field) for field in BANK_INFO_FIELDS)
