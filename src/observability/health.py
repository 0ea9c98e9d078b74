from __future__ import annotations

import math
from typing import Any, Dict


def check_pricing_health(pricing_service: Any) -> Dict[str, Any]:
    """Resolve the unit price once and report whether it is usable for checkout."""
    try:
        price = pricing_service.get_current_price()
    except Exception as exc:
        return {"healthy": False, "error": str(exc), "price": None, "has_valid_price": False}
    return {
        "healthy": True,
        "price": price,
        "has_valid_price": isinstance(price, (int, float)) and math.isfinite(price) and price > 0,
    }


def check_price_store_health(store: Any) -> Dict[str, str]:
    """Probe the durable price store without mutating it."""
    return store.check_health()
