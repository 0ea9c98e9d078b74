"""
Order Quote Service

Pricing half of order intake: checks the customer fields and photo count
and prices the order from the current unit price. Creating the checkout
preference and sending notification emails are handled elsewhere.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from src.config import Config
from src.observability import increment_counter

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_id() -> str:
    """ORD-<millis in base36>-<random suffix>, e.g. ORD-LZ3K9Q1A-7F2C0B."""
    millis = int(time.time() * 1000)
    return f"ORD-{_to_base36(millis)}-{uuid4().hex[:6].upper()}"


@dataclass
class OrderQuote:
    order_id: str
    name: str
    email: str
    photo_count: int
    unit_price: float
    total: float
    currency: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer": {"name": self.name, "email": self.email},
            "photo_count": self.photo_count,
            "unit_price": self.unit_price,
            "total": self.total,
            "currency_id": self.currency,
            "created_at": self.created_at.isoformat(),
        }


class OrderQuoteService:
    """Service class that prices a photo-magnet order."""

    def __init__(
        self,
        pricing_service,
        min_photos: int = Config.ORDER_MIN_PHOTOS,
        max_photos: int = Config.ORDER_MAX_PHOTOS,
    ) -> None:
        self.pricing = pricing_service
        self.min_photos = min_photos
        self.max_photos = max_photos

    def quote(
        self,
        name: Optional[str],
        email: Optional[str],
        photo_count: Any,
    ) -> Tuple[bool, str, Optional[OrderQuote]]:
        """Validate the order fields and price it. Returns (success, message, quote)."""
        name = (name or "").strip() if isinstance(name, str) else ""
        email = (email or "").strip() if isinstance(email, str) else ""

        if not name or not email:
            return self._reject("Name and email are required")
        if not _EMAIL_PATTERN.match(email):
            return self._reject("Email address is not valid")

        if isinstance(photo_count, bool):
            return self._reject("Photo count must be a whole number")
        try:
            count = int(photo_count)
        except (TypeError, ValueError, OverflowError):
            return self._reject("Photo count must be a whole number")
        if isinstance(photo_count, float) and not photo_count.is_integer():
            return self._reject("Photo count must be a whole number")

        if count < self.min_photos:
            return self._reject(f"At least {self.min_photos} photos are required")
        if count > self.max_photos:
            return self._reject(f"At most {self.max_photos} photos are allowed per order")

        unit_price = self.pricing.get_unit_price()
        quote = OrderQuote(
            order_id=generate_order_id(),
            name=name,
            email=email,
            photo_count=count,
            unit_price=unit_price,
            total=round(unit_price * count, 2),
            currency=self.pricing.currency,
        )
        increment_counter("order_quotes_total", labels={"outcome": "accepted"})
        logger.info(
            "Quoted order %s: %d photos x %s = %s %s",
            quote.order_id,
            count,
            unit_price,
            quote.total,
            quote.currency,
        )
        return True, "Order quoted successfully", quote

    def _reject(self, message: str) -> Tuple[bool, str, None]:
        increment_counter("order_quotes_total", labels={"outcome": "rejected"})
        logger.info("Order quote rejected: %s", message)
        return False, message, None
