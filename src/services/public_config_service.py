from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Optional

from src.config import Config
from src.observability import check_pricing_health

logger = logging.getLogger(__name__)


class ConfigUnavailableError(Exception):
    """The public configuration cannot be built because pricing is unusable."""


class PublicConfigService:
    """TTL cache of the configuration document the storefront frontend loads."""

    def __init__(
        self,
        pricing_service,
        config: Any = Config,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pricing = pricing_service
        self.config = config
        self.ttl_seconds = config.CONFIG_CACHE_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._lock = Lock()
        self._cached: Optional[Dict[str, Any]] = None
        self._cached_at: Optional[float] = None
        self._generated_at: Optional[datetime] = None

    def get_config(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            if self._cached is not None and self._cached_at is not None and now - self._cached_at < self.ttl_seconds:
                return self._cached

            health = check_pricing_health(self.pricing)
            if not health["healthy"]:
                raise ConfigUnavailableError(f"Pricing service unavailable: {health.get('error')}")
            if not health["has_valid_price"]:
                raise ConfigUnavailableError("Unit price is not valid or not configured")

            self._generated_at = datetime.now(timezone.utc)
            self._cached = {
                "unit_price": health["price"],
                "currency_id": self.pricing.currency,
                "version": self.config.APP_VERSION,
                "updated_at": self._generated_at.isoformat(),
                "environment": self.config.APP_ENV,
                "features": {
                    "min_photos": self.config.ORDER_MIN_PHOTOS,
                    "max_photos": self.config.ORDER_MAX_PHOTOS,
                    "max_file_size": self.config.MAX_FILE_SIZE_BYTES,
                    "supported_formats": list(self.config.SUPPORTED_FORMATS),
                },
                "maintenance": self.config.MAINTENANCE_MODE,
            }
            self._cached_at = now
            return self._cached

    def clear(self) -> Optional[Dict[str, Any]]:
        """Drop the cached document and return it."""
        with self._lock:
            previous = self._cached
            self._cached = None
            self._cached_at = None
            self._generated_at = None
        if previous is not None:
            logger.info("Public config cache cleared")
        return previous

    def cache_info(self) -> Dict[str, Any]:
        return {
            "cached": self._cached is not None,
            "generated_at": self._generated_at.isoformat() if self._generated_at else None,
            "ttl_seconds": self.ttl_seconds,
        }
