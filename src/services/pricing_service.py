"""
Pricing Service

Owns the unit price charged per magnet. The active price is resolved through
four tiers, highest priority first:

1. runtime override   - in-process, cleared by reset or a restart
2. persisted override - mirror of the durable price record
3. environment        - PRODUCT_UNIT_PRICE, read once at construction
4. hard default       - fixed fallback

Every write goes through validate_price() and is appended to a bounded,
in-memory change history.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from src.config import Config
from src.observability import increment_counter, record_event
from src.services.price_store import PriceStore, StoredPrice, build_price_store
from src.services.pricing_errors import (
    PriceStorageError,
    PriceValidationError,
    ValidationErrorKind,
)

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


class PriceTier(str, Enum):
    RUNTIME = "runtime"
    PERSISTED = "persisted"
    ENVIRONMENT = "environment"
    DEFAULT = "default"


class PriceChangeSource(str, Enum):
    ADMIN_RUNTIME = "admin_runtime"
    ADMIN_PERMANENT = "admin_permanent"
    RESET = "reset"


def _parse_amount(candidate: Any) -> Decimal:
    if candidate is None:
        raise PriceValidationError(ValidationErrorKind.NULL_OR_MISSING, "Price is required", candidate)
    # bool is an int subclass; True is not a price
    if isinstance(candidate, bool):
        raise PriceValidationError(ValidationErrorKind.NOT_A_NUMBER, "Price must be a number", candidate)

    if isinstance(candidate, str):
        text = candidate.strip()
        if not text:
            raise PriceValidationError(ValidationErrorKind.NULL_OR_MISSING, "Price is required", candidate)
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise PriceValidationError(
                ValidationErrorKind.NOT_A_NUMBER, f"Price must be a number, got '{text}'", candidate
            ) from None
    elif isinstance(candidate, (int, float, Decimal)):
        amount = Decimal(candidate)
    else:
        raise PriceValidationError(
            ValidationErrorKind.NOT_A_NUMBER,
            f"Price must be a number, got {type(candidate).__name__}",
            candidate,
        )

    if amount.is_nan():
        raise PriceValidationError(ValidationErrorKind.NOT_A_NUMBER, "Price must be a number", candidate)
    if amount.is_infinite():
        raise PriceValidationError(ValidationErrorKind.NON_FINITE, "Price must be finite", candidate)
    return amount


def validate_price(
    candidate: Any,
    min_price: float = Config.MIN_PRICE,
    max_price: float = Config.MAX_PRICE,
) -> float:
    """
    Check a candidate unit price against the business rules.

    Accepts int, float, Decimal or a string holding a decimal literal.
    Returns the price rounded half-up to 2 decimals; raises
    PriceValidationError carrying the failed rule as its kind.
    """
    amount = _parse_amount(candidate)
    if amount < Decimal(min_price):
        raise PriceValidationError(
            ValidationErrorKind.TOO_LOW, f"Price must be at least {min_price:g}", candidate
        )
    if amount > Decimal(max_price):
        raise PriceValidationError(
            ValidationErrorKind.TOO_HIGH, f"Price must be at most {max_price:g}", candidate
        )
    return float(amount.quantize(_CENTS, rounding=ROUND_HALF_UP))


def compute_change_percent(old_price: Optional[float], new_price: float) -> Optional[float]:
    if not old_price:
        return None
    return round((new_price - old_price) / old_price * 100, 2)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class PriceChangeRecord:
    old_price: Optional[float]
    new_price: float
    source: PriceChangeSource
    change_percent: Optional[float]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "old_price": self.old_price,
            "new_price": self.new_price,
            "source": self.source.value,
            "change_percent": self.change_percent,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PermanentPriceResult:
    new_price: float
    old_price: float
    change_percent: Optional[float]
    timestamp: datetime
    storage: str
    persisted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_price": self.new_price,
            "old_price": self.old_price,
            "change_percent": self.change_percent,
            "timestamp": self.timestamp.isoformat(),
            "storage": self.storage,
            "persisted": self.persisted,
        }


@dataclass
class PricingStats:
    current_price: float
    active_tier: PriceTier
    currency: str
    runtime_price: Optional[float]
    persisted_price: Optional[float]
    environment_price: Optional[float]
    default_price: float
    runtime_active: bool
    persisted_active: bool
    min_price: float
    max_price: float
    persisted_updated_at: Optional[datetime]
    persisted_updated_by: Optional[str]
    recent_changes: List[PriceChangeRecord]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_price": self.current_price,
            "active_tier": self.active_tier.value,
            "currency": self.currency,
            "tiers": {
                "runtime": self.runtime_price,
                "persisted": self.persisted_price,
                "environment": self.environment_price,
                "default": self.default_price,
            },
            "runtime_active": self.runtime_active,
            "persisted_active": self.persisted_active,
            "bounds": {"min": self.min_price, "max": self.max_price},
            "persisted_updated_at": _isoformat(self.persisted_updated_at),
            "persisted_updated_by": self.persisted_updated_by,
            "recent_changes": [change.to_dict() for change in self.recent_changes],
        }


class PricingService:
    """
    Resolves, validates and updates the unit price.

    Construct one instance per process and hand it to every caller;
    two instances never share runtime overrides or history.
    """

    def __init__(
        self,
        store: PriceStore,
        *,
        environment_default: Any = None,
        currency: str = "ARS",
        min_price: float = 100.0,
        max_price: float = 100000.0,
        hard_default: float = 2000.0,
        history_size: int = 50,
        refresh_seconds: float = 0.0,
        environment_name: str = "development",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self.currency = currency
        self.min_price = min_price
        self.max_price = max_price
        self.environment_name = environment_name
        self.refresh_seconds = refresh_seconds
        self._clock = clock
        self._lock = threading.RLock()

        try:
            self.hard_default = self.validate(hard_default)
        except PriceValidationError as exc:
            raise ValueError(f"Hard default price {hard_default!r} is invalid: {exc.message}") from exc

        self._environment_raw = environment_default
        self._environment_error: Optional[str] = None
        self._environment_default = self._load_environment_default(environment_default)

        self._runtime_override: Optional[float] = None
        self._persisted_override: Optional[float] = None
        self._persisted_record: Optional[StoredPrice] = None
        self._persisted_loaded_at: Optional[float] = None
        self._history: Deque[PriceChangeRecord] = deque(maxlen=history_size)

        self.reload_persisted()

    @classmethod
    def from_config(cls, config: Any = Config, store: Optional[PriceStore] = None) -> "PricingService":
        return cls(
            store or build_price_store(config),
            environment_default=config.PRODUCT_UNIT_PRICE,
            currency=config.PRICE_CURRENCY,
            min_price=config.MIN_PRICE,
            max_price=config.MAX_PRICE,
            hard_default=config.HARD_DEFAULT_PRICE,
            history_size=config.PRICE_HISTORY_SIZE,
            refresh_seconds=config.PRICE_STORE_REFRESH_SECONDS,
            environment_name=config.APP_ENV,
        )

    @property
    def store(self) -> PriceStore:
        return self._store

    @property
    def history_size(self) -> Optional[int]:
        return self._history.maxlen

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, candidate: Any) -> float:
        return validate_price(candidate, self.min_price, self.max_price)

    def validate_external(self, candidate: Any) -> Dict[str, Any]:
        """Same rules as validate(), reported as data instead of raised."""
        try:
            return {"valid": True, "price": self.validate(candidate)}
        except PriceValidationError as exc:
            return {"valid": False, "error": exc.message, "kind": exc.kind.value}

    def _validate_write(self, value: Any, source: PriceChangeSource) -> float:
        try:
            return self.validate(value)
        except PriceValidationError as exc:
            increment_counter("price_validation_failures_total", labels={"kind": exc.kind.value})
            logger.warning("Rejected %s price %r: %s", source.value, value, exc.message)
            raise

    def _load_environment_default(self, raw: Any) -> Optional[float]:
        if raw is None:
            return None
        try:
            return self.validate(raw)
        except PriceValidationError as exc:
            self._environment_error = exc.message
            logger.warning("Ignoring invalid PRODUCT_UNIT_PRICE %r: %s", raw, exc.message)
            return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _resolve(self) -> Tuple[float, PriceTier]:
        if self._runtime_override is not None:
            return self._runtime_override, PriceTier.RUNTIME
        if self._persisted_override is not None:
            return self._persisted_override, PriceTier.PERSISTED
        if self._environment_default is not None:
            return self._environment_default, PriceTier.ENVIRONMENT
        if self._environment_error:
            logger.warning(
                "PRODUCT_UNIT_PRICE %r is invalid (%s); using default %s",
                self._environment_raw,
                self._environment_error,
                self.hard_default,
            )
        return self.hard_default, PriceTier.DEFAULT

    def _maybe_refresh(self) -> None:
        if self.refresh_seconds <= 0:
            return
        loaded_at = self._persisted_loaded_at
        if loaded_at is None or self._clock() - loaded_at >= self.refresh_seconds:
            self.reload_persisted()

    def get_current_price(self) -> float:
        """Return the active unit price. Never raises; degrades to the hard default."""
        try:
            self._maybe_refresh()
            with self._lock:
                price, _ = self._resolve()
            return price
        except Exception:
            logger.exception("Price resolution failed, falling back to %s", self.hard_default)
            return self.hard_default

    def get_active_tier(self) -> PriceTier:
        with self._lock:
            return self._resolve()[1]

    def get_history(self, limit: Optional[int] = None) -> List[PriceChangeRecord]:
        """Change records, most recent first."""
        with self._lock:
            records = list(self._history)
        return records if limit is None else records[:max(limit, 0)]

    def get_stats(self, history_limit: int = 10) -> PricingStats:
        self._maybe_refresh()
        with self._lock:
            price, tier = self._resolve()
            persisted = self._persisted_record
            return PricingStats(
                current_price=price,
                active_tier=tier,
                currency=self.currency,
                runtime_price=self._runtime_override,
                persisted_price=self._persisted_override,
                environment_price=self._environment_default,
                default_price=self.hard_default,
                runtime_active=self._runtime_override is not None,
                persisted_active=self._persisted_override is not None,
                min_price=self.min_price,
                max_price=self.max_price,
                persisted_updated_at=persisted.last_updated if persisted else None,
                persisted_updated_by=persisted.updated_by if persisted else None,
                recent_changes=list(self._history)[:max(history_limit, 0)],
            )

    def debug_pricing(self) -> Dict[str, Any]:
        with self._lock:
            runtime = self._runtime_override
            persisted = self._persisted_override
        return {
            "runtime": runtime,
            "persisted": persisted,
            "env": self._environment_default,
            "current": self.get_current_price(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _record_change(
        self,
        old_price: Optional[float],
        new_price: float,
        source: PriceChangeSource,
        timestamp: Optional[datetime] = None,
    ) -> PriceChangeRecord:
        record = PriceChangeRecord(
            old_price=old_price,
            new_price=new_price,
            source=source,
            change_percent=compute_change_percent(old_price, new_price),
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        self._history.appendleft(record)
        increment_counter("price_changes_total", labels={"source": source.value})
        record_event("price_changed", record.to_dict())
        return record

    def set_runtime_price(self, value: Any) -> float:
        """Override the price in memory only. The durable record is not touched."""
        price = self._validate_write(value, PriceChangeSource.ADMIN_RUNTIME)
        with self._lock:
            old_price, _ = self._resolve()
            self._runtime_override = price
            self._record_change(old_price, price, PriceChangeSource.ADMIN_RUNTIME)
        logger.info("Runtime price updated: %s -> %s %s", old_price, price, self.currency)
        return price

    def set_permanent_price(self, value: Any, updated_by: str = "admin") -> PermanentPriceResult:
        """
        Persist a new price and mirror it in memory.

        All or nothing: when the store write fails, PriceStorageError is
        raised and neither the overrides nor the history change.
        """
        price = self._validate_write(value, PriceChangeSource.ADMIN_PERMANENT)
        with self._lock:
            old_price, _ = self._resolve()
            timestamp = datetime.now(timezone.utc)
            stored = StoredPrice(
                price=price,
                currency=self.currency,
                last_updated=timestamp,
                updated_by=updated_by,
                environment=self.environment_name,
            )
            try:
                self._store.save(stored)
            except PriceStorageError as exc:
                increment_counter("price_storage_failures_total")
                logger.error("Permanent price update to %s failed: %s", price, exc)
                raise

            self._persisted_override = price
            self._persisted_record = stored
            self._persisted_loaded_at = self._clock()
            self._runtime_override = price
            change = self._record_change(old_price, price, PriceChangeSource.ADMIN_PERMANENT, timestamp)

        logger.info(
            "Permanent price updated: %s -> %s %s (%s)",
            old_price,
            price,
            self.currency,
            self._store.describe(),
        )
        return PermanentPriceResult(
            new_price=price,
            old_price=old_price,
            change_percent=change.change_percent,
            timestamp=timestamp,
            storage=self._store.describe(),
        )

    def reset_runtime_price(self) -> float:
        """Drop the runtime override and return the price the chain falls back to."""
        with self._lock:
            before, _ = self._resolve()
            self._runtime_override = None
            after, tier = self._resolve()
            self._record_change(before, after, PriceChangeSource.RESET)
        logger.info("Runtime price cleared: %s -> %s (%s)", before, after, tier.value)
        return after

    def reload_persisted(self) -> Optional[float]:
        """Re-read the durable record into the persisted tier."""
        # Held across the read so a concurrent permanent update cannot be
        # overwritten by the record it replaced.
        with self._lock:
            try:
                stored = self._store.load()
            except PriceStorageError as exc:
                logger.warning("Could not read persisted price, keeping previous value: %s", exc)
                return self._persisted_override

            self._persisted_loaded_at = self._clock()
            if stored is None:
                self._persisted_override = None
                self._persisted_record = None
                return None
            try:
                price = self.validate(stored.price)
            except PriceValidationError as exc:
                logger.warning("Ignoring invalid persisted price %r: %s", stored.price, exc.message)
                self._persisted_override = None
                self._persisted_record = None
                return None
            self._persisted_override = price
            self._persisted_record = stored
            return price

    # Names used by the order, config and admin collaborators
    get_unit_price = get_current_price
    set_runtime_unit_price = set_runtime_price
    get_pricing_stats = get_stats
