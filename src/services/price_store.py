"""
Durable storage for the permanent unit price.

Two backends share the same small interface:
- JsonFilePriceStore keeps a single JSON record on disk (default).
- SqlAlchemyPriceStore keeps a single row in a SQL table, which lets
  several app instances share the same permanent price.

Both wrap their I/O failures into PriceStorageError so the pricing
service can abort a permanent update without partial state changes.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from src.config import Config
from src.database import build_engine, build_session_factory, init_schema
from src.models import PriceRecord
from src.services.pricing_errors import PriceStorageError

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class StoredPrice:
    price: float
    currency: str
    last_updated: datetime
    updated_by: str
    environment: str

    def to_record(self) -> Dict[str, Any]:
        return {
            "price": self.price,
            "currency": self.currency,
            "lastUpdated": _as_utc(self.last_updated).isoformat(),
            "updatedBy": self.updated_by,
            "environment": self.environment,
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "StoredPrice":
        """Build from the on-disk record. Raises ValueError on malformed input."""
        if not isinstance(data, dict) or "price" not in data:
            raise ValueError("price record must be an object with a 'price' field")
        last_updated = data.get("lastUpdated")
        if isinstance(last_updated, str) and last_updated.endswith("Z"):
            last_updated = last_updated[:-1] + "+00:00"
        return cls(
            price=data["price"],
            currency=str(data.get("currency", Config.PRICE_CURRENCY)),
            last_updated=_as_utc(datetime.fromisoformat(last_updated))
            if last_updated
            else datetime.now(timezone.utc),
            updated_by=str(data.get("updatedBy", "unknown")),
            environment=str(data.get("environment", "unknown")),
        )


class PriceStore(Protocol):
    def load(self) -> Optional[StoredPrice]:
        """Return the stored record, None when nothing was ever persisted."""
        ...

    def save(self, record: StoredPrice) -> None:
        ...

    def describe(self) -> str:
        ...

    def check_health(self) -> Dict[str, str]:
        ...


class JsonFilePriceStore:
    """Single JSON record on the local filesystem, replaced atomically."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Optional[StoredPrice]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return StoredPrice.from_record(data)
        except (OSError, ValueError, TypeError) as exc:
            raise PriceStorageError(f"Could not read price file {self.path}: {exc}") from exc

    def save(self, record: StoredPrice) -> None:
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(record.to_record(), handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            raise PriceStorageError(f"Could not write price file {self.path}: {exc}") from exc
        logger.debug("Price record written to %s", self.path)

    def describe(self) -> str:
        return f"file:{self.path}"

    def check_health(self) -> Dict[str, str]:
        try:
            self.load()
        except PriceStorageError as exc:
            return {"status": "DOWN", "backend": "file", "detail": str(exc)}
        return {"status": "UP", "backend": "file"}


class SqlAlchemyPriceStore:
    """Single-row table shared by every instance pointing at the same database."""

    def __init__(self, session_factory: sessionmaker, record_id: int = 1) -> None:
        self.session_factory = session_factory
        self.record_id = record_id

    def load(self) -> Optional[StoredPrice]:
        try:
            with self.session_factory() as session:
                row = session.get(PriceRecord, self.record_id)
                if row is None:
                    return None
                return StoredPrice(
                    price=float(row.price),
                    currency=row.currency,
                    last_updated=_as_utc(row.last_updated),
                    updated_by=row.updated_by,
                    environment=row.environment,
                )
        except SQLAlchemyError as exc:
            raise PriceStorageError(f"Could not read price record: {exc}") from exc

    def save(self, record: StoredPrice) -> None:
        session = self.session_factory()
        try:
            row = session.get(PriceRecord, self.record_id)
            if row is None:
                row = PriceRecord(id=self.record_id)
                session.add(row)
            row.price = record.price
            row.currency = record.currency
            row.last_updated = _as_utc(record.last_updated)
            row.updated_by = record.updated_by
            row.environment = record.environment
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise PriceStorageError(f"Could not write price record: {exc}") from exc
        finally:
            session.close()

    def describe(self) -> str:
        return "database"

    def check_health(self) -> Dict[str, str]:
        """Attempt a lightweight DB query to ensure connectivity."""
        try:
            with self.session_factory() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            return {"status": "DOWN", "backend": "database", "detail": str(exc)}
        return {"status": "UP", "backend": "database"}


def build_price_store(config: Any = Config) -> PriceStore:
    backend = config.PRICE_STORE_BACKEND
    if backend == "file":
        return JsonFilePriceStore(config.PRICE_FILE_PATH)
    if backend == "database":
        engine = build_engine(config.DATABASE_URL)
        init_schema(engine)
        return SqlAlchemyPriceStore(build_session_factory(engine))
    raise ValueError(f"Unknown PRICE_STORE_BACKEND '{backend}' (expected 'file' or 'database')")
