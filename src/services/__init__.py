from .pricing_errors import PricingError, PriceStorageError, PriceValidationError, ValidationErrorKind
from .price_store import JsonFilePriceStore, SqlAlchemyPriceStore, StoredPrice, build_price_store
from .pricing_service import PricingService, validate_price
from .order_quote_service import OrderQuoteService
from .public_config_service import PublicConfigService

__all__ = [
    "PricingError",
    "PriceStorageError",
    "PriceValidationError",
    "ValidationErrorKind",
    "JsonFilePriceStore",
    "SqlAlchemyPriceStore",
    "StoredPrice",
    "build_price_store",
    "PricingService",
    "validate_price",
    "OrderQuoteService",
    "PublicConfigService",
]
