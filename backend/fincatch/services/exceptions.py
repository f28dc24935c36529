# backend/fincatch/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO UI knowledge.
The caller (typically a UI layer) decides how to present them.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InvalidIntervalError
    │   ├── InvalidDateRangeError
    │   └── UnsupportedCurrencyError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   ├── TickerNotFoundError
    │   ├── RateLimitError
    │   └── UnsupportedSourceError
    ├── FXRateError
    │   ├── FXRateNotFoundError
    │   ├── FXProviderError
    │   └── FXConversionError
    └── OperationCancelledError

Handling policy:
    - MarketDataError / FXRateError raised while valuing ONE entry or ONE
      history point are caught by the engine, logged, and the entry/point is
      skipped. They never abort a batch.
    - OperationCancelledError always propagates to the caller.
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails.

    This is for programmatic validation errors (invalid parameters), NOT for
    entry validation which is handled by the pydantic models.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidIntervalError(ValidationError):
    """Raised when a history interval is not a positive number of days."""

    def __init__(self, interval_days: int) -> None:
        self.interval_days = interval_days
        super().__init__(
            f"Invalid interval: {interval_days} days. Interval must be at least 1 day",
            field="interval_days"
        )


class InvalidDateRangeError(ValidationError):
    """Raised when a history range starts after it ends."""

    def __init__(self, start_ts: int, end_ts: int) -> None:
        self.start_ts = start_ts
        self.end_ts = end_ts
        super().__init__(
            f"Invalid date range: start {start_ts} is after end {end_ts}",
            field="start_date"
        )


class UnsupportedCurrencyError(ValidationError):
    """Raised when a display currency is not one the engine reports in."""

    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(
            f"Unsupported display currency: '{currency}'",
            field="display_currency"
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)
    - Malformed response body

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a symbol is not known to the provider.

    This is NOT a retryable error.
    """

    def __init__(self, symbol: str, provider: str) -> None:
        message = f"Symbol '{symbol}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.symbol = symbol


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


class UnsupportedSourceError(MarketDataError):
    """
    Raised when no provider is registered for a requested data source.

    Attributes:
        source: The unknown source identifier
        kind: "stock" or "gold"
    """

    def __init__(self, source: str | None, kind: str) -> None:
        self.source = source
        self.kind = kind
        super().__init__(f"No {kind} data provider registered for source '{source}'")


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Base exception for FX rate errors.

    Attributes:
        base_currency: The base currency code
        quote_currency: The quote currency code
    """

    def __init__(
            self,
            message: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        super().__init__(message)


class FXRateNotFoundError(FXRateError):
    """
    Raised when no usable FX rate is available for a currency pair.

    This can happen when:
    - The currency is not quoted by the provider
    - The provider returned no data for the window
    - The provider returned a zero rate
    """

    def __init__(
            self,
            base_currency: str,
            quote_currency: str,
            message: str | None = None,
    ) -> None:
        msg = message or f"No FX rate found for {base_currency}/{quote_currency}"
        super().__init__(msg, base_currency=base_currency, quote_currency=quote_currency)


class FXProviderError(FXRateError):
    """
    Raised when the FX data provider fails.

    Attributes:
        provider: Name of the FX data provider
        reason: Specific reason for failure
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"FX provider '{provider}' error: {reason}")


class FXConversionError(FXRateError):
    """
    Raised when FX conversion fails due to invalid parameters.

    Examples:
    - Non-finite amount

    Attributes:
        reason: Specific reason for conversion failure
    """

    def __init__(
            self,
            reason: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(
            f"FX conversion error: {reason}",
            base_currency=base_currency,
            quote_currency=quote_currency,
        )


# =============================================================================
# CANCELLATION
# =============================================================================


class OperationCancelledError(ServiceError):
    """
    Raised at an await point when the calculation's cancellation token
    has been tripped (e.g. the user changed display currency or timeframe).
    """

    def __init__(self, message: str = "Calculation was cancelled") -> None:
        super().__init__(message)


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "InvalidIntervalError",
    "InvalidDateRangeError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "UnsupportedSourceError",
    # FX Rate
    "FXRateError",
    "FXRateNotFoundError",
    "FXProviderError",
    "FXConversionError",
    # Cancellation
    "OperationCancelledError",
]
