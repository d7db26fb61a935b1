"""Currency conversion backed by a cached exchange-rate table."""
from __future__ import annotations

import logging
import threading
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import requests

from app.config import settings
from app.logic.exceptions import CurrencyConversionError

logger = logging.getLogger(__name__)

FALLBACK_CURRENCIES = ["USD", "EUR", "GBP", "INR", "JPY", "AUD", "CAD", "CNY", "CHF", "SEK"]


class CurrencyConverter:
    """Best-effort converter; any lookup failure yields the unconverted amount."""

    def __init__(
        self,
        base_currency: str = settings.DEFAULT_CURRENCY,
        ttl_seconds: int = settings.CURRENCY_CACHE_TTL_SECONDS,
        api_url: str = settings.CURRENCY_API_URL,
        timeout: int = settings.HTTP_TIMEOUT_SECONDS,
    ):
        self.base_currency = base_currency.upper()
        self.ttl_seconds = ttl_seconds
        self.api_url = api_url
        self.timeout = timeout
        self._rates: Dict[str, Decimal] = {}
        self._last_updated: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def is_stale(self) -> bool:
        return self._last_updated is None or (time.monotonic() - self._last_updated) > self.ttl_seconds

    def fetch_exchange_rates(self) -> Dict[str, Decimal]:
        """Fetch exchange rates relative to the base currency."""
        try:
            response = requests.get(self.api_url.format(base=self.base_currency), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CurrencyConversionError(f"Exchange rate fetch failed: {exc}") from exc

        rates = payload.get("rates") or {}
        if not rates:
            raise CurrencyConversionError("Exchange rate response contained no rates")
        return {code.upper(): Decimal(str(rate)) for code, rate in rates.items()}

    def refresh_rates(self) -> bool:
        """Reload the rate table, keeping the previous one on failure."""
        try:
            rates = self.fetch_exchange_rates()
        except CurrencyConversionError as exc:
            logger.warning(f"{exc.message}; keeping {len(self._rates)} cached rates")
            return False

        with self._lock:
            self._rates = rates
            self._last_updated = time.monotonic()
        logger.info(f"Exchange rates updated ({len(rates)} currencies)")
        return True

    def convert(self, amount: Decimal | float, from_currency: str, to_currency: str) -> Decimal:
        """Convert ``amount`` between currencies, returning it unchanged when no rate is known."""
        amount = Decimal(str(amount))
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return amount

        if self.is_stale:
            self.refresh_rates()

        with self._lock:
            from_rate = self._rates.get(from_currency)
            to_rate = self._rates.get(to_currency)

        if not from_rate or not to_rate:
            logger.warning(f"Currency conversion not available for {from_currency} to {to_currency}")
            return amount

        try:
            converted = amount * (to_rate / from_rate)
        except InvalidOperation:
            logger.warning(f"Invalid rate data for {from_currency} to {to_currency}")
            return amount
        return converted.quantize(Decimal("0.01"))


def list_currencies(timeout: int = settings.HTTP_TIMEOUT_SECONDS) -> List[str]:
    """Return the sorted set of currency codes in use across countries."""
    try:
        response = requests.get(settings.COUNTRIES_API_URL, timeout=timeout)
        response.raise_for_status()
        countries = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning(f"Failed to fetch country currencies: {exc}")
        return list(FALLBACK_CURRENCIES)

    codes = set()
    for country in countries:
        codes.update((country.get("currencies") or {}).keys())
    return sorted(codes) or list(FALLBACK_CURRENCIES)


currency_converter = CurrencyConverter()


def get_currency_converter() -> CurrencyConverter:
    return currency_converter
