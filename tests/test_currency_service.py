import logging
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests

from app.config import settings
from app.integrations.currency_service import (
    CurrencyConverter,
    FALLBACK_CURRENCIES,
    list_currencies,
)


def rates_response(rates):
    response = MagicMock()
    response.json.return_value = {"base": "USD", "rates": rates}
    response.raise_for_status.return_value = None
    return response


@patch("app.integrations.currency_service.requests.get")
def test_convert_uses_cross_rate(mock_get):
    mock_get.return_value = rates_response({"USD": 1, "EUR": 0.5, "INR": 80})
    converter = CurrencyConverter()

    assert converter.convert(Decimal("10"), "EUR", "INR") == Decimal("1600.00")
    assert converter.convert(Decimal("10"), "usd", "eur") == Decimal("5.00")
    assert mock_get.call_count == 1


@patch("app.integrations.currency_service.requests.get")
def test_same_currency_skips_lookup(mock_get):
    converter = CurrencyConverter()

    assert converter.convert(Decimal("12.34"), "USD", "USD") == Decimal("12.34")
    mock_get.assert_not_called()


@patch("app.integrations.currency_service.requests.get")
def test_unknown_currency_returns_original_amount(mock_get):
    mock_get.return_value = rates_response({"USD": 1, "EUR": 0.5})
    converter = CurrencyConverter()

    assert converter.convert(Decimal("42"), "XYZ", "USD") == Decimal("42")


@patch("app.integrations.currency_service.requests.get")
def test_failed_refresh_keeps_previous_rates(mock_get):
    mock_get.return_value = rates_response({"USD": 1, "EUR": 0.5})
    converter = CurrencyConverter(ttl_seconds=0)
    assert converter.refresh_rates() is True

    mock_get.side_effect = requests.ConnectionError("offline")

    assert converter.refresh_rates() is False
    assert converter.convert(Decimal("10"), "USD", "EUR") == Decimal("5.00")


@patch("app.integrations.currency_service.requests.get")
def test_empty_rate_payload_is_treated_as_failure(mock_get):
    mock_get.return_value = rates_response({})
    converter = CurrencyConverter()

    assert converter.refresh_rates() is False
    assert converter.is_stale


@patch("app.integrations.currency_service.requests.get")
def test_list_currencies_collects_codes(mock_get):
    response = MagicMock()
    response.json.return_value = [
        {"name": {"common": "France"}, "currencies": {"EUR": {}}},
        {"name": {"common": "India"}, "currencies": {"INR": {}}},
        {"name": {"common": "Germany"}, "currencies": {"EUR": {}}},
        {"name": {"common": "Antarctica"}},
    ]
    mock_get.return_value = response

    assert list_currencies() == ["EUR", "INR"]


@patch("app.integrations.currency_service.requests.get", side_effect=requests.Timeout("slow"))
def test_list_currencies_falls_back(mock_get):
    assert list_currencies() == FALLBACK_CURRENCIES


@patch("app.integrations.currency_service.requests.get")
def test_rates_are_fetched_for_configured_default_currency(mock_get):
    mock_get.return_value = rates_response({"USD": 1, "EUR": 0.5})
    converter = CurrencyConverter()

    converter.convert(Decimal("10"), "EUR", "USD")

    assert converter.base_currency == settings.DEFAULT_CURRENCY.upper()
    assert settings.DEFAULT_CURRENCY.upper() in mock_get.call_args[0][0]


@patch("app.integrations.currency_service.requests.get")
def test_failed_refresh_logs_cached_rate_count(mock_get, caplog):
    mock_get.return_value = rates_response({"USD": 1, "EUR": 0.5, "INR": 80})
    converter = CurrencyConverter(ttl_seconds=0)
    converter.refresh_rates()
    mock_get.side_effect = requests.ConnectionError("offline")

    with caplog.at_level(logging.WARNING, logger="app.integrations.currency_service"):
        converter.refresh_rates()

    assert "keeping 3 cached rates" in caplog.text
    assert "Exchange rate fetch failed: offline" in caplog.text
