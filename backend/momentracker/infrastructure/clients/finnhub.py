from __future__ import annotations

from datetime import datetime, timezone
import logging

import httpx

from momentracker.domain.errors import ProviderError, ProviderMalformedResponseError, ProviderRateLimitedError
from momentracker.domain.quotes.pricing import is_unknown_symbol_quote, percent_change
from momentracker.domain.quotes.schemas import Quote
from momentracker.infrastructure.clients.payloads import extract_float, to_utc_datetime

logger = logging.getLogger(__name__)


class FinnhubClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://finnhub.io/api/v1",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Finnhub API key is not configured")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def get(self, path: str, params: dict | None = None) -> dict:
        params = dict(params or {})
        params["token"] = self.api_key
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}{path}", params=params)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise ProviderRateLimitedError(f"finnhub {path}: 429") from exc
            raise ProviderError(f"finnhub {path}: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"finnhub {path}: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            raise ProviderMalformedResponseError(f"finnhub {path}: invalid json") from exc

        if not isinstance(payload, dict):
            raise ProviderMalformedResponseError(f"finnhub {path}: unexpected payload")
        return payload

    async def get_quote(self, symbol: str) -> Quote | None:
        payload = await self.get("/quote", {"symbol": symbol})
        return map_finnhub_quote(symbol=symbol, payload=payload)


def map_finnhub_quote(*, symbol: str, payload: dict) -> Quote | None:
    price = extract_float(payload, "c")
    previous_close = extract_float(payload, "pc")
    if price is None and previous_close is None:
        raise ProviderMalformedResponseError(f"finnhub quote for {symbol} has no price fields")

    price = price or 0.0
    previous_close = previous_close or 0.0
    # Finnhub answers unknown tickers with an all-zero quote.
    if is_unknown_symbol_quote(price=price, previous_close=previous_close):
        logger.info("Finnhub reported no data for %s", symbol)
        return None

    reported_change = extract_float(payload, "dp")
    fetched_at = to_utc_datetime(payload.get("t")) or datetime.now(tz=timezone.utc)
    return Quote(
        symbol=symbol,
        price=price,
        open=extract_float(payload, "o") or price,
        high=extract_float(payload, "h") or price,
        low=extract_float(payload, "l") or price,
        previous_close=previous_close,
        volume=extract_float(payload, "v") or 0.0,
        fetched_at=fetched_at,
        percent_change=(
            round(reported_change, 2) if reported_change is not None else percent_change(price, previous_close)
        ),
    )
