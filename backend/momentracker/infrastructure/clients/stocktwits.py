from __future__ import annotations

import logging

import httpx

from momentracker.domain.errors import ProviderError, ProviderMalformedResponseError, ProviderRateLimitedError
from momentracker.domain.market_time import normalize_symbol
from momentracker.domain.trending.schemas import SentimentCounts, TrendingFeedItem
from momentracker.infrastructure.clients.payloads import extract_float, extract_int, extract_str

logger = logging.getLogger(__name__)


class StockTwitsClient:
    def __init__(
        self,
        *,
        base_url: str = "https://api.stocktwits.com/api/2",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def get(self, path: str) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as client:
                resp = await client.get(f"{self.base_url}{path}")
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise ProviderRateLimitedError(f"stocktwits {path}: 429") from exc
            raise ProviderError(f"stocktwits {path}: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"stocktwits {path}: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            raise ProviderMalformedResponseError(f"stocktwits {path}: invalid json") from exc

        if not isinstance(payload, dict):
            raise ProviderMalformedResponseError(f"stocktwits {path}: unexpected payload")
        return payload

    async def list_trending(self, *, limit: int = 30) -> list[TrendingFeedItem]:
        payload = await self.get("/trending/symbols.json")
        raw_symbols = payload.get("symbols")
        if not isinstance(raw_symbols, list):
            raise ProviderMalformedResponseError("stocktwits trending payload has no symbols list")

        items: list[TrendingFeedItem] = []
        seen: set[str] = set()
        for raw in raw_symbols:
            symbol = normalize_symbol(extract_str(raw, "symbol"))
            if symbol is None or symbol in seen:
                continue
            seen.add(symbol)
            items.append(
                TrendingFeedItem(
                    symbol=symbol,
                    rank=len(items) + 1,
                    trending_score=extract_float(raw, "trending_score") or 0.0,
                    watchlist_count=extract_int(raw, "watchlist_count"),
                )
            )
            if len(items) >= limit:
                break
        return items

    async def get_sentiment_counts(self, symbol: str, *, min_messages: int = 10) -> SentimentCounts | None:
        payload = await self.get(f"/streams/symbol/{symbol}.json")
        messages = payload.get("messages")
        if not isinstance(messages, list):
            return None

        bullish = 0
        bearish = 0
        for message in messages:
            sentiment = extract_str(message, "entities.sentiment.basic")
            if sentiment == "Bullish":
                bullish += 1
            elif sentiment == "Bearish":
                bearish += 1

        # Small samples give misleading ratios.
        if bullish + bearish < min_messages:
            logger.debug("Skipping sentiment for %s: %s tagged messages", symbol, bullish + bearish)
            return None
        return SentimentCounts(bullish=bullish, bearish=bearish, message_volume=len(messages))
