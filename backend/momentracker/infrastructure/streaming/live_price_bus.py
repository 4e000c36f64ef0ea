from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
import json
import logging

import redis.asyncio as redis

from momentracker.domain.market_time import normalize_symbol, to_utc
from momentracker.domain.quotes.schemas import (
    LiveEvent,
    LivePriceState,
    StreamErrorEvent,
    StreamStatusEvent,
)
from momentracker.infrastructure.clients.payloads import (
    extract_float,
    extract_str,
    parse_message_payload,
    to_utc_datetime,
)

logger = logging.getLogger(__name__)

PRICE_UPDATE = "price.update"
SYSTEM_STATUS = "system.status"
SYSTEM_ERROR = "system.error"


class RedisLivePriceBus:
    """Live price events over one redis channel.

    Every published price is also written to a hash keyed by symbol, so
    processes that never subscribed (the dashboard endpoint) can still read
    the latest trade. The hash expires after ``latest_ttl_seconds`` without
    a new price.
    """

    def __init__(
        self,
        *,
        redis_url: str,
        channel: str,
        latest_key: str,
        latest_ttl_seconds: int = 86_400,
    ) -> None:
        self._redis_url = redis_url
        self._channel = channel
        self._latest_key = latest_key
        self._latest_ttl_seconds = max(1, latest_ttl_seconds)
        self._client: redis.Redis | None = None
        self._lock = asyncio.Lock()

    async def publish_price(self, state: LivePriceState) -> None:
        message = encode_live_event(state)
        client = await self._get_client()
        async with client.pipeline(transaction=True) as pipe:
            await (
                pipe.hset(self._latest_key, state.symbol, message)
                .expire(self._latest_key, self._latest_ttl_seconds)
                .publish(self._channel, message)
                .execute()
            )

    async def publish_status(self, connection_state: str, message: str | None = None) -> None:
        await self._publish(StreamStatusEvent(connection_state=connection_state, message=message))

    async def publish_error(self, code: str, message: str) -> None:
        await self._publish(StreamErrorEvent(code=code, message=message))

    async def forget_prices(self, symbols: Iterable[str]) -> None:
        fields = sorted(set(symbols))
        if not fields:
            return
        client = await self._get_client()
        await client.hdel(self._latest_key, *fields)

    async def latest_prices(self, symbols: Iterable[str]) -> dict[str, LivePriceState]:
        fields = sorted({symbol for symbol in map(normalize_symbol, symbols) if symbol})
        if not fields:
            return {}
        client = await self._get_client()
        values = await client.hmget(self._latest_key, fields)

        states: dict[str, LivePriceState] = {}
        for raw in values:
            event = decode_live_event(raw)
            if isinstance(event, LivePriceState):
                states[event.symbol] = event
        return states

    async def close(self) -> None:
        client = self._client
        self._client = None
        if client is not None:
            await client.aclose()

    async def _publish(self, event: LiveEvent) -> None:
        client = await self._get_client()
        await client.publish(self._channel, encode_live_event(event))

    async def _get_client(self) -> redis.Redis:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                self._client = redis.from_url(self._redis_url, decode_responses=False)
            return self._client


class RedisLivePriceSubscriber:
    def __init__(self, *, redis_url: str, channel: str) -> None:
        self._redis_url = redis_url
        self._channel = channel

    async def listen(
        self,
        *,
        stop_event: asyncio.Event,
        on_event: Callable[[LiveEvent], Awaitable[None]],
    ) -> None:
        client = redis.from_url(self._redis_url, decode_responses=False)
        pubsub = client.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            while not stop_event.is_set():
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if not message:
                    continue
                event = decode_live_event(message.get("data"))
                if event is None:
                    logger.debug("Ignoring undecodable live price message on %s", self._channel)
                    continue
                try:
                    await on_event(event)
                except Exception:
                    logger.exception("Failed to handle live price event %s", type(event).__name__)
        finally:
            try:
                await pubsub.unsubscribe(self._channel)
            finally:
                await pubsub.aclose()
                await client.aclose()


def encode_live_event(event: LiveEvent) -> str:
    if isinstance(event, LivePriceState):
        payload = {
            "type": PRICE_UPDATE,
            "data": {
                "symbol": event.symbol,
                "price": event.last_price,
                "previous_close": event.previous_close,
                "percent_change": event.percent_change,
                "delta": event.delta,
                "trade_ts": to_utc(event.last_trade_at).isoformat(),
            },
        }
    elif isinstance(event, StreamStatusEvent):
        payload = {
            "type": SYSTEM_STATUS,
            "data": {"connection_state": event.connection_state, "message": event.message},
        }
    else:
        payload = {
            "type": SYSTEM_ERROR,
            "data": {"code": event.code, "message": event.message},
        }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def decode_live_event(raw: object) -> LiveEvent | None:
    if not isinstance(raw, (str, bytes)):
        return None
    frames = parse_message_payload(raw)
    if len(frames) != 1:
        return None
    payload = frames[0]
    data = payload.get("data")
    if not isinstance(data, dict):
        return None

    event_type = extract_str(payload, "type").lower()
    if event_type == PRICE_UPDATE:
        return _decode_price_state(data)
    if event_type == SYSTEM_STATUS:
        connection_state = extract_str(data, "connection_state").lower()
        if not connection_state:
            return None
        return StreamStatusEvent(
            connection_state=connection_state,
            message=extract_str(data, "message") or None,
        )
    if event_type == SYSTEM_ERROR:
        code = extract_str(data, "code")
        if not code:
            return None
        return StreamErrorEvent(code=code, message=extract_str(data, "message"))
    return None


def _decode_price_state(data: dict[str, object]) -> LivePriceState | None:
    symbol = normalize_symbol(data.get("symbol"))
    price = extract_float(data, "price")
    traded_at = to_utc_datetime(data.get("trade_ts"))
    if symbol is None or price is None or traded_at is None:
        return None
    return LivePriceState(
        symbol=symbol,
        last_price=price,
        previous_close=extract_float(data, "previous_close") or 0.0,
        percent_change=extract_float(data, "percent_change") or 0.0,
        delta=extract_float(data, "delta") or 0.0,
        last_trade_at=traded_at,
    )
