from __future__ import annotations

from datetime import datetime, timezone

from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosed, InvalidStatus
from websockets.frames import Close
from websockets.http11 import Response

from momentracker.domain.errors import TransportAuthError
from momentracker.infrastructure.clients.finnhub_stream import _auth_rejection, parse_trade_ticks
from momentracker.infrastructure.clients.payloads import (
    extract_float,
    extract_str,
    parse_message_payload,
    to_utc_datetime,
)


def test_parse_trade_ticks_skips_malformed_entries() -> None:
    ticks = parse_trade_ticks(
        {
            "type": "trade",
            "data": [
                {"s": "AAPL", "p": 190.25, "t": 1772377200123, "v": 100},
                {"s": "AAPL", "p": 0, "t": 1772377200124},
                {"s": "", "p": 12.0, "t": 1772377200125},
                {"s": "MSFT", "p": 410.5},
            ],
        }
    )

    assert len(ticks) == 1
    assert ticks[0].symbol == "AAPL"
    assert ticks[0].price == 190.25
    assert ticks[0].volume == 100
    assert ticks[0].traded_at == datetime(2026, 3, 2, 15, 0, 0, 123000, tzinfo=timezone.utc)


def test_parse_trade_ticks_without_data_list_is_empty() -> None:
    assert parse_trade_ticks({"type": "trade"}) == []
    assert parse_trade_ticks({"type": "trade", "data": {"s": "AAPL"}}) == []


def test_parse_message_payload_accepts_objects_and_lists() -> None:
    assert parse_message_payload('{"type":"ping"}') == [{"type": "ping"}]
    assert parse_message_payload(b'[{"type":"trade"},1]') == [{"type": "trade"}]
    assert parse_message_payload("not json") == []


def test_to_utc_datetime_handles_epoch_units_and_iso_strings() -> None:
    expected = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)

    assert to_utc_datetime(1772377200) == expected
    assert to_utc_datetime(1772377200000) == expected
    assert to_utc_datetime(1772377200000000000) == expected
    assert to_utc_datetime("2026-03-02T15:00:00Z") == expected
    assert to_utc_datetime("") is None
    assert to_utc_datetime(True) is None


def test_extract_helpers_walk_dotted_paths() -> None:
    payload = {"entities": {"sentiment": {"basic": "Bullish"}}, "p": "12.5", "flag": True}

    assert extract_str(payload, "entities.sentiment.basic") == "Bullish"
    assert extract_str(payload, "missing", "entities.sentiment.basic") == "Bullish"
    assert extract_float(payload, "p") == 12.5
    assert extract_float(payload, "flag") is None


def test_auth_rejection_detects_handshake_and_policy_close() -> None:
    response = Response(401, "Unauthorized", Headers())
    handshake = _auth_rejection(InvalidStatus(response))
    policy = _auth_rejection(ConnectionClosed(Close(1008, "invalid token"), None))
    normal = _auth_rejection(ConnectionClosed(Close(1006, ""), None))

    assert isinstance(handshake, TransportAuthError)
    assert handshake.detail == "handshake rejected with HTTP 401"
    assert isinstance(policy, TransportAuthError)
    assert policy.detail == "invalid token"
    assert normal is None
    assert _auth_rejection(RuntimeError("boom")) is None
