from __future__ import annotations

from momentracker.domain.errors import StorageError


def test_health(client) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_dimensions_normalize_symbols_and_round_values(client, fake_trending_service) -> None:
    response = client.get("/api/v1/trending/dimensions", params={"symbols": "nvda, AMD,nvda,NONE"})

    assert response.status_code == 200
    assert fake_trending_service.calculate_calls == [["NVDA", "AMD", "NONE"]]
    items = response.json()["items"]
    assert [item["symbol"] for item in items] == ["NVDA", "AMD", "NONE"]
    assert items[2]["dimensions"] is None

    dimensions = items[0]["dimensions"]
    assert dimensions["six_hour"]["avg_score"] == 71.23
    assert dimensions["six_hour"]["volatility"] == 3.14
    assert dimensions["six_hour"]["trend"] == "up"
    assert dimensions["twenty_four_hour"]["consistency"] == 1.67
    assert dimensions["keep_symbol"] is True
    assert dimensions["keep_reason"] == "currently trending"


def test_dimensions_reject_invalid_symbols(client) -> None:
    response = client.get("/api/v1/trending/dimensions", params={"symbols": "AAPL,$$$"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SYMBOL_INVALID"


def test_dimensions_require_at_least_one_symbol(client) -> None:
    response = client.get("/api/v1/trending/dimensions", params={"symbols": " , "})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SYMBOL_REQUIRED"


def test_dimensions_cap_symbols_per_request(client) -> None:
    symbols = ",".join(f"S{index}" for index in range(51))

    response = client.get("/api/v1/trending/dimensions", params={"symbols": symbols})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SYMBOL_LIMIT_EXCEEDED"


def test_evaluate_reports_reason_for_every_symbol(client) -> None:
    response = client.get("/api/v1/trending/evaluate", params={"symbols": "GME,BBBY"})

    assert response.status_code == 200
    assert response.json()["items"] == [
        {"symbol": "GME", "keep": False, "reason": "below thresholds", "dimensions": None},
        {"symbol": "BBBY", "keep": False, "reason": "below thresholds", "dimensions": None},
    ]


def test_stable_lists_retained_symbols(client) -> None:
    response = client.get("/api/v1/trending/stable")

    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["symbol"] for item in items] == ["NVDA"]
    assert items[0]["keep"] is True
    assert items[0]["dimensions"]["real_time"]["rank_delta"] == 2
    market = response.json()["market"]
    assert market["is_open"] is False
    assert market["session"] == "pre-market"
    assert market["message"] == "Market Opens at 9:30 AM ET"
    assert market["next_open"] == "2026-03-02T14:30:00Z"
    assert market["next_close"] is None


def test_stable_maps_storage_outage_to_503(client, fake_trending_service) -> None:
    fake_trending_service.fail_with = StorageError("db down")

    response = client.get("/api/v1/trending/stable")

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "STORAGE_UNAVAILABLE"
