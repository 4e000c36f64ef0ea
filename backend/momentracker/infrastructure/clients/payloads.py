from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any


def extract_value(raw: object, key: str) -> object | None:
    parts = key.split(".")
    current: object | None = raw
    for part in parts:
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
            continue
        return None
    return current


def extract_str(raw: object, *keys: str) -> str:
    for key in keys:
        value = extract_value(raw, key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def extract_float(raw: object, *keys: str) -> float | None:
    for key in keys:
        value = extract_value(raw, key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def extract_int(raw: object, *keys: str) -> int | None:
    value = extract_float(raw, *keys)
    if value is None:
        return None
    return int(value)


def to_utc_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        numeric = float(value)
        abs_value = abs(numeric)
        if abs_value >= 10_000_000_000_000:
            numeric = numeric / 1_000_000_000.0
        elif abs_value >= 10_000_000_000:
            numeric = numeric / 1_000.0
        return datetime.fromtimestamp(numeric, tz=timezone.utc)

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        normalized = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def parse_message_payload(raw: str | bytes) -> list[dict[str, Any]]:
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        decoded = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return []

    if isinstance(decoded, dict):
        decoded = [decoded]
    if not isinstance(decoded, list):
        return []
    return [item for item in decoded if isinstance(item, dict)]
