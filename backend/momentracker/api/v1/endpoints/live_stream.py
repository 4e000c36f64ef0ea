from __future__ import annotations

import asyncio
import json
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from momentracker.api.deps import get_live_price_stream_hub
from momentracker.application.live.events import build_system_error, build_system_status
from momentracker.application.live.stream_hub import LivePriceStreamHub

router = APIRouter()


@router.websocket("/stream")
async def live_price_stream(
    websocket: WebSocket,
    hub: LivePriceStreamHub = Depends(get_live_price_stream_hub),
) -> None:
    await websocket.accept()
    connection_id = uuid4().hex
    event_queue = await hub.register_connection(connection_id=connection_id)
    send_lock = asyncio.Lock()

    await _send_ws_json(
        websocket,
        payload=build_system_status(connection_state=hub.current_connection_state()),
        send_lock=send_lock,
    )

    async def receive_loop() -> None:
        while True:
            raw = await websocket.receive_text()
            parsed = parse_client_action(raw)
            if parsed is None:
                await _send_ws_json(
                    websocket,
                    payload=build_system_error(
                        code="STREAM_INVALID_ACTION",
                        message="expected {\"action\": \"subscribe\"|\"unsubscribe\", \"symbols\": [...]}",
                    ),
                    send_lock=send_lock,
                )
                continue

            action, symbols = parsed
            try:
                await hub.apply_action(connection_id=connection_id, action=action, symbols=symbols)
            except ValueError as exc:
                await _send_ws_json(
                    websocket,
                    payload=build_system_error(code=str(exc), message="failed to update subscriptions"),
                    send_lock=send_lock,
                )

    async def send_loop() -> None:
        while True:
            payload = await event_queue.get()
            await _send_ws_json(websocket, payload=payload, send_lock=send_lock)

    tasks = [
        asyncio.create_task(receive_loop()),
        asyncio.create_task(send_loop()),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is None or isinstance(exc, WebSocketDisconnect):
                continue
            raise exc
    except WebSocketDisconnect:
        return
    finally:
        for task in tasks:
            if task.done():
                continue
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await hub.unregister_connection(connection_id=connection_id)


def parse_client_action(raw: str) -> tuple[str, list[str]] | None:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    action = str(payload.get("action", "")).strip().lower()
    if action not in {"subscribe", "unsubscribe"}:
        return None
    symbols = payload.get("symbols")
    if isinstance(symbols, str):
        symbols = symbols.split(",")
    if not isinstance(symbols, list):
        return None
    return action, [str(item) for item in symbols]


async def _send_ws_json(
    websocket: WebSocket,
    *,
    payload: dict[str, Any],
    send_lock: asyncio.Lock,
) -> None:
    async with send_lock:
        await websocket.send_json(payload)
