"""Operator WebSocket feed.

Each connection gets its own fan-out subscription. The server sends a
``connection`` acknowledgement, then every order event as it happens. When
the subscription overflowed it sends ``resync`` and the operator reloads the
full list. Clients may send ``{"type": "ping"}`` and get a ``pong`` back.
"""

import asyncio
import contextlib

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from container import get_container
from realtime.fanout import Subscription
from shared.http import is_admin_session

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["realtime"])

POLL_INTERVAL = 0.2
POLICY_VIOLATION = 1008


async def _receive(websocket: WebSocket, send_lock: asyncio.Lock) -> None:
    while True:
        message = await websocket.receive_json()
        if isinstance(message, dict) and message.get("type") == "ping":
            async with send_lock:
                await websocket.send_json({"type": "pong"})


async def _forward(websocket: WebSocket, subscription: Subscription, receiver: asyncio.Task, send_lock) -> None:
    while not receiver.done():
        event = await run_in_threadpool(subscription.get, POLL_INTERVAL)
        async with send_lock:
            if subscription.clear_lag():
                logger.info("Operator lagged, asking for resync", subscription_id=subscription.id)
                await websocket.send_json({"type": "resync"})
            if event is not None:
                await websocket.send_json(event.to_dict())


@router.websocket("/ws/operators")
async def operator_feed(websocket: WebSocket) -> None:
    container = get_container()
    settings = container.settings
    session = websocket.cookies.get(settings.admin_session_cookie)
    if not is_admin_session(session, settings.admin_session_token):
        logger.warning("Operator feed refused, no admin session")
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    subscription = container.fanout.subscribe()
    send_lock = asyncio.Lock()
    receiver = asyncio.create_task(_receive(websocket, send_lock))
    try:
        await websocket.send_json({"type": "connection", "subscription_id": subscription.id})
        await _forward(websocket, subscription, receiver, send_lock)
    except (WebSocketDisconnect, RuntimeError):
        # Client went away mid-send
        logger.info("Operator feed connection closed", subscription_id=subscription.id)
    finally:
        subscription.close()
        receiver.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await receiver
