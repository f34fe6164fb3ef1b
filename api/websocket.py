"""
WebSocket Endpoint

職責：
1. 把每個 websocket session 轉成 Connect / Message / Disconnect 事件
2. 提供每個連線自己的 outbox（bounded queue + writer task）

這一層不包含任何 protocol 邏輯，全部交給 BroadcastLoop。
"""
from contextlib import suppress
from typing import Optional
import asyncio
import itertools
import logging

from fastapi import APIRouter, WebSocket

from config import get_settings
from core.broadcast_loop import BroadcastLoop, Connect, Disconnect, Message
from core.connection_registry import Payload
from core.exceptions import DeliveryFailure

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)

# connection id 在整個 process 內遞增，不會重複使用
_connection_ids = itertools.count(1)


class WebSocketOutbox:
    """
    一個連線的送訊 handle

    - send() 只把訊息放進 queue，不等待送達（fire-and-forget）
    - writer task 依序送出，同一連線的訊息順序不變
    - queue 滿了就丟棄最舊的訊息
    """

    def __init__(self, websocket: WebSocket, connection_id: int, maxsize: int):
        self.websocket = websocket
        self.connection_id = connection_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain())

    def send(self, payload: Payload) -> None:
        if self._closed:
            raise DeliveryFailure(self.connection_id, "connection closed")

        if self._queue.full():
            self._queue.get_nowait()
            logger.warning(
                f"Outbox for client #{self.connection_id} is full, dropped oldest message"
            )
        self._queue.put_nowait(payload)

    async def _drain(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                if isinstance(payload, bytes):
                    await self.websocket.send_bytes(payload)
                else:
                    await self.websocket.send_text(payload)
            except Exception as e:
                # peer 已經離開；之後的 send() 會拋出 DeliveryFailure
                logger.warning(f"Failed to deliver to client #{self.connection_id}: {e}")
                self._closed = True
                return

    async def close(self) -> None:
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()
            with suppress(asyncio.CancelledError):
                await self._writer


@router.websocket(get_settings().ws_path)
async def websocket_endpoint(websocket: WebSocket):
    """
    一個 client session

    流程：
    1. accept 並分配 connection id
    2. Connect 事件（BroadcastLoop 會先送 snapshot 再註冊）
    3. 每個 frame 轉成 Message 事件
    4. 結束時送出 Disconnect 事件
    """
    broadcast_loop: BroadcastLoop = websocket.app.state.broadcast_loop
    settings = get_settings()

    await websocket.accept()
    connection_id = next(_connection_ids)

    outbox = WebSocketOutbox(websocket, connection_id, settings.send_queue_size)
    outbox.start()
    broadcast_loop.post(Connect(connection_id, outbox))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            if message.get("text") is not None:
                broadcast_loop.post(Message(connection_id, message["text"]))
            elif message.get("bytes") is not None:
                broadcast_loop.post(Message(connection_id, message["bytes"]))
    finally:
        broadcast_loop.post(Disconnect(connection_id))
        await outbox.close()
