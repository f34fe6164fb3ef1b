"""
Broadcast Loop：伺服器的核心 control loop

職責：
1. 依序處理 transport 層送來的事件（Connect / Disconnect / Message）
2. 透過 StateMachine 套用 transition
3. 把新的 state fan-out 給所有連線

並發模型：
- 只有一個 worker 依序處理單一 event queue，state 和 registry 不需要 lock
- 一個事件處理完才會處理下一個，所以每次 broadcast 都是對 registry 的一次完整 pass
- 所有 client 看到的 state 變更順序都一樣（先到先套用）
"""
from dataclasses import dataclass
from typing import Hashable, Optional, Union
import asyncio
import logging

from core.connection_registry import ConnectionRegistry, Payload, SendHandle
from core.exceptions import ProtocolFramingError, TransitionConflict
from core.state_machine import CounterStateMachine
from models import CounterState
from services.codec import decode_transition, encode_state

logger = logging.getLogger(__name__)


# ============ Events ============

@dataclass(frozen=True)
class Connect:
    connection_id: Hashable
    handle: SendHandle


@dataclass(frozen=True)
class Disconnect:
    connection_id: Hashable


@dataclass(frozen=True)
class Message:
    connection_id: Hashable
    # str 是 text frame，bytes 是 binary frame
    payload: Payload


Event = Union[Connect, Disconnect, Message]


class BroadcastLoop:
    """單一 worker 的 event loop"""

    def __init__(
        self,
        state_machine: CounterStateMachine,
        registry: Optional[ConnectionRegistry] = None
    ):
        self.state_machine = state_machine
        self.registry = registry if registry is not None else ConnectionRegistry()
        self._events: asyncio.Queue = asyncio.Queue()

    @property
    def state(self) -> CounterState:
        return self.state_machine.state

    def post(self, event: Event) -> None:
        """transport 層把事件放進 queue（事件的處理順序 = 放入順序）"""
        self._events.put_nowait(event)

    async def join(self) -> None:
        """等到目前 queue 裡的事件都處理完"""
        await self._events.join()

    async def run(self) -> None:
        """
        持續處理事件直到被 cancel

        注意：
            單一事件處理失敗只記 log，loop 會繼續處理下一個事件
        """
        logger.info("Broadcast loop started")
        try:
            while True:
                event = await self._events.get()
                try:
                    self.handle_event(event)
                except Exception as e:
                    logger.error(f"Failed to handle {event!r}: {e}", exc_info=True)
                finally:
                    self._events.task_done()
        finally:
            logger.info("Broadcast loop stopped")

    def handle_event(self, event: Event) -> None:
        """同步處理一個事件（run() 和測試都走這裡）"""
        if isinstance(event, Connect):
            self._on_connect(event.connection_id, event.handle)
        elif isinstance(event, Disconnect):
            self._on_disconnect(event.connection_id)
        elif isinstance(event, Message):
            self._on_message(event.connection_id, event.payload)
        else:
            raise TypeError(f"Unknown event: {event!r}")

    def _on_connect(self, connection_id, handle: SendHandle) -> None:
        """
        新連線

        流程：
        1. 先送目前的 state snapshot 給新 client
        2. 再加入 registry（snapshot 不會和 broadcast 重複）
        """
        logger.info(f"A client connected with id #{connection_id}")

        # 1. 送出 snapshot；失敗也照樣註冊，等 disconnect 事件收斂
        snapshot = encode_state(self.state)
        try:
            handle.send(snapshot)
        except Exception as e:
            logger.warning(f"Failed to send snapshot to client #{connection_id}: {e}")

        # 2. 加入 fan-out
        self.registry.register(connection_id, handle)

    def _on_disconnect(self, connection_id) -> None:
        logger.info(f"Client #{connection_id} disconnected")
        self.registry.unregister(connection_id)

    def _on_message(self, connection_id, payload: Payload) -> None:
        """
        收到 client 訊息

        流程：
        1. text frame：嘗試解析成 transition 並 broadcast
        2. binary frame：只回覆錯誤給送出的 client
        3. 不論結果，原始訊息都 echo 回送出的 client
        """
        logger.info(f"Received a message from client #{connection_id}")

        if connection_id not in self.registry:
            logger.warning(f"Message from unregistered client #{connection_id}")

        if isinstance(payload, str):
            self._transition_and_broadcast(connection_id, payload)
        else:
            error = ProtocolFramingError(connection_id)
            logger.warning(f"{error}; Client #{connection_id}")
            self.registry.send_to(connection_id, str(error))

        # echo back
        self.registry.send_to(connection_id, payload)

    def _transition_and_broadcast(self, connection_id, text: str) -> None:
        """
        解析 transition → 套用 → broadcast 給所有連線（包含送出者）

        不是 transition 的文字只當作一般訊息記錄下來
        """
        transition = decode_transition(text)
        if transition is None:
            logger.info(f"Received a message from client #{connection_id}: {text!r}")
            return

        try:
            state = self.state_machine.apply(transition)
        except TransitionConflict as e:
            logger.error(
                f"An error occurred applying the transition for client #{connection_id}: {e}"
            )
            return

        delivered = self.registry.broadcast(encode_state(state))
        logger.info(
            f"Client #{connection_id} applied {transition!r}, "
            f"value={state.value} broadcast to {delivered}/{len(self.registry)} clients"
        )
