"""
Connection Registry：connection id -> send handle

職責：
1. 連線時加入（register），斷線時移除（unregister）
2. 對所有連線 fan-out（for_each / broadcast）
3. 單獨回覆某個連線（send_to）

注意：
- 只有 BroadcastLoop 會修改 registry
- 送訊失敗只記 log，不會馬上 unregister；等 transport 層的 disconnect 事件收斂
"""
from typing import Callable, Dict, Hashable, List, Protocol, Union
import logging

from core.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]


class SendHandle(Protocol):
    """能把訊息送到某個特定 peer 的 handle（fire-and-forget，不等待送達）"""

    def send(self, payload: Payload) -> None:
        ...


class ConnectionRegistry:
    """目前連線中的 client 表"""

    def __init__(self):
        self._connections: Dict[Hashable, SendHandle] = {}
        self._iterating = False

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id) -> bool:
        return connection_id in self._connections

    def ids(self) -> List[Hashable]:
        return list(self._connections)

    def register(self, connection_id: Hashable, handle: SendHandle) -> None:
        """加入或覆寫 connection_id 的 handle；之後的 broadcast 都會包含它"""
        self._check_not_iterating()
        if connection_id in self._connections:
            logger.warning(f"Client #{connection_id} registered twice, replacing handle")
        self._connections[connection_id] = handle

    def unregister(self, connection_id: Hashable) -> bool:
        """
        移除 connection_id

        移除不存在的 id 是 no-op（disconnect 可能和送訊失敗同時發生）

        返回：
            True 如果確實移除了連線
        """
        self._check_not_iterating()
        return self._connections.pop(connection_id, None) is not None

    def for_each(self, action: Callable[[Hashable, SendHandle], None]) -> int:
        """
        對每一個連線呼叫 action(connection_id, handle)，順序不保證

        規則：
        - action 不可以 register / unregister（會拋出 RuntimeError）
        - 某個連線失敗只記 log，不會中斷其他連線

        返回：
            成功執行的連線數
        """
        self._iterating = True
        succeeded = 0
        try:
            for connection_id, handle in list(self._connections.items()):
                if self._deliver(connection_id, lambda: action(connection_id, handle)):
                    succeeded += 1
        finally:
            self._iterating = False
        return succeeded

    def broadcast(self, payload: Payload) -> int:
        """把同一則訊息送給所有連線，返回成功的連線數"""
        return self.for_each(lambda _, handle: handle.send(payload))

    def send_to(self, connection_id: Hashable, payload: Payload) -> bool:
        """
        只送給一個連線（例如 echo 或錯誤回覆）

        連線已經不存在時是 no-op

        返回：
            True 如果送出成功
        """
        handle = self._connections.get(connection_id)
        if handle is None:
            logger.debug(f"Client #{connection_id} is not registered, dropping direct message")
            return False
        return self._deliver(connection_id, lambda: handle.send(payload))

    def _deliver(self, connection_id, send: Callable[[], None]) -> bool:
        try:
            send()
            return True
        except DeliveryFailure as e:
            logger.warning(str(e))
        except Exception as e:
            logger.error(f"Failed to deliver to client #{connection_id}: {e}", exc_info=True)
        return False

    def _check_not_iterating(self) -> None:
        if self._iterating:
            raise RuntimeError("Connection registry cannot be modified during for_each")
