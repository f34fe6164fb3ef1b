"""
自定義異常類別

集中管理 broadcast server 的錯誤分類。
所有錯誤都是 local 且 non-fatal：client 的錯誤輸入或送訊失敗都不會讓 loop 停下來。
"""


class SyncServerException(Exception):
    """所有 sync server 異常的基類"""
    pass


# ============ Inbound 相關異常 ============

FRAMING_ERROR_MESSAGE = "Message format expected was text"


class ProtocolFramingError(SyncServerException):
    """收到非 text frame（只回覆給送出的 client）"""
    def __init__(self, connection_id):
        self.connection_id = connection_id
        super().__init__(FRAMING_ERROR_MESSAGE)


class DecodeMismatch(SyncServerException):
    """文字不符合 schema（對 transition 而言只是一般訊息，不算錯誤）"""
    def __init__(self, text):
        self.text = text
        super().__init__(f"Not a valid message: {text!r}")


# ============ State 相關異常 ============

class TransitionConflict(SyncServerException):
    """State machine 拒絕套用 transition（Counter 永遠不會發生）"""
    def __init__(self, transition, reason: str = ""):
        self.transition = transition
        self.reason = reason
        super().__init__(f"Transition {transition!r} rejected: {reason}")


# ============ Delivery 相關異常 ============

class DeliveryFailure(SyncServerException):
    """無法送訊息給某個連線（peer 已經離開但 disconnect 事件還沒到）"""
    def __init__(self, connection_id, reason: str = ""):
        self.connection_id = connection_id
        self.reason = reason
        super().__init__(f"Failed to deliver to client #{connection_id}: {reason}")
