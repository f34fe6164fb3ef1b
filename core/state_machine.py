"""
State Machine：集中管理共享狀態的所有變更

職責：
1. 持有唯一一份 application state
2. 套用 transition（deterministic，沒有外部錯誤來源）

規則：
- 只有 BroadcastLoop 會呼叫 apply()
- Counter 的 transition 永遠不會衝突；TransitionConflict 的路徑保留給更複雜的 domain
"""
import logging

from models import Add, CounterState, Reset, Subtract, Transition, wrap_i64

logger = logging.getLogger(__name__)


class CounterStateMachine:
    """Counter 狀態機"""

    def __init__(self, initial_value: int = 0):
        self._state = CounterState(value=wrap_i64(initial_value))

    @property
    def state(self) -> CounterState:
        """目前的 state（只在單次呼叫期間使用，不要長期持有）"""
        return self._state

    def apply(self, transition: Transition) -> CounterState:
        """
        套用一個 transition

        規則：
        - Add(n): value += n
        - Subtract(n): value -= n
        - Reset: value = 0
        - 溢位時以 signed 64-bit wraparound 處理

        參數：
            transition: Add / Subtract / Reset

        返回：
            套用後的 state

        異常：
            TransitionConflict: 保留給會拒絕 transition 的 state machine，Counter 不會拋出
            TypeError: 不是已知的 transition 類型
        """
        if isinstance(transition, Add):
            value = wrap_i64(self._state.value + transition.amount)
        elif isinstance(transition, Subtract):
            value = wrap_i64(self._state.value - transition.amount)
        elif isinstance(transition, Reset):
            value = 0
        else:
            raise TypeError(f"Unknown transition: {transition!r}")

        self._state.value = value
        self._state.revision += 1

        logger.debug(
            f"Applied {transition!r}: value={value} revision={self._state.revision}"
        )
        return self._state
