"""
Domain models：共享狀態與 Transition

Counter 是目前唯一的 application state：
- CounterState：整個伺服器只有一份，只有 BroadcastLoop 會修改
- Transition：封閉的 tagged union（Add / Subtract / Reset），不可變
"""
from dataclasses import dataclass
from typing import Union

I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1


def wrap_i64(value: int) -> int:
    """把整數折回 signed 64-bit 範圍（two's complement wraparound）"""
    return (value - I64_MIN) % (2 ** 64) + I64_MIN


@dataclass
class CounterState:
    value: int = 0
    # 每次成功套用 transition 就 +1，不會送到 wire 上
    revision: int = 0


@dataclass(frozen=True)
class Add:
    amount: int


@dataclass(frozen=True)
class Subtract:
    amount: int


@dataclass(frozen=True)
class Reset:
    pass


Transition = Union[Add, Subtract, Reset]
