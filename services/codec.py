"""
Message codec：wire 文字 <-> domain 物件

純計算邏輯，不涉及狀態轉換
"""
from typing import Optional

from pydantic import ValidationError

from core.exceptions import DecodeMismatch
from models import Add, CounterState, Reset, Subtract, Transition
from schemas import (
    AddMessage,
    StateSnapshot,
    SubtractMessage,
    transition_adapter
)


def decode_transition_strict(text: str) -> Transition:
    """
    把 inbound 文字解析成 Transition

    參數：
        text: client 送來的原始文字

    返回：
        Add / Subtract / Reset

    異常：
        DecodeMismatch: JSON 格式錯誤、未知 tag、欄位型別錯誤
    """
    try:
        message = transition_adapter.validate_json(text)
    except ValidationError as e:
        raise DecodeMismatch(text) from e

    if isinstance(message, AddMessage):
        return Add(message.amount)
    if isinstance(message, SubtractMessage):
        return Subtract(message.amount)
    return Reset()


def decode_transition(text: str) -> Optional[Transition]:
    """
    同 decode_transition_strict，但解析失敗時返回 None

    BroadcastLoop 用這個版本：不是 transition 的文字只是一般訊息
    """
    try:
        return decode_transition_strict(text)
    except DecodeMismatch:
        return None


def encode_transition(transition: Transition) -> str:
    if isinstance(transition, Add):
        message = AddMessage.model_validate({"Add": transition.amount})
    elif isinstance(transition, Subtract):
        message = SubtractMessage.model_validate({"Subtract": transition.amount})
    elif isinstance(transition, Reset):
        message = "Reset"
    else:
        raise TypeError(f"Unknown transition: {transition!r}")
    return transition_adapter.dump_json(message, by_alias=True).decode()


def encode_state(state: CounterState) -> str:
    """
    State 的 canonical 文字表示，例如：{"value":1}

    revision 只在伺服器內部使用，不送到 client
    """
    return StateSnapshot(value=state.value).model_dump_json()


def decode_state(text: str) -> CounterState:
    """client 端的對應操作：把 encode_state 的輸出還原成 CounterState"""
    try:
        snapshot = StateSnapshot.model_validate_json(text)
    except ValidationError as e:
        raise DecodeMismatch(text) from e
    return CounterState(value=snapshot.value)
