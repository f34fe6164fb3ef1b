"""
Wire schemas（pydantic）

所有 wire 訊息都是 JSON 文字：
- State：{"value": <i64>}
- Transition（externally tagged）：{"Add": n}、{"Subtract": n}、"Reset"
  （{"Reset": null} 也接受）
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from models import I64_MIN, I64_MAX

# 不接受 float / 字串 / bool，也不接受超出 i64 的數字
WireInt = Annotated[int, Field(strict=True, ge=I64_MIN, le=I64_MAX)]


class StateSnapshot(BaseModel):
    value: WireInt


class AddMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: WireInt = Field(alias="Add")


class SubtractMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: WireInt = Field(alias="Subtract")


class ResetMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reset: None = Field(alias="Reset")


TransitionMessage = Union[AddMessage, SubtractMessage, ResetMessage, Literal["Reset"]]

transition_adapter = TypeAdapter(TransitionMessage)
