from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List
import logging


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8080
    ws_path: str = "/"
    log_level: str = "INFO"

    # 每個連線 outbox 的上限，超過時丟棄最舊的訊息
    send_queue_size: int = 256

    initial_value: int = 0
    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_prefix = "COUNTER_"


@lru_cache()
def get_settings():
    return Settings()


def configure_logging(level: str) -> None:
    """
    設定 root logger，`python main.py` 和 `uvicorn main:app` 兩種啟動方式都會呼叫

    注意：
        root 已經有 handler 時 basicConfig 不會生效，所以 level 另外設定
    """
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level.upper())
