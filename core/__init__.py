"""
核心邏輯層

這個 package 包含所有 protocol 邏輯，包括：
- State Machine：唯一一份共享狀態與 transition 套用
- Connection Registry：connection id -> send handle
- Broadcast Loop：依序處理事件並 fan-out 新狀態
- Exceptions：錯誤分類
"""
