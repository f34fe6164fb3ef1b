"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- Codec：wire 文字與 state / transition 之間的轉換
"""
