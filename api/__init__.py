"""
Transport 層

- websocket：把 websocket session 轉成 BroadcastLoop 的事件
"""
