import asyncio
import logging

import pytest
from fastapi.testclient import TestClient

from api.websocket import WebSocketOutbox
from config import configure_logging
from core.exceptions import DeliveryFailure
from main import app


class FakeWebSocket:
    def __init__(self, fail=False):
        self.delivered = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.delivered.append(text)

    async def send_bytes(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.delivered.append(data)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Counter Sync Server", "status": "ok"}

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["revision"] == 0


def test_new_client_receives_snapshot(client):
    with client.websocket_connect("/") as ws:
        assert ws.receive_json() == {"value": 0}
        assert client.get("/health").json()["connections"] == 1
        assert len(client.get("/health").json()["clients"]) == 1


def test_transitions_are_broadcast_to_everyone(client):
    with client.websocket_connect("/") as a, client.websocket_connect("/") as b:
        assert a.receive_json() == {"value": 0}
        assert b.receive_json() == {"value": 0}

        a.send_text('{"Add":1}')
        assert a.receive_json() == {"value": 1}
        assert a.receive_text() == '{"Add":1}'
        assert b.receive_json() == {"value": 1}

        b.send_text('{"Subtract":3}')
        assert b.receive_json() == {"value": -2}
        assert b.receive_text() == '{"Subtract":3}'
        assert a.receive_json() == {"value": -2}

        a.send_text('"Reset"')
        assert a.receive_json() == {"value": 0}
        assert a.receive_text() == '"Reset"'
        assert b.receive_json() == {"value": 0}

    assert client.get("/health").json()["revision"] == 3


def test_plain_text_is_only_echoed(client):
    with client.websocket_connect("/") as a, client.websocket_connect("/") as b:
        a.receive_json()
        b.receive_json()

        a.send_text("hello")
        assert a.receive_text() == "hello"

        # b 的下一則訊息必須是下一次 transition 的結果
        a.send_text('{"Add":2}')
        assert b.receive_json() == {"value": 2}


def test_binary_frame_is_rejected_and_echoed(client):
    with client.websocket_connect("/") as ws:
        ws.receive_json()

        ws.send_bytes(b"\x00\x01")
        assert ws.receive_text() == "Message format expected was text"
        assert ws.receive_bytes() == b"\x00\x01"

        ws.send_text('{"Add":1}')
        assert ws.receive_json() == {"value": 1}


def test_closed_session_is_unregistered(client):
    with client.websocket_connect("/") as a:
        a.receive_json()
        with client.websocket_connect("/") as b:
            b.receive_json()

        # a 的 transition 在 b 的 Disconnect 之後才會被處理
        a.send_text('{"Add":1}')
        assert a.receive_json() == {"value": 1}
        assert a.receive_text() == '{"Add":1}'

        health = client.get("/health").json()
        assert health["connections"] == 1
        assert len(health["clients"]) == 1


def test_late_joiner_gets_current_state(client):
    with client.websocket_connect("/") as a:
        a.receive_json()
        a.send_text('{"Add":7}')
        assert a.receive_json() == {"value": 7}
        a.receive_text()

        with client.websocket_connect("/") as b:
            assert b.receive_json() == {"value": 7}


def test_outbox_drops_oldest_when_full():
    async def scenario():
        ws = FakeWebSocket()
        outbox = WebSocketOutbox(ws, 1, maxsize=2)
        for payload in ("a", "b", "c"):
            outbox.send(payload)
        outbox.start()
        await settle()
        await outbox.close()
        return ws, outbox

    ws, outbox = asyncio.run(scenario())
    assert ws.delivered == ["b", "c"]
    assert outbox.closed


def test_outbox_keeps_order_and_frame_type():
    async def scenario():
        ws = FakeWebSocket()
        outbox = WebSocketOutbox(ws, 1, maxsize=8)
        outbox.start()
        outbox.send('{"value":1}')
        outbox.send(b"\x00")
        outbox.send("hello")
        await settle()
        await outbox.close()
        return ws

    assert asyncio.run(scenario()).delivered == ['{"value":1}', b"\x00", "hello"]


def test_outbox_send_after_close_raises():
    async def scenario():
        outbox = WebSocketOutbox(FakeWebSocket(), 7, maxsize=2)
        outbox.start()
        await outbox.close()
        return outbox

    outbox = asyncio.run(scenario())
    with pytest.raises(DeliveryFailure) as exc:
        outbox.send("d")
    assert exc.value.connection_id == 7


def test_outbox_closes_when_writer_fails():
    async def scenario():
        outbox = WebSocketOutbox(FakeWebSocket(fail=True), 3, maxsize=2)
        outbox.start()
        outbox.send("a")
        await settle()
        closed = outbox.closed
        with pytest.raises(DeliveryFailure):
            outbox.send("b")
        await outbox.close()
        return closed

    assert asyncio.run(scenario()) is True


def test_configure_logging_sets_root_level():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        configure_logging("WARNING")
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)
