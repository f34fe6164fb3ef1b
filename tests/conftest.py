import pytest

from core.exceptions import DeliveryFailure


class RecordingHandle:
    def __init__(self):
        self.sent = []

    def send(self, payload):
        self.sent.append(payload)


class BrokenHandle:
    def __init__(self, connection_id):
        self.connection_id = connection_id
        self.attempts = 0

    def send(self, payload):
        self.attempts += 1
        raise DeliveryFailure(self.connection_id, "peer gone")


@pytest.fixture
def recording_handle():
    return RecordingHandle


@pytest.fixture
def broken_handle():
    return BrokenHandle
