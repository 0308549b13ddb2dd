import fakeredis
import pytest

from backend.app.services.reservations import ReservationCoordinator
from backend.app.services.store import RedisDocumentStore


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, kind, payload):
        self.events.append((kind, payload))


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def redis(redis_server):
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def store(redis):
    return RedisDocumentStore(redis, listen_in_thread=False)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def coordinator(store, notifier):
    return ReservationCoordinator(store, notifier)


@pytest.fixture
def booking_data():
    def make(**overrides):
        data = {
            "name": "Alex",
            "phone": "416-555-0101",
            "email": "alex@example.com",
            "service": "Tire change",
            "price": "$25 / wheel",
            "date": "2030-06-04",
            "time": "10:00",
        }
        data.update(overrides)
        return data
    return make
