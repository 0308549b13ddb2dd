import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from backend.app import main
from backend.app.database import (
    get_coordinator,
    get_pricing_repository,
    get_schedule_repository,
    get_services_repository,
    get_store,
)
from backend.app.services.catalog import CatalogRepository
from backend.app.services.slots import AvailabilityView, ScheduleConfigRepository
from backend.app.services.slots.config import SETTINGS_COLLECTION, SETTINGS_DOC_ID
from backend.app.services.store import RedisDocumentStore

TUESDAY = "2030-06-04"


@pytest.fixture
def client(store, coordinator, redis, monkeypatch):
    schedule = ScheduleConfigRepository(store, ttl_seconds=0)
    overrides = {
        get_store: lambda: store,
        get_coordinator: lambda: coordinator,
        get_schedule_repository: lambda: schedule,
        get_services_repository: lambda: CatalogRepository(store, "services"),
        get_pricing_repository: lambda: CatalogRepository(store, "pricing"),
    }
    main.app.dependency_overrides.update(overrides)
    monkeypatch.setattr(main, "redis_client", redis)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def threaded_client(redis, monkeypatch):
    """Client whose store listens for changes on background threads."""
    store = RedisDocumentStore(redis)
    schedule = ScheduleConfigRepository(store, ttl_seconds=0)
    main.app.dependency_overrides.update({
        get_store: lambda: store,
        get_schedule_repository: lambda: schedule,
    })
    monkeypatch.setattr(main, "redis_client", redis)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"redis": True}


def test_health_reports_redis_down(client, redis_server):
    redis_server.connected = False
    assert client.get("/health").status_code == 503


class TestSlots:
    def test_availability(self, client, coordinator, booking_data):
        coordinator.create(booking_data(time="10:00"))

        resp = client.get("/slots/availability", params={"date": TUESDAY})
        assert resp.status_code == 200
        body = resp.json()
        assert body["candidates"][:3] == ["09:00", "10:00", "11:00"]
        assert body["taken"] == ["10:00"]
        assert "10:00" not in body["bookable"]
        assert body["closed"] is False
        assert body["slot_duration_minutes"] == 60

    def test_availability_excluding_own_slot(self, client, coordinator, booking_data):
        coordinator.create(booking_data(time="10:00"))

        body = client.get(
            "/slots/availability",
            params={"date": TUESDAY, "exclude_slot": "2030-06-04_1000"},
        ).json()
        assert "10:00" in body["bookable"]
        assert body["taken"] == []

    def test_closed_day(self, client):
        body = client.get("/slots/availability", params={"date": "2030-06-09"}).json()
        assert body["closed"] is True
        assert body["bookable"] == []

    @pytest.mark.parametrize("params", [
        {"date": "June 4"},
        {"date": "20300604"},
        {"date": "2030-6-4"},
        {"date": TUESDAY, "exclude_slot": "garbage"},
    ])
    def test_bad_params(self, client, params):
        assert client.get("/slots/availability", params=params).status_code == 400

    def test_locks(self, client, coordinator, booking_data):
        booking_id = coordinator.create(booking_data())
        locks = client.get("/slots/locks", params={"date": TUESDAY}).json()
        assert [(lock["id"], lock["booking_id"]) for lock in locks] == [
            ("2030-06-04_1000", booking_id)
        ]

    def test_compact_date_does_not_hide_bookings(self, client, coordinator, booking_data):
        coordinator.create(booking_data(time="10:00"))

        assert client.get("/slots/availability", params={"date": "20300604"}).status_code == 400
        assert client.get("/slots/locks", params={"date": "20300604"}).status_code == 400
        assert client.get("/slots/locks", params={"date": "2030-6-4"}).status_code == 400

    def test_live_sends_initial_snapshot(self, client, coordinator, booking_data):
        coordinator.create(booking_data(time="11:00"))

        with client.websocket_connect(f"/slots/live?date={TUESDAY}") as ws:
            message = ws.receive_json()

        assert message["date"] == TUESDAY
        assert message["taken"] == ["11:00"]
        assert message["loading"] is False

    def test_live_rejects_bad_date(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/slots/live?date=nope") as ws:
                ws.receive_json()


    def test_live_follows_schedule_changes(self, threaded_client):
        with threaded_client.websocket_connect(f"/slots/live?date={TUESDAY}") as ws:
            assert ws.receive_json()["slot_duration_minutes"] == 60

            resp = threaded_client.put("/settings/schedule", json={
                "slot_duration_minutes": 30,
                "hours": {
                    "mon_fri": {"open": "09:00", "close": "10:00"},
                    "sat": {"closed": True},
                    "sun": {"closed": True},
                },
            })
            assert resp.status_code == 200

            for _ in range(5):
                message = ws.receive_json()
                if message["slot_duration_minutes"] == 30 and not message["loading"]:
                    break

        assert message["slot_duration_minutes"] == 30
        assert message["candidates"] == ["09:00", "09:30"]

    def test_live_disconnect_closes_view(self, client, monkeypatch):
        closed = []
        close = AvailabilityView.close

        def recording_close(view):
            closed.append(view)
            close(view)

        monkeypatch.setattr(AvailabilityView, "close", recording_close)
        with client.websocket_connect(f"/slots/live?date={TUESDAY}") as ws:
            ws.receive_json()

        assert len(closed) == 1


class TestBookings:
    def test_create_and_get(self, client, booking_data):
        resp = client.post("/bookings/", json=booking_data())
        assert resp.status_code == 201
        booking = resp.json()
        assert booking["status"] == "booked"
        assert booking["slot_id"] == "2030-06-04_1000"

        assert client.get(f"/bookings/{booking['id']}").json()["name"] == "Alex"

    def test_double_booking_conflicts(self, client, booking_data):
        client.post("/bookings/", json=booking_data())
        resp = client.post("/bookings/", json=booking_data(name="Sam"))
        assert resp.status_code == 409
        assert "just booked" in resp.json()["detail"]

    def test_missing_contact_is_422(self, client, booking_data):
        resp = client.post("/bookings/", json=booking_data(phone=None, email=None))
        assert resp.status_code == 422

    def test_unpadded_date_is_422(self, client, booking_data):
        assert client.post("/bookings/", json=booking_data()).status_code == 201
        resp = client.post("/bookings/", json=booking_data(date="2030-6-4", name="Sam"))
        assert resp.status_code == 422
        assert len(client.get("/slots/locks", params={"date": TUESDAY}).json()) == 1

    def test_past_date_is_422(self, client, booking_data):
        resp = client.post("/bookings/", json=booking_data(date="2020-01-07"))
        assert resp.status_code == 422

    def test_non_candidate_time_is_422(self, client, booking_data):
        resp = client.post("/bookings/", json=booking_data(time="10:30"))
        assert resp.status_code == 422
        resp = client.post("/bookings/", json=booking_data(date="2030-06-09"))
        assert resp.status_code == 422

    def test_reschedule(self, client, booking_data):
        booking_id = client.post("/bookings/", json=booking_data()).json()["id"]
        resp = client.put(f"/bookings/{booking_id}", json={"time": "11:00", "service": "Oil change"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["time"] == "11:00"
        assert body["slot_id"] == "2030-06-04_1100"
        assert body["service"] == "Oil change"

    def test_reschedule_into_taken_slot(self, client, booking_data):
        booking_id = client.post("/bookings/", json=booking_data()).json()["id"]
        client.post("/bookings/", json=booking_data(time="11:00", name="Sam"))

        resp = client.put(f"/bookings/{booking_id}", json={"time": "11:00"})
        assert resp.status_code == 409

    def test_reschedule_to_non_candidate(self, client, booking_data):
        booking_id = client.post("/bookings/", json=booking_data()).json()["id"]
        resp = client.put(f"/bookings/{booking_id}", json={"time": "18:00"})
        assert resp.status_code == 422

    def test_cancel_and_complete(self, client, booking_data):
        first = client.post("/bookings/", json=booking_data()).json()["id"]
        second = client.post("/bookings/", json=booking_data(time="11:00")).json()["id"]

        resp = client.post(f"/bookings/{first}/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert client.post(f"/bookings/{first}/cancel").status_code == 409

        assert client.post(f"/bookings/{second}/complete").json()["status"] == "completed"

    def test_list_filters(self, client, booking_data):
        first = client.post("/bookings/", json=booking_data()).json()["id"]
        client.post("/bookings/", json=booking_data(time="11:00"))
        client.post(f"/bookings/{first}/cancel")

        assert len(client.get("/bookings/").json()) == 2
        cancelled = client.get("/bookings/", params={"status": "cancelled"}).json()
        assert [b["id"] for b in cancelled] == [first]

    def test_list_rejects_unpadded_date(self, client):
        assert client.get("/bookings/", params={"date": "2030-6-4"}).status_code == 400

    def test_unknown_booking(self, client):
        assert client.get("/bookings/nope").status_code == 404
        assert client.post("/bookings/nope/cancel").status_code == 404

    def test_delete_not_allowed(self, client):
        assert client.delete("/bookings/anything").status_code == 405

    def test_store_down_is_503(self, client, redis_server, booking_data):
        redis_server.connected = False
        assert client.get("/bookings/").status_code == 503


class TestSchedule:
    def test_defaults(self, client):
        body = client.get("/settings/schedule").json()
        assert body["slot_duration_minutes"] == 60
        assert body["hours"]["sun"]["closed"] is True

    def test_save_changes_availability(self, client):
        resp = client.put("/settings/schedule", json={
            "slot_duration_minutes": 30,
            "hours": {
                "mon_fri": {"open": "09:00", "close": "10:00"},
                "sat": {"closed": True},
                "sun": {"closed": True},
            },
        })
        assert resp.status_code == 200

        body = client.get("/slots/availability", params={"date": TUESDAY}).json()
        assert body["candidates"] == ["09:00", "09:30"]

    def test_invalid_stored_settings_fall_back_to_defaults(self, client, store):
        store.set(SETTINGS_COLLECTION, SETTINGS_DOC_ID, {"slot_duration_minutes": 45, "hours": {}})

        assert client.get("/settings/schedule").json()["slot_duration_minutes"] == 60
        body = client.get("/slots/availability", params={"date": TUESDAY}).json()
        assert body["candidates"][0] == "09:00"

    @pytest.mark.parametrize("payload", [
        {"slot_duration_minutes": 45},
        {"hours": {"mon_fri": {"open": "18:00", "close": "09:00"}}},
    ])
    def test_invalid_config_is_422(self, client, payload):
        assert client.put("/settings/schedule", json=payload).status_code == 422


class TestCatalogRoutes:
    def test_services_crud(self, client):
        created = client.post("/services/", json={"title": "Tires", "icon_key": "Rocket"})
        assert created.status_code == 201
        service = created.json()
        assert service["icon_key"] == "Wrench"
        assert service["order"] == 1000

        patched = client.patch(f"/services/{service['id']}", json={"desc": "Swap and balance"})
        assert patched.json()["desc"] == "Swap and balance"

        assert client.post(f"/services/{service['id']}/toggle").json()["active"] is False
        assert client.get("/services/", params={"active_only": True}).json() == []

        assert client.delete(f"/services/{service['id']}").status_code == 204
        assert client.get(f"/services/{service['id']}").status_code == 404

    def test_services_move(self, client):
        a = client.post("/services/", json={"title": "A"}).json()
        client.post("/services/", json={"title": "B"})

        resp = client.post(f"/services/{a['id']}/move", params={"direction": "down"})
        assert resp.json() == {"moved": True}
        assert [s["title"] for s in client.get("/services/").json()] == ["B", "A"]

        resp = client.post(f"/services/{a['id']}/move", params={"direction": "down"})
        assert resp.json() == {"moved": False}

        resp = client.post(f"/services/{a['id']}/move", params={"direction": "sideways"})
        assert resp.status_code == 422

    def test_pricing_crud(self, client):
        created = client.post("/pricing/", json={"name": "Basic", "details": ["a", "b", "c", "d"]})
        assert created.status_code == 201
        card = created.json()
        assert card["details"] == ["a", "b", "c"]
        assert card["currency"] == "CAD"

        patched = client.patch(f"/pricing/{card['id']}", json={"price": "$99"})
        assert patched.json()["price"] == "$99"
        assert patched.json()["details"] == ["a", "b", "c"]

        assert client.delete(f"/pricing/{card['id']}").status_code == 204
        assert client.get("/pricing/").json() == []
