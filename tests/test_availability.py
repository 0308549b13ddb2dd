from backend.app.services.slots import (
    AvailabilityView,
    ScheduleConfig,
    compute_availability,
)

CONFIG = ScheduleConfig.model_validate({
    "slot_duration_minutes": 60,
    "hours": {"mon_fri": {"open": "09:00", "close": "12:00"}},
})
TUESDAY = "2030-06-04"
WEDNESDAY = "2030-06-05"
SUNDAY = "2030-06-09"


class FakeSubscription:
    def __init__(self, store, equals, on_snapshot, on_error):
        self.store = store
        self.equals = equals
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True

    def unsubscribe(self):
        self.active = False

    def push(self, *times):
        self.on_snapshot([
            {"id": f"{self.equals['date']}_{t.replace(':', '')}", "time": t, "booked": True}
            for t in times
        ])


class FakeStore:
    """Subscriptions are driven by hand; no initial snapshot."""

    def __init__(self):
        self.subscriptions = []

    def subscribe(self, collection, on_snapshot, on_error=None, **equals):
        sub = FakeSubscription(self, equals, on_snapshot, on_error)
        self.subscriptions.append(sub)
        return sub


def make_view(exclude_slot=None):
    store = FakeStore()
    changes = []
    view = AvailabilityView(store, CONFIG, exclude_slot=exclude_slot, on_change=changes.append)
    return store, view, changes


class TestComputeAvailability:
    def test_taken_removed_from_bookable(self):
        av = compute_availability(TUESDAY, CONFIG, ["10:00"])
        assert av.candidates == ("09:00", "10:00", "11:00")
        assert av.bookable == ("09:00", "11:00")
        assert av.taken == frozenset({"10:00"})
        assert not av.closed

    def test_closed_day(self):
        av = compute_availability(SUNDAY, CONFIG, [])
        assert av.closed
        assert av.bookable == ()

    def test_exclude_slot_frees_own_time(self):
        av = compute_availability(TUESDAY, CONFIG, ["10:00", "11:00"], exclude_slot="2030-06-04_1000")
        assert av.bookable == ("09:00", "10:00")
        assert av.taken == frozenset({"11:00"})

    def test_exclude_slot_for_other_date_ignored(self):
        av = compute_availability(TUESDAY, CONFIG, ["10:00"], exclude_slot="2030-06-05_1000")
        assert av.bookable == ("09:00", "11:00")

    def test_taken_outside_candidates_does_not_matter(self):
        av = compute_availability(TUESDAY, CONFIG, ["17:00"])
        assert av.bookable == av.candidates


class TestAvailabilityView:
    def test_loading_until_first_snapshot(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)

        assert view.availability.loading
        assert store.subscriptions[0].equals == {"date": TUESDAY, "booked": True}

        store.subscriptions[0].push("10:00")
        assert not view.availability.loading
        assert view.availability.bookable == ("09:00", "11:00")
        assert changes[-1] == view.availability

    def test_closed_day_does_not_subscribe(self):
        store, view, changes = make_view()
        view.set_date(SUNDAY)

        assert store.subscriptions == []
        assert view.availability.closed
        assert not view.availability.loading
        assert len(changes) == 1

    def test_stale_snapshot_discarded_after_date_change(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        old = store.subscriptions[0]
        view.set_date(WEDNESDAY)
        new = store.subscriptions[1]

        assert not old.active
        old.push("09:00", "10:00", "11:00")
        assert view.availability.date == WEDNESDAY
        assert view.availability.loading

        new.push("09:00")
        assert view.availability.bookable == ("10:00", "11:00")

    def test_selection_dropped_when_slot_taken(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        store.subscriptions[0].push()

        assert view.select("10:00")
        assert view.selected == "10:00"

        store.subscriptions[0].push("10:00")
        assert view.selected is None
        assert view.availability.selected is None

    def test_select_rejects_unbookable_time(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        store.subscriptions[0].push("10:00")

        assert not view.select("10:00")
        assert not view.select("10:30")
        assert view.selected is None

    def test_date_change_clears_selection(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        store.subscriptions[0].push()
        view.select("09:00")

        view.set_date(WEDNESDAY)
        assert view.selected is None

    def test_pending_reconciled_by_snapshot(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        sub = store.subscriptions[0]
        sub.push()
        view.select("10:00")

        view.mark_pending("10:00")
        assert view.pending == frozenset({"10:00"})
        assert "10:00" not in view.availability.bookable
        assert view.selected is None

        # Snapshot without the slot yet: still shown as taken
        sub.push("09:00")
        assert view.availability.bookable == ("11:00",)

        sub.push("09:00", "10:00")
        assert view.pending == frozenset()
        assert view.availability.bookable == ("11:00",)

    def test_own_slot_stays_bookable_while_editing(self):
        store, view, changes = make_view(exclude_slot="2030-06-04_1000")
        view.set_date(TUESDAY)
        store.subscriptions[0].push("10:00")

        assert "10:00" in view.availability.bookable
        assert view.select("10:00")

    def test_config_change_restarts_query(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        store.subscriptions[0].push()

        view.set_config(ScheduleConfig.model_validate({
            "slot_duration_minutes": 30,
            "hours": {"mon_fri": {"open": "09:00", "close": "10:00"}},
        }))
        assert not store.subscriptions[0].active
        store.subscriptions[1].push()
        assert view.availability.bookable == ("09:00", "09:30")

    def test_equal_config_keeps_query(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        store.subscriptions[0].push("10:00")
        count = len(changes)

        view.set_config(CONFIG.model_copy(deep=True))

        assert len(store.subscriptions) == 1
        assert store.subscriptions[0].active
        assert len(changes) == count
        assert view.availability.taken == frozenset({"10:00"})

    def test_slot_duration_follows_config(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        assert view.availability.slot_duration_minutes == 60

        view.set_config(ScheduleConfig(slot_duration_minutes=120))
        assert view.availability.slot_duration_minutes == 120
        assert view.availability.loading
        assert view.config.slot_duration_minutes == 120

    def test_error_clears_loading(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        store.subscriptions[0].on_error(RuntimeError("down"))

        assert not view.availability.loading
        assert view.availability.bookable == ("09:00", "10:00", "11:00")

    def test_close_unsubscribes_and_ignores_late_snapshots(self):
        store, view, changes = make_view()
        view.set_date(TUESDAY)
        sub = store.subscriptions[0]
        view.close()

        assert not sub.active
        count = len(changes)
        sub.push("10:00")
        assert len(changes) == count

        view.set_date(WEDNESDAY)
        assert len(store.subscriptions) == 1

    def test_failing_listener_does_not_break_view(self):
        store = FakeStore()

        def listener(availability):
            raise RuntimeError("listener bug")

        view = AvailabilityView(store, CONFIG, on_change=listener)
        view.set_date(TUESDAY)
        store.subscriptions[0].push("09:00")
        assert view.availability.bookable == ("10:00", "11:00")

    def test_live_store_integration(self, store):
        view = AvailabilityView(store, CONFIG)
        view.set_date(TUESDAY)
        assert view.availability.bookable == ("09:00", "10:00", "11:00")
        assert not view.availability.loading

        store.set("slots", "2030-06-04_1000", {"date": TUESDAY, "time": "10:00", "booked": True})
        view._subscription.poll()
        assert view.availability.bookable == ("09:00", "11:00")
        view.close()
