from datetime import date

from backend.app.services.slots import ScheduleConfig, generate_slots, is_candidate


def make_config(**hours):
    return ScheduleConfig.model_validate({"slot_duration_minutes": 60, "hours": hours})


def test_weekday_hourly_slots():
    config = make_config(mon_fri={"open": "09:00", "close": "12:00"})
    # 2024-06-04 is a Tuesday
    assert generate_slots("2024-06-04", config) == ["09:00", "10:00", "11:00"]


def test_last_slot_must_fit_before_close():
    config = ScheduleConfig.model_validate({
        "slot_duration_minutes": 90,
        "hours": {"mon_fri": {"open": "09:00", "close": "12:00"}},
    })
    assert generate_slots("2024-06-04", config) == ["09:00", "10:30"]


def test_half_hour_slots():
    config = ScheduleConfig.model_validate({
        "slot_duration_minutes": 30,
        "hours": {"mon_fri": {"open": "09:00", "close": "10:30"}},
    })
    assert generate_slots(date(2024, 6, 4), config) == ["09:00", "09:30", "10:00"]


def test_saturday_uses_sat_band():
    config = make_config(sat={"open": "10:00", "close": "12:00"})
    assert generate_slots("2024-06-08", config) == ["10:00", "11:00"]


def test_sunday_closed_by_default():
    assert generate_slots("2024-06-09", ScheduleConfig()) == []


def test_sunday_open_when_configured():
    config = make_config(sun={"open": "11:00", "close": "13:00"})
    assert generate_slots("2024-06-09", config) == ["11:00", "12:00"]


def test_band_missing_boundary_is_closed():
    config = make_config(mon_fri={"open": "09:00"})
    assert generate_slots("2024-06-04", config) == []


def test_window_shorter_than_slot_yields_nothing():
    config = make_config(mon_fri={"open": "09:00", "close": "09:30"})
    assert generate_slots("2024-06-04", config) == []


def test_default_weekday_hours():
    slots = generate_slots("2024-06-04", ScheduleConfig())
    assert slots[0] == "09:00"
    assert slots[-1] == "17:00"
    assert len(slots) == 9


def test_is_candidate():
    config = ScheduleConfig()
    assert is_candidate("2024-06-04", "10:00", config)
    assert not is_candidate("2024-06-04", "10:30", config)
    assert not is_candidate("2024-06-09", "10:00", config)
