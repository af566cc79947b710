import logging
from datetime import date, datetime, timedelta

from workdesk.services.work_history import (
    WorkEventRecord,
    day_breakdown,
    derive_session_state,
    group_segments_by_day,
    reconstruct_segments,
)
from workdesk.services.work_sessions import WorkEventType, WorkStatus

T0 = datetime(2025, 3, 3, 9, 0, 0)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def ev(kind: str, seconds: float, note: str | None = None) -> WorkEventRecord:
    return WorkEventRecord(event_type=kind, occurred_at=at(seconds), note=note)


SCENARIO = [
    ev("start", 0),
    ev("hold", 300),
    ev("resume", 600),
    ev("end", 900, "Fixed layout bug"),
]


def test_hold_resume_end_yields_two_segments():
    segments = reconstruct_segments(SCENARIO)
    assert [(s.start_at, s.end_at, s.note) for s in segments] == [
        (at(0), at(300), None),
        (at(600), at(900), "Fixed layout bug"),
    ]
    assert segments[0].closed_by is WorkEventType.HOLD
    assert segments[1].closed_by is WorkEventType.END
    assert sum(s.duration_seconds() for s in segments) == 600


def test_reconstruction_is_idempotent():
    assert reconstruct_segments(SCENARIO) == reconstruct_segments(SCENARIO)


def test_segments_are_ordered_and_do_not_overlap():
    events = SCENARIO + [ev("start", 1000), ev("hold", 1100), ev("resume", 1200), ev("end", 1300, "Again")]
    segments = reconstruct_segments(events)
    for earlier, later in zip(segments, segments[1:]):
        assert earlier.end_at <= later.start_at
    assert [s.cycle for s in segments] == [1, 1, 2, 2]


def test_out_of_order_input_is_sorted(caplog):
    shuffled = [SCENARIO[2], SCENARIO[0], SCENARIO[3], SCENARIO[1]]
    with caplog.at_level(logging.WARNING):
        segments = reconstruct_segments(shuffled)
    assert segments == reconstruct_segments(SCENARIO)
    assert "out of order" in caplog.text


def test_duplicate_start_is_collapsed_and_logged(caplog):
    events = [ev("start", 0), ev("start", 100), ev("hold", 200)]
    with caplog.at_level(logging.WARNING):
        segments = reconstruct_segments(events)
    assert [(s.start_at, s.end_at) for s in segments] == [(at(0), at(200))]
    assert "Duplicate start" in caplog.text


def test_close_without_open_segment_is_dropped(caplog):
    events = [ev("hold", 0), ev("start", 10), ev("hold", 20), ev("hold", 30)]
    with caplog.at_level(logging.WARNING):
        segments = reconstruct_segments(events)
    assert [(s.start_at, s.end_at) for s in segments] == [(at(10), at(20))]
    assert "no running segment" in caplog.text


def test_end_after_hold_attaches_note_to_last_segment():
    events = [ev("start", 0), ev("hold", 60), ev("end", 500, "Wrote docs")]
    segments = reconstruct_segments(events)
    assert len(segments) == 1
    assert segments[0].end_at == at(60)
    assert segments[0].note == "Wrote docs"


def test_unknown_events_are_ignored():
    events = [ev("start", 0), WorkEventRecord(event_type="pause", occurred_at=at(5)), ev("hold", 10)]
    assert [(s.start_at, s.end_at) for s in reconstruct_segments(events)] == [(at(0), at(10))]


def test_open_segment_counts_live_time_on_current_day():
    events = [ev("start", 0), ev("hold", 60), ev("resume", 120)]
    segments = reconstruct_segments(events)
    assert segments[-1].is_open
    days = group_segments_by_day(segments, "UTC", now=at(300))
    assert len(days) == 1
    assert days[0].total_seconds == 60 + 180
    assert days[0].segments[-1].end_at is None


def test_segment_crossing_midnight_is_split_and_note_stays_on_end_day():
    start = datetime(2025, 3, 3, 23, 0, 0)
    events = [
        WorkEventRecord("start", start),
        WorkEventRecord("end", start + timedelta(hours=2), "Late deploy"),
    ]
    days = group_segments_by_day(reconstruct_segments(events), "UTC", now=start + timedelta(hours=5))
    assert [d.date for d in days] == [date(2025, 3, 4), date(2025, 3, 3)]
    assert days[0].total_seconds == 3600
    assert days[1].total_seconds == 3600
    assert days[0].segments[0].note == "Late deploy"
    assert days[1].segments[0].note is None
    assert days[1].segments[0].end_at == datetime(2025, 3, 4, 0, 0, 0)


def test_days_use_local_timezone():
    start = datetime(2025, 3, 3, 23, 30, 0)
    events = [WorkEventRecord("start", start), WorkEventRecord("hold", start + timedelta(minutes=20))]
    days = group_segments_by_day(reconstruct_segments(events), "Asia/Kolkata", now=start)
    assert [d.date for d in days] == [date(2025, 3, 4)]


def test_day_breakdown_only_counts_latest_cycle():
    events = SCENARIO + [ev("start", 2000), ev("hold", 2100)]
    segments = reconstruct_segments(events)
    assert day_breakdown(segments, "UTC", now=at(3000)) == [(date(2025, 3, 3), 100.0)]
    assert day_breakdown(segments, "UTC", now=at(3000), cycle=1) == [(date(2025, 3, 3), 600.0)]
    assert day_breakdown([], "UTC", now=at(0)) == []


def test_derive_session_state_replays_log():
    state = derive_session_state(SCENARIO)
    assert state.status is WorkStatus.END
    assert state.accumulated_seconds == 600
    assert state.cycle == 1

    running = derive_session_state(SCENARIO + [ev("start", 1000)])
    assert running.status is WorkStatus.START
    assert running.running_since == at(1000)
    assert running.accumulated_seconds == 0
    assert running.cycle == 2
