from datetime import date, timedelta

from conftest import T0
from sqlalchemy import update

from workdesk.models import ProjectTeamMember, WorkEvent
from workdesk.services import projects, work_store
from workdesk.services.work_sessions import WorkSessionState, WorkStatus


def at(seconds: float):
    return T0 + timedelta(seconds=seconds)


def _events(db, project, user):
    return (
        db.query(WorkEvent)
        .filter(WorkEvent.project_id == project.id, WorkEvent.user_id == user.id)
        .order_by(WorkEvent.occurred_at.asc())
        .all()
    )


def test_new_assignment_starts_not_started(db, project, staff):
    state = work_store.get_session_state(db, project.id, staff.id)
    assert state == WorkSessionState()


def test_full_cycle_records_events_and_updates_confirmed_row(db, project, staff):
    steps = [("start", 0, None), ("hold", 300, None), ("resume", 600, None), ("end", 900, "  Fixed layout bug ")]
    for kind, offset, note in steps:
        result = work_store.record_work_event(db, project.id, staff.id, kind, note, now=at(offset))
        assert result.ok, result.error

    assert result.session_state.status is WorkStatus.END
    assert result.session_state.accumulated_seconds == 600

    events = _events(db, project, staff)
    assert [e.event_type for e in events] == ["start", "hold", "resume", "end"]
    assert [e.note for e in events] == [None, None, None, "Fixed layout bug"]
    assert {e.cycle for e in events} == {1}

    member = db.get(ProjectTeamMember, (project.id, staff.id))
    db.refresh(member)
    assert member.work_status == "end"
    assert member.work_running_since is None
    assert member.work_done_notes == "Fixed layout bug"
    assert member.work_started_at == at(0)
    assert member.work_ended_at == at(900)
    assert member.version == 4


def test_rejected_end_without_notes_records_nothing(db, project, staff):
    work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))
    result = work_store.record_work_event(db, project.id, staff.id, "end", "   ", now=at(10))
    assert not result.ok
    assert result.error_code == "notes_required"
    assert result.session_state.status is WorkStatus.START
    assert len(_events(db, project, staff)) == 1


def test_invalid_transition_returns_current_state(db, project, staff):
    result = work_store.record_work_event(db, project.id, staff.id, "resume", now=at(0))
    assert not result.ok
    assert result.error_code == "invalid_transition"
    assert result.session_state.status is WorkStatus.NOT_STARTED
    assert _events(db, project, staff) == []


def test_unassigned_member_is_rejected(db, project, other_staff):
    result = work_store.record_work_event(db, project.id, other_staff.id, "start", now=at(0))
    assert result.error_code == work_store.NOT_ASSIGNED
    assert result.session_state is None


def test_unknown_event_type(db, project, staff):
    result = work_store.record_work_event(db, project.id, staff.id, "pause", now=at(0))
    assert result.error_code == work_store.INVALID_EVENT


def test_start_again_opens_new_cycle_and_keeps_history(db, project, staff):
    work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))
    work_store.record_work_event(db, project.id, staff.id, "end", "First pass", now=at(100))
    result = work_store.record_work_event(db, project.id, staff.id, "start", now=at(200))
    assert result.session_state.accumulated_seconds == 0
    assert result.session_state.cycle == 2

    history = work_store.get_work_history(db, project.id, staff.id, now=at(260), tz_name="UTC")
    assert history.error is None
    segments = history.days[0].segments
    assert [(s.cycle, s.note, s.end_at) for s in segments] == [(1, "First pass", at(100)), (2, None, None)]
    assert history.days[0].total_seconds == 100 + 60


def test_history_without_member_covers_the_whole_team(db, project, staff, other_staff):
    db.add(ProjectTeamMember(project_id=project.id, user_id=other_staff.id))
    db.commit()
    work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))
    work_store.record_work_event(db, project.id, other_staff.id, "start", now=at(30))
    work_store.record_work_event(db, project.id, staff.id, "hold", now=at(60))

    history = work_store.get_work_history(db, project.id, now=at(90))
    users = [s.user_id for s in history.days[0].segments]
    assert users == [staff.id, other_staff.id]


def test_team_summary_reports_live_elapsed(db, project, staff):
    work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))
    work_store.record_work_event(db, project.id, staff.id, "hold", now=at(120))
    work_store.record_work_event(db, project.id, staff.id, "resume", now=at(180))

    [summary] = work_store.get_team_work_summary(db, project.id, now=at(240))
    assert summary.user_id == staff.id
    assert summary.full_name == "Sam Staff"
    assert summary.state.status is WorkStatus.START
    assert summary.elapsed_seconds == 120 + 60
    assert summary.day_breakdown == [(T0.date(), 180.0)]


def test_resync_rebuilds_drifted_row(db, project, staff):
    work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))
    work_store.record_work_event(db, project.id, staff.id, "hold", now=at(50))

    member = db.get(ProjectTeamMember, (project.id, staff.id))
    member.work_status = "not_started"
    member.work_accumulated_seconds = 0
    db.commit()

    rebuilt = work_store.resync_session_state(db, project.id, staff.id)
    assert rebuilt.status is WorkStatus.HOLD
    assert rebuilt.accumulated_seconds == 50
    assert work_store.get_session_state(db, project.id, staff.id) == rebuilt


def test_resolve_timezone_falls_back():
    assert work_store.resolve_timezone(None, "Europe/Berlin") == "Europe/Berlin"
    assert work_store.resolve_timezone("Not/AZone") == "UTC"


def test_lost_version_race_is_reported_as_conflict(db, project, staff, monkeypatch):
    real_apply = work_store.apply_transition

    def apply_after_concurrent_write(*args, **kwargs):
        db.execute(
            update(ProjectTeamMember)
            .where(ProjectTeamMember.project_id == project.id, ProjectTeamMember.user_id == staff.id)
            .values(version=ProjectTeamMember.version + 1)
            .execution_options(synchronize_session=False)
        )
        return real_apply(*args, **kwargs)

    monkeypatch.setattr(work_store, "apply_transition", apply_after_concurrent_write)
    result = work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))

    assert result.error_code == work_store.CONFLICT
    assert result.session_state.status is WorkStatus.NOT_STARTED
    assert _events(db, project, staff) == []


def test_reassigned_member_continues_cycle_numbering(db, project, staff):
    work_store.record_work_event(db, project.id, staff.id, "start", now=at(0))
    work_store.record_work_event(db, project.id, staff.id, "end", "First pass", now=at(3600))
    assert projects.remove_member(db, project, staff.id)

    member = projects.assign_member(db, project, staff.id)
    assert member.work_status == "end"
    assert member.work_cycle == 1
    assert member.work_done_notes == "First pass"

    two_days_later = at(2 * 86400)
    result = work_store.record_work_event(db, project.id, staff.id, "start", now=two_days_later)
    assert result.session_state.cycle == 2

    [summary] = work_store.get_team_work_summary(db, project.id, now=two_days_later + timedelta(minutes=30))
    assert summary.day_breakdown == [(date(2025, 3, 5), 1800.0)]
    assert {e.cycle for e in _events(db, project, staff)} == {1, 2}


def test_first_assignment_starts_clean(db, project, other_staff):
    member = projects.assign_member(db, project, other_staff.id)
    assert member.work_status == "not_started"
    assert member.work_cycle == 0
    assert member.work_started_at is None
