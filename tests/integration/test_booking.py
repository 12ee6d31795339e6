from datetime import date, timedelta
from unittest.mock import patch

import pytest

from gymdesk.models.training_session import TrainingSession
from gymdesk.services import booking
from gymdesk.utils.errors import ConflictError, NotFoundError, ValidationError

DAY = "2030-01-10"


@pytest.fixture()
def people(seed):
    return {
        "trainer": seed.trainer(),
        "m1": seed.member(first_name="Ann"),
        "m2": seed.member(first_name="Bob"),
    }


def _book(people, member_key, start, end, day=DAY, trainer=None):
    trainer = trainer or people["trainer"]
    return booking.book_session(trainer.id, people[member_key].id, day, start, end)


def test_overlap_scenario(people, count):
    first = _book(people, "m1", "09:00", "10:00")
    assert first["session_id"]
    assert first["warnings"] == []

    with pytest.raises(ConflictError):
        _book(people, "m2", "09:30", "10:30")

    adjacent = _book(people, "m2", "10:00", "11:00")
    assert adjacent["session_id"] != first["session_id"]
    assert count("training_sessions") == 2


@pytest.mark.parametrize("start,end", [
    ("08:30", "09:30"),
    ("09:15", "09:45"),
    ("08:00", "11:00"),
    ("09:00", "10:00"),
])
def test_every_overlap_shape_conflicts(people, start, end):
    _book(people, "m1", "09:00", "10:00")
    with pytest.raises(ConflictError):
        _book(people, "m2", start, end)


def test_cancelled_sessions_free_the_slot(people):
    first = _book(people, "m1", "09:00", "10:00")
    booking.cancel_session(first["session_id"])
    assert _book(people, "m2", "09:00", "10:00")["session_id"]


def test_other_trainer_or_date_does_not_conflict(people, seed):
    _book(people, "m1", "09:00", "10:00")
    other = seed.trainer(first_name="Omar")
    assert _book(people, "m2", "09:00", "10:00", trainer=other)["session_id"]
    assert _book(people, "m2", "09:00", "10:00", day="2030-01-11")["session_id"]


def test_validation_and_missing_entities(people, seed):
    with pytest.raises(ValidationError):
        _book(people, "m1", "10:00", "09:00")
    with pytest.raises(ValidationError):
        _book(people, "m1", "10:00", "10:00")
    with pytest.raises(NotFoundError):
        booking.book_session(9999, people["m1"].id, DAY, "09:00", "10:00")
    with pytest.raises(NotFoundError):
        booking.book_session(people["trainer"].id, 9999, DAY, "09:00", "10:00")
    unavailable = seed.trainer(is_available=False)
    with pytest.raises(NotFoundError):
        booking.book_session(unavailable.id, people["m1"].id, DAY, "09:00", "10:00")


def test_email_failure_is_a_warning(people, count):
    with patch("gymdesk.services.booking.send_session_confirmation", return_value=False):
        result = _book(people, "m1", "09:00", "10:00")
    assert result["warnings"] == ["Confirmation email could not be sent"]
    assert count("training_sessions") == 1


def test_update_rechecks_merged_interval_excluding_itself(people):
    first = _book(people, "m1", "09:00", "10:00")
    second = _book(people, "m2", "10:00", "11:00")

    # shifting within its own slot is fine
    assert booking.update_session(first["session_id"], {"endTime": "09:45"})

    with pytest.raises(ConflictError):
        booking.update_session(second["session_id"], {"startTime": "09:30"})

    moved = TrainingSession.get_by_id(second["session_id"])
    assert moved.start_time == "10:00:00"


def test_update_requires_fields_and_blocks_terminal_reschedule(people):
    sid = _book(people, "m1", "09:00", "10:00")["session_id"]
    with pytest.raises(ValidationError):
        booking.update_session(sid, {"unknown": 1})
    booking.complete_session(sid, "Great work")
    with pytest.raises(ConflictError):
        booking.update_session(sid, {"sessionDate": "2030-02-01"})
    with pytest.raises(ConflictError):
        booking.update_session(sid, {"status": "scheduled"})


def test_cancel_is_idempotent_and_respects_terminal_states(people):
    sid = _book(people, "m1", "09:00", "10:00")["session_id"]
    assert booking.cancel_session(sid) is True
    assert booking.cancel_session(sid) is True
    assert TrainingSession.get_by_id(sid).status == "cancelled"

    done = _book(people, "m2", "11:00", "12:00")["session_id"]
    booking.complete_session(done)
    with pytest.raises(ConflictError):
        booking.cancel_session(done)
    with pytest.raises(ConflictError):
        booking.complete_session(done)
    with pytest.raises(NotFoundError):
        booking.cancel_session(9999)


def test_complete_stores_notes(people):
    sid = _book(people, "m1", "09:00", "10:00")["session_id"]
    booking.complete_session(sid, "Deadlift PR")
    session = TrainingSession.get_by_id(sid)
    assert session.status == "completed"
    assert session.notes == "Deadlift PR"


def test_mark_no_show_is_idempotent(people, app_ctx):
    today = date.today()
    past = (today - timedelta(days=2)).isoformat()
    future = (today + timedelta(days=2)).isoformat()
    past_id = _book(people, "m1", "09:00", "10:00", day=past)["session_id"]
    future_id = _book(people, "m1", "09:00", "10:00", day=future)["session_id"]

    assert booking.mark_no_show_sessions() == 1
    assert booking.mark_no_show_sessions() == 0
    assert TrainingSession.get_by_id(past_id).status == "no-show"
    assert TrainingSession.get_by_id(future_id).status == "scheduled"


def test_mark_no_show_with_nothing_due(app_ctx):
    assert booking.mark_no_show_sessions() == 0


def test_session_reminders_for_tomorrow(people):
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    _book(people, "m1", "09:00", "10:00", day=tomorrow)
    _book(people, "m2", "09:00", "10:00", day="2030-05-05")
    with patch("gymdesk.services.booking.send_session_reminder", return_value=True) as send:
        assert booking.send_session_reminders() == 1
    assert send.call_args[0][0] == people["m1"].email


def test_list_sessions_filters(people):
    _book(people, "m1", "09:00", "10:00", day="2030-01-10")
    _book(people, "m2", "09:00", "10:00", day="2030-01-12")
    assert len(booking.list_sessions(member_id=people["m1"].id)) == 1
    assert len(booking.list_sessions(date_from="2030-01-11")) == 1
    assert len(booking.list_sessions(trainer_id=people["trainer"].id, limit=1)) == 1
    with pytest.raises(ValidationError):
        booking.list_sessions(status="bogus")


def test_update_only_allows_cancelling_a_scheduled_session(people):
    sid = _book(people, "m1", "09:00", "10:00")["session_id"]
    with pytest.raises(ConflictError):
        booking.update_session(sid, {"status": "no-show"})
    with pytest.raises(ConflictError):
        booking.update_session(sid, {"status": "completed"})
    assert TrainingSession.get_by_id(sid).status == "scheduled"

    assert booking.update_session(sid, {"status": "cancelled", "notes": "Sick"})
    cancelled = TrainingSession.get_by_id(sid)
    assert cancelled.status == "cancelled"
    assert cancelled.notes == "Sick"


def test_trainer_schedule_is_chronological(people, seed):
    trainer = people["trainer"]
    _book(people, "m1", "14:00", "15:00", day="2030-01-11")
    _book(people, "m2", "09:00", "10:00", day="2030-01-11")
    _book(people, "m1", "09:00", "10:00", day="2030-01-09")
    _book(people, "m2", "09:00", "10:00", trainer=seed.trainer(first_name="Other"))

    schedule = booking.get_trainer_schedule(trainer.id)
    assert [(s.session_date, s.start_time) for s in schedule] == [
        ("2030-01-09", "09:00:00"), ("2030-01-11", "09:00:00"), ("2030-01-11", "14:00:00"),
    ]
    assert schedule[0].member_name == "Ann Member"

    ranged = booking.get_trainer_schedule(trainer.id, "2030-01-10", "2030-01-31")
    assert len(ranged) == 2
    # a half-open range is ignored
    assert len(booking.get_trainer_schedule(trainer.id, "2030-01-10")) == 3

    with pytest.raises(ValidationError):
        booking.get_trainer_schedule(trainer.id, "soon", "2030-01-31")
    with pytest.raises(NotFoundError):
        booking.get_trainer_schedule(9999)
