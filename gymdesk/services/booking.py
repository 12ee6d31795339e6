"""Training session booking.

Overlap rule: two non-cancelled sessions of one trainer on the same date
conflict when ``existing.start < new.end and existing.end > new.start``.
The check and the write share one BEGIN IMMEDIATE transaction.
"""
from datetime import date, timedelta

from flask import current_app

from gymdesk.models.database import transaction, map_fields
from gymdesk.models.member import Member
from gymdesk.models.trainer import Trainer
from gymdesk.models.training_session import TrainingSession, STATUSES
from gymdesk.utils.email_utils import send_session_confirmation, send_session_reminder
from gymdesk.utils.errors import ConflictError, NotFoundError, ValidationError
from gymdesk.utils.helpers import parse_date, parse_time, parse_id

_INTERVAL_COLUMNS = ('session_date', 'start_time', 'end_time', 'trainer_id')


def _check_interval(start_time, end_time):
    if start_time >= end_time:
        raise ValidationError('Start time must be before end time')


def _raise_if_conflicting(trainer_id, session_date, start_time, end_time, conn, exclude_id=None):
    conflicts = TrainingSession.find_conflicts(trainer_id, session_date, start_time, end_time,
                                               exclude_id=exclude_id, conn=conn)
    if conflicts:
        raise ConflictError(
            'Trainer already has a session booked during this time',
            payload={'conflicts': [
                {'id': s.id, 'startTime': s.start_time, 'endTime': s.end_time}
                for s in conflicts
            ]}
        )


def book_session(trainer_id, member_id, session_date, start_time, end_time,
                 session_type=None, notes=None):
    """Book a scheduled session; returns {'session_id', 'warnings'}."""
    trainer_id = parse_id(trainer_id, 'trainerId')
    member_id = parse_id(member_id, 'memberId')
    session_date = parse_date(session_date, 'sessionDate').isoformat()
    start_time = parse_time(start_time, 'startTime')
    end_time = parse_time(end_time, 'endTime')
    _check_interval(start_time, end_time)

    with transaction() as conn:
        trainer = Trainer.get_available_by_id(trainer_id, conn=conn)
        if not trainer:
            raise NotFoundError('Trainer not found or not available')
        member = Member.get_by_id(member_id, conn=conn)
        if not member:
            raise NotFoundError('Member not found')
        _raise_if_conflicting(trainer_id, session_date, start_time, end_time, conn)
        session_id = TrainingSession.create(trainer_id, member_id, session_date, start_time,
                                            end_time, session_type, notes, conn=conn)

    warnings = []
    if not send_session_confirmation(member.email, member.full_name, trainer.full_name,
                                     session_date, start_time, end_time):
        current_app.logger.warning("Session %s booked but confirmation email failed", session_id)
        warnings.append('Confirmation email could not be sent')
    return {'session_id': session_id, 'warnings': warnings}


def update_session(session_id, fields):
    """Partial update. Rescheduling re-runs the overlap check against the merged interval.

    The only status change allowed here is scheduled -> cancelled.
    """
    values = map_fields(fields, TrainingSession.FIELD_MAP)
    if not values:
        raise ValidationError('No fields to update')

    if 'session_date' in values:
        values['session_date'] = parse_date(values['session_date'], 'sessionDate').isoformat()
    if 'start_time' in values:
        values['start_time'] = parse_time(values['start_time'], 'startTime')
    if 'end_time' in values:
        values['end_time'] = parse_time(values['end_time'], 'endTime')
    if 'trainer_id' in values:
        values['trainer_id'] = parse_id(values['trainer_id'], 'trainerId')
    if 'status' in values and values['status'] not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")

    with transaction() as conn:
        existing = TrainingSession.get_by_id(session_id, conn=conn)
        if not existing:
            raise NotFoundError('Session not found')

        reschedule = any(col in values for col in _INTERVAL_COLUMNS)
        if reschedule:
            if existing.is_terminal:
                raise ConflictError(f'Cannot reschedule a {existing.status} session')
            trainer_id = values.get('trainer_id', existing.trainer_id)
            if trainer_id != existing.trainer_id and not Trainer.get_available_by_id(trainer_id, conn=conn):
                raise NotFoundError('Trainer not found or not available')
            session_date = values.get('session_date', existing.session_date)
            start_time = values.get('start_time', existing.start_time)
            end_time = values.get('end_time', existing.end_time)
            _check_interval(start_time, end_time)
            _raise_if_conflicting(trainer_id, session_date, start_time, end_time, conn,
                                  exclude_id=existing.id)

        # completed goes through complete_session, no-show only through the sweep
        new_status = values.get('status')
        if new_status and new_status != existing.status:
            if existing.status != 'scheduled' or new_status != 'cancelled':
                raise ConflictError(f'Cannot change status from {existing.status} to {new_status}')

        return TrainingSession.update_fields(existing.id, values, conn=conn)


def cancel_session(session_id):
    """scheduled -> cancelled. Cancelling twice is a no-op."""
    with transaction() as conn:
        existing = TrainingSession.get_by_id(session_id, conn=conn)
        if not existing:
            raise NotFoundError('Session not found')
        if existing.status == 'cancelled':
            return True
        if existing.status != 'scheduled':
            raise ConflictError(f'Cannot cancel a {existing.status} session')
        return TrainingSession.transition(existing.id, 'scheduled', 'cancelled', conn=conn)


def complete_session(session_id, notes=None):
    with transaction() as conn:
        existing = TrainingSession.get_by_id(session_id, conn=conn)
        if not existing:
            raise NotFoundError('Session not found')
        if existing.status != 'scheduled':
            raise ConflictError(f'Cannot complete a {existing.status} session')
        return TrainingSession.transition(existing.id, 'scheduled', 'completed',
                                          notes=notes, conn=conn)


def delete_session(session_id):
    if not TrainingSession.get_by_id(session_id):
        raise NotFoundError('Session not found')
    return TrainingSession.delete(session_id)


def get_session(session_id):
    session = TrainingSession.get_by_id(session_id)
    if not session:
        raise NotFoundError('Session not found')
    return session


def list_sessions(status=None, trainer_id=None, member_id=None, date_from=None,
                  date_to=None, limit=None, offset=0):
    if status and status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
    if date_from:
        date_from = parse_date(date_from, 'dateFrom')
    if date_to:
        date_to = parse_date(date_to, 'dateTo')
    return TrainingSession.search(status=status, trainer_id=trainer_id, member_id=member_id,
                                  date_from=date_from, date_to=date_to, limit=limit, offset=offset)


def get_trainer_schedule(trainer_id, date_from=None, date_to=None):
    """Chronological schedule of one trainer; the range applies only when both ends are given."""
    if not Trainer.get_by_id(trainer_id):
        raise NotFoundError('Trainer not found')
    if date_from and date_to:
        date_from = parse_date(date_from, 'startDate')
        date_to = parse_date(date_to, 'endDate')
    else:
        date_from = date_to = None
    return TrainingSession.get_trainer_schedule(trainer_id, date_from, date_to)


def mark_no_show_sessions(today=None):
    """Bulk scheduled -> no-show for sessions dated before today."""
    today = today or date.today()
    count = TrainingSession.mark_past_no_show(today)
    current_app.logger.info("Marked %d sessions as no-show", count)
    return count


def send_session_reminders(today=None):
    """Email members who have a scheduled session tomorrow; returns emails sent."""
    tomorrow = (today or date.today()) + timedelta(days=1)
    sent = 0
    for s in TrainingSession.get_scheduled_on(tomorrow):
        if send_session_reminder(s.member_email, s.member_name, s.trainer_name,
                                 s.session_date, s.start_time):
            sent += 1
    current_app.logger.info("Sent %d session reminders for %s", sent, tomorrow)
    return sent
