"""Check-in / check-out and QR entry.

A member may hold at most one open attendance row per calendar day; the
lookup and the insert share a BEGIN IMMEDIATE transaction and the partial
unique index ux_attendance_one_open enforces the same rule in the schema.
"""
import os
from datetime import date

from dateutil.relativedelta import relativedelta
from flask import current_app

from gymdesk.models.attendance import Attendance, CHECK_IN_METHODS
from gymdesk.models.database import transaction
from gymdesk.models.member import Member
from gymdesk.models.membership import Membership
from gymdesk.utils import qr_utils
from gymdesk.utils.errors import (AlreadyCheckedInError, MembershipInvalidError,
                                  NotFoundError, ValidationError)
from gymdesk.utils.helpers import now_timestamp, parse_date

ATTENDANCE_RETENTION_YEARS = 2


def check_in(member_id, method='manual'):
    if method not in CHECK_IN_METHODS:
        raise ValidationError(f"method must be one of: {', '.join(CHECK_IN_METHODS)}")
    today = date.today().isoformat()

    with transaction() as conn:
        member = Member.get_by_id(member_id, conn=conn)
        if not member:
            raise NotFoundError('Member not found')
        if not Membership.find_valid_active(member.id, today, conn=conn):
            raise MembershipInvalidError()
        if Attendance.find_open(member.id, today, conn=conn):
            raise AlreadyCheckedInError()
        check_in_time = now_timestamp()
        attendance_id = Attendance.create(member.id, today, check_in_time, method, conn=conn)

    current_app.logger.info("Member %s checked in (%s)", member.id, method)
    return {
        'attendance_id': attendance_id,
        'check_in_time': check_in_time,
        'member_name': member.full_name,
        'first_name': member.first_name,
    }


def check_out(member_id):
    today = date.today().isoformat()
    with transaction() as conn:
        member = Member.get_by_id(member_id, conn=conn)
        if not member:
            raise NotFoundError('Member not found')
        open_row = Attendance.find_open(member.id, today, conn=conn)
        if not open_row:
            raise NotFoundError('No active check-in found for today')
        check_out_time = now_timestamp()
        Attendance.close(open_row.id, check_out_time, conn=conn)

    return {
        'attendance_id': open_row.id,
        'check_in_time': open_row.check_in_time,
        'check_out_time': check_out_time,
        'member_name': member.full_name,
        'first_name': member.first_name,
    }


def qr_check_in(payload):
    """Check in from a scanned MEMBER-<userId>-<timestamp> payload."""
    user_id = qr_utils.parse_qr_payload(payload)
    member = Member.get_by_user_id(user_id)
    if not member:
        raise NotFoundError('Member not found')
    return check_in(member.id, method='qr')


def get_member_qr_code(member_id):
    """Return the member's QR image, generating and storing it on first use.

    The payload is kept in members.qr_code; the PNG lives under QR_CODE_DIR.
    """
    member = Member.get_by_id(member_id)
    if not member:
        raise NotFoundError('Member not found')

    qr_dir = current_app.config['QR_CODE_DIR']
    qr_data = member.qr_code or qr_utils.build_member_qr_payload(member.user_id)
    path = os.path.join(qr_dir, f"member_{member.id}.png")
    if os.path.exists(path) and member.qr_code:
        with open(path, 'rb') as fh:
            png = fh.read()
    else:
        path, png = qr_utils.save_member_qr(member.id, qr_data, qr_dir)
        if member.qr_code != qr_data:
            Member.set_qr_code(member.id, qr_data)

    return {
        'qr_code_path': path,
        'qr_code_data_url': qr_utils.png_data_url(png),
        'qr_data': qr_data,
    }


# -------------------- Projections --------------------

def todays_attendance():
    """Today's check-ins plus current occupancy (rows still open)."""
    rows = Attendance.get_for_date(date.today())
    return {
        'date': date.today().isoformat(),
        'totalCheckIns': len(rows),
        'currentlyInGym': sum(1 for r in rows if r.is_open),
        'records': [r.to_dict() for r in rows],
    }


def list_attendance(member_id=None, date_from=None, date_to=None, limit=None, offset=0):
    if date_from:
        date_from = parse_date(date_from, 'dateFrom')
    if date_to:
        date_to = parse_date(date_to, 'dateTo')
    return Attendance.search(member_id=member_id, date_from=date_from, date_to=date_to,
                             limit=limit, offset=offset)


def member_attendance_stats(member_id):
    if not Member.get_by_id(member_id):
        raise NotFoundError('Member not found')
    month_start = date.today().replace(day=1)
    stats = Attendance.member_stats(member_id, month_start)
    stats['memberId'] = int(member_id)
    return stats


def cleanup_old_attendance(today=None):
    """Delete attendance history older than the retention window."""
    cutoff = (today or date.today()) - relativedelta(years=ATTENDANCE_RETENTION_YEARS)
    deleted = Attendance.delete_before(cutoff)
    current_app.logger.info("Deleted %d attendance rows older than %s", deleted, cutoff)
    return deleted
