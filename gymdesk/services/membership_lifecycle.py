"""Membership assignment, purchase, expiry and auto-renewal.

Every write path that can produce an active row first expires the member's
other active rows in the same transaction; the partial unique index
ux_member_memberships_one_active backs this up at the database level.
"""
from datetime import date, timedelta

from flask import current_app

from gymdesk.models.database import transaction, map_fields
from gymdesk.models.member import Member
from gymdesk.models.membership import Membership, STATUSES
from gymdesk.models.membership_plan import MembershipPlan
from gymdesk.models.payment import Payment
from gymdesk.utils.email_utils import send_membership_renewal_reminder, send_payment_confirmation
from gymdesk.utils.errors import NotFoundError, ValidationError
from gymdesk.utils.helpers import (calculate_expiry_date, generate_invoice_number,
                                   parse_bool, parse_date, parse_id)

REMINDER_DAYS = (7, 3, 1)


def assign_membership(member_id, plan_id, start_date, end_date, auto_renewal=False, status='active'):
    """Admin assignment of a plan with explicit dates; returns the new membership id."""
    member_id = parse_id(member_id, 'memberId')
    plan_id = parse_id(plan_id, 'membershipPlanId')
    start = parse_date(start_date, 'startDate')
    end = parse_date(end_date, 'endDate')
    if end < start:
        raise ValidationError('endDate must not be before startDate')
    if status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")

    with transaction() as conn:
        if not Member.get_by_id(member_id, conn=conn):
            raise NotFoundError('Member not found')
        if not MembershipPlan.get_by_id(plan_id, conn=conn):
            raise NotFoundError('Membership plan not found')
        if status == 'active':
            Membership.deactivate_active(member_id, conn)
        return Membership.create(member_id, plan_id, start.isoformat(), end.isoformat(),
                                 status=status, auto_renewal=parse_bool(auto_renewal), conn=conn)


def purchase_membership(member_id, plan_id, external_payment_ref=None, payment_method='stripe',
                        auto_renewal=False):
    """Buy a plan starting today.

    Expires prior active rows, creates the new active row and a completed
    payment in one transaction. Returns membership_id, payment_id, invoice_number.
    """
    member_id = parse_id(member_id, 'memberId')
    plan_id = parse_id(plan_id, 'membershipPlanId')
    today = date.today()

    with transaction() as conn:
        if not Member.get_by_id(member_id, conn=conn):
            raise NotFoundError('Member not found')
        plan = MembershipPlan.get_by_id(plan_id, conn=conn)
        if not plan or not plan.is_active:
            raise NotFoundError('Membership plan not found')

        end = calculate_expiry_date(today, plan.duration_months)
        Membership.deactivate_active(member_id, conn)
        membership_id = Membership.create(member_id, plan.id, today.isoformat(), end.isoformat(),
                                          auto_renewal=parse_bool(auto_renewal), conn=conn)
        invoice_number = generate_invoice_number(membership_id, today)
        payment_id = Payment.create(member_id, plan.price, 'membership', payment_method,
                                    invoice_number, transaction_id=external_payment_ref,
                                    description=f"{plan.name} membership", conn=conn)

    return {'membership_id': membership_id, 'payment_id': payment_id,
            'invoice_number': invoice_number}


def update_membership(membership_id, fields):
    values = map_fields(fields, Membership.FIELD_MAP)
    if not values:
        raise ValidationError('No fields to update')
    if 'start_date' in values:
        values['start_date'] = parse_date(values['start_date'], 'startDate').isoformat()
    if 'end_date' in values:
        values['end_date'] = parse_date(values['end_date'], 'endDate').isoformat()
    if 'status' in values and values['status'] not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
    if 'auto_renewal' in values:
        values['auto_renewal'] = int(parse_bool(values['auto_renewal']))
    if 'membership_plan_id' in values:
        values['membership_plan_id'] = parse_id(values['membership_plan_id'], 'membershipPlanId')

    with transaction() as conn:
        existing = Membership.get_by_id(membership_id, conn=conn)
        if not existing:
            raise NotFoundError('Membership not found')
        if 'membership_plan_id' in values and not MembershipPlan.get_by_id(values['membership_plan_id'], conn=conn):
            raise NotFoundError('Membership plan not found')
        if values.get('status') == 'active':
            Membership.deactivate_active(existing.member_id, conn, exclude_id=existing.id)
        return Membership.update_fields(existing.id, values, conn=conn)


def delete_membership(membership_id):
    if not Membership.get_by_id(membership_id):
        raise NotFoundError('Membership not found')
    return Membership.delete(membership_id)


def get_membership(membership_id):
    membership = Membership.get_by_id(membership_id)
    if not membership:
        raise NotFoundError('Membership not found')
    return membership


def check_expiring_memberships(days_ahead=7, today=None):
    """Active memberships ending within days_ahead days, each with days_remaining."""
    today = today or date.today()
    days_ahead = int(days_ahead)
    expiring = Membership.get_expiring(today.isoformat(), (today + timedelta(days=days_ahead)).isoformat())
    result = []
    for m in expiring:
        item = m.to_dict()
        item['email'] = m.email
        item['daysRemaining'] = (parse_date(m.end_date) - today).days
        result.append(item)
    return result


def update_expired_memberships(today=None):
    today = today or date.today()
    count = Membership.expire_past_due(today.isoformat())
    current_app.logger.info("Expired %d memberships", count)
    return count


def check_membership_expiry(today=None):
    """Send reminders for active memberships exactly 7, 3 or 1 days from ending."""
    today = today or date.today()
    sent = 0
    for days in REMINDER_DAYS:
        for m in Membership.get_ending_on((today + timedelta(days=days)).isoformat()):
            if send_membership_renewal_reminder(m.email, m.member_name, m.end_date, days):
                sent += 1
    current_app.logger.info("Sent %d membership expiry reminders", sent)
    return sent


def _renew(candidate, today):
    """Renew one lapsed membership; returns the new id, or None when skipped."""
    with transaction() as conn:
        current = Membership.find_valid_active(candidate.member_id, today.isoformat(), conn=conn)
        if current:
            current_app.logger.info("Skipping auto-renewal of membership %s: member %s already holds %s",
                                    candidate.id, candidate.member_id, current.id)
            return None
        plan = MembershipPlan.get_by_id(candidate.membership_plan_id, conn=conn)
        if not plan:
            raise NotFoundError('Membership plan not found')
        end = calculate_expiry_date(today, plan.duration_months)
        Membership.deactivate_active(candidate.member_id, conn)
        membership_id = Membership.create(candidate.member_id, plan.id, today.isoformat(),
                                          end.isoformat(), auto_renewal=True, conn=conn)
        invoice_number = generate_invoice_number(membership_id, today)
        Payment.create(candidate.member_id, plan.price, 'membership', 'auto-renewal',
                       invoice_number, description='Auto-renewed membership', conn=conn)

    if not send_payment_confirmation(candidate.email, candidate.member_name, plan.price,
                                     invoice_number, f"{plan.name} membership (auto-renewed)"):
        current_app.logger.warning("Renewal confirmation email failed for member %s", candidate.member_id)
    return membership_id


def auto_renew_memberships(today=None):
    """Renew auto-renewal memberships that expired yesterday.

    Each renewal runs in its own transaction; a failure is logged and the
    remaining candidates are still processed. Members who already hold a
    valid active membership are skipped. Returns the number renewed.
    """
    today = today or date.today()
    yesterday = today - timedelta(days=1)
    renewed = 0
    for candidate in Membership.get_auto_renew_candidates(yesterday.isoformat()):
        try:
            if _renew(candidate, today):
                renewed += 1
        except Exception:
            current_app.logger.exception("Auto-renewal failed for membership %s", candidate.id)
    current_app.logger.info("Auto-renewed %d memberships", renewed)
    return renewed
