from datetime import date, timedelta
from unittest.mock import patch

import pytest

from gymdesk.models.membership import Membership
from gymdesk.models.payment import Payment
from gymdesk.services import membership_lifecycle as lifecycle
from gymdesk.utils.errors import NotFoundError, ValidationError
from gymdesk.utils.helpers import calculate_expiry_date


def _active_count(count, member_id):
    return count("member_memberships", "member_id = ? AND status = 'active'", (member_id,))


def test_purchase_replaces_active_membership(seed, count):
    member = seed.member()
    old_id = seed.active_membership(member.id)
    plan_id = seed.plan_id("Quarterly Premium")

    result = lifecycle.purchase_membership(member.id, plan_id, "pi_123")

    assert Membership.get_by_id(old_id).status == "expired"
    new = Membership.get_by_id(result["membership_id"])
    assert new.status == "active"
    assert new.start_date == date.today().isoformat()
    assert new.end_date == calculate_expiry_date(date.today(), 3).isoformat()
    assert _active_count(count, member.id) == 1

    payment = Payment.get_by_id(result["payment_id"])
    assert payment.payment_status == "completed"
    assert payment.amount == 2499
    assert payment.transaction_id == "pi_123"
    today = date.today()
    assert result["invoice_number"] == f"INV-{today.year}{today.month:02d}-{result['membership_id']:05d}"
    assert count("payments", "member_id = ?", (member.id,)) == 1


def test_purchase_twice_keeps_one_active(seed, count):
    member = seed.member()
    plan_id = seed.plan_id()
    first = lifecycle.purchase_membership(member.id, plan_id)
    second = lifecycle.purchase_membership(member.id, plan_id)
    assert first["invoice_number"] != second["invoice_number"]
    assert _active_count(count, member.id) == 1


def test_purchase_unknown_member_or_plan(seed, count):
    member = seed.member()
    with pytest.raises(NotFoundError):
        lifecycle.purchase_membership(9999, seed.plan_id())
    with pytest.raises(NotFoundError):
        lifecycle.purchase_membership(member.id, 9999)
    assert count("payments") == 0


def test_assign_deactivates_prior_active(seed, count):
    member = seed.member()
    seed.active_membership(member.id)
    mid = lifecycle.assign_membership(member.id, seed.plan_id(), "2030-01-01", "2030-02-01", True)
    assert Membership.get_by_id(mid).auto_renewal is True
    assert _active_count(count, member.id) == 1

    lifecycle.assign_membership(member.id, seed.plan_id(), "2029-01-01", "2029-02-01", status="expired")
    assert _active_count(count, member.id) == 1


def test_assign_validates_before_writing(seed, count):
    member = seed.member()
    with pytest.raises(ValidationError):
        lifecycle.assign_membership(member.id, seed.plan_id(), "2030-02-01", "2030-01-01")
    with pytest.raises(ValidationError):
        lifecycle.assign_membership("abc", seed.plan_id(), "2030-01-01", "2030-02-01")
    with pytest.raises(ValidationError):
        lifecycle.assign_membership(member.id, seed.plan_id(), "2030-01-01", "2030-02-01", status="paused")
    assert count("member_memberships") == 0


def test_update_membership(seed, count):
    member = seed.member()
    current = seed.active_membership(member.id)
    old = lifecycle.assign_membership(member.id, seed.plan_id(), "2020-01-01", "2020-02-01", status="expired")

    with pytest.raises(ValidationError):
        lifecycle.update_membership(current, {})
    with pytest.raises(NotFoundError):
        lifecycle.update_membership(9999, {"status": "cancelled"})

    assert lifecycle.update_membership(old, {"status": "active", "endDate": "2031-01-01"})
    assert Membership.get_by_id(current).status == "expired"
    assert Membership.get_by_id(old).end_date == "2031-01-01"
    assert _active_count(count, member.id) == 1


def test_delete_membership(seed):
    member = seed.member()
    mid = seed.active_membership(member.id)
    assert lifecycle.delete_membership(mid)
    with pytest.raises(NotFoundError):
        lifecycle.delete_membership(mid)


def test_update_expired_memberships_is_idempotent(seed):
    member = seed.member()
    today = date.today()
    lifecycle.assign_membership(member.id, seed.plan_id(), today - timedelta(days=40), today - timedelta(days=1))
    other = seed.member()
    seed.active_membership(other.id)

    assert lifecycle.update_expired_memberships() == 1
    assert lifecycle.update_expired_memberships() == 0
    assert Membership.find_valid_active(other.id, today.isoformat()) is not None


def test_check_expiring_memberships(seed):
    soon = seed.member()
    later = seed.member()
    seed.active_membership(soon.id, days_left=5)
    seed.active_membership(later.id, days_left=30)

    expiring = lifecycle.check_expiring_memberships(7)
    assert [e["memberId"] for e in expiring] == [soon.id]
    assert expiring[0]["daysRemaining"] == 5


def test_expiry_reminders_only_on_7_3_1_days(seed):
    for days in (7, 5, 3, 1, 0):
        seed.active_membership(seed.member().id, days_left=days)
    with patch("gymdesk.services.membership_lifecycle.send_membership_renewal_reminder",
               return_value=True) as send:
        assert lifecycle.check_membership_expiry() == 3
    assert sorted(call.args[3] for call in send.call_args_list) == [1, 3, 7]


def test_auto_renew(seed, count):
    today = date.today()
    yesterday = today - timedelta(days=1)
    renewing = seed.member()
    manual = seed.member()
    lifecycle.assign_membership(renewing.id, seed.plan_id(), today - timedelta(days=31), yesterday,
                                auto_renewal=True, status="expired")
    lifecycle.assign_membership(manual.id, seed.plan_id(), today - timedelta(days=31), yesterday,
                                auto_renewal=False, status="expired")

    assert lifecycle.auto_renew_memberships() == 1
    renewed = Membership.find_valid_active(renewing.id, today.isoformat())
    assert renewed.start_date == today.isoformat()
    assert renewed.end_date == calculate_expiry_date(today, 1).isoformat()
    payment = Payment.search(member_id=renewing.id)[0]
    assert payment.payment_method == "auto-renewal"
    assert payment.description == "Auto-renewed membership"
    assert count("payments", "member_id = ?", (manual.id,)) == 0


def test_auto_renew_failure_does_not_stop_others(seed):
    today = date.today()
    yesterday = today - timedelta(days=1)
    first = seed.member()
    second = seed.member()
    for m in (first, second):
        lifecycle.assign_membership(m.id, seed.plan_id(), today - timedelta(days=31), yesterday,
                                    auto_renewal=True, status="expired")

    real_renew = lifecycle._renew
    calls = []

    def flaky(candidate, day):
        calls.append(candidate.member_id)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return real_renew(candidate, day)

    with patch.object(lifecycle, "_renew", side_effect=flaky):
        assert lifecycle.auto_renew_memberships() == 1
    assert len(calls) == 2


def test_auto_renew_skips_member_who_already_bought_a_plan(seed, count):
    today = date.today()
    yesterday = today - timedelta(days=1)
    member = seed.member()
    lifecycle.assign_membership(member.id, seed.plan_id(), today - timedelta(days=31), yesterday,
                                auto_renewal=True)
    bought = lifecycle.purchase_membership(member.id, seed.plan_id("Quarterly Premium"))

    lifecycle.update_expired_memberships()
    assert lifecycle.auto_renew_memberships() == 0

    active = Membership.find_valid_active(member.id, today.isoformat())
    assert active.id == bought["membership_id"]
    assert _active_count(count, member.id) == 1
    assert count("payments", "member_id = ?", (member.id,)) == 1


def test_auto_renew_sends_payment_confirmation(seed):
    today = date.today()
    member = seed.member(first_name="Rita")
    lifecycle.assign_membership(member.id, seed.plan_id(), today - timedelta(days=31),
                                today - timedelta(days=1), auto_renewal=True, status="expired")

    with patch("gymdesk.services.membership_lifecycle.send_payment_confirmation",
               return_value=False) as send:
        assert lifecycle.auto_renew_memberships() == 1
    send.assert_called_once()
    args = send.call_args.args
    assert args[0] == member.email
    assert args[1] == "Rita Member"
    assert args[2] == 999
    assert Payment.search(member_id=member.id)[0].invoice_number == args[3]
