import os
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from gymdesk.models.database import execute_update, current_db_path
from gymdesk.models.membership import Membership
from gymdesk.models.membership_plan import MembershipPlan
from gymdesk.models.payment import Payment
from gymdesk.models.supplement import Supplement
from gymdesk.models.supplement_order import SupplementOrder
from gymdesk.services import settlement
from gymdesk.utils.errors import (ConflictError, InsufficientStockError, IntegrationError,
                                  NotFoundError, ValidationError)


def _stock(supplement_id):
    return Supplement.get_by_id(supplement_id).stock_quantity


def test_stock_scenario(seed, count):
    member = seed.member()
    s = seed.supplement(stock=3)

    with pytest.raises(InsufficientStockError):
        settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 5}])
    assert _stock(s.id) == 3

    result = settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 3}])
    assert _stock(s.id) == 0
    assert result["total_amount"] == pytest.approx(149.97)

    with pytest.raises(InsufficientStockError):
        settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 1}])
    assert _stock(s.id) == 0
    assert count("supplement_orders") == 1


def test_order_is_all_or_nothing(seed, count):
    member = seed.member()
    ok = seed.supplement(name="Creatine", price=20, stock=10)
    short = seed.supplement(name="BCAA", price=15, stock=1)

    with pytest.raises(InsufficientStockError):
        settlement.create_order(member.id, [
            {"supplementId": ok.id, "quantity": 2},
            {"supplementId": short.id, "quantity": 2},
        ])
    with pytest.raises(NotFoundError):
        settlement.create_order(member.id, [
            {"supplementId": ok.id, "quantity": 2},
            {"supplementId": 9999, "quantity": 1},
        ])

    assert _stock(ok.id) == 10
    assert _stock(short.id) == 1
    assert count("supplement_orders") == 0
    assert count("supplement_order_items") == 0


def test_order_snapshots_price_and_merges_lines(seed):
    member = seed.member()
    s = seed.supplement(price=10, stock=5)
    result = settlement.create_order(member.id, [
        {"supplementId": s.id, "quantity": 2},
        {"supplementId": s.id, "quantity": 2},
    ])
    Supplement.update(s.id, {"price": 99})

    order = SupplementOrder.get_by_id(result["order_id"])
    assert order.order_status == "pending"
    assert order.total_amount == 40
    assert len(order.items) == 1
    assert order.items[0]["quantity"] == 4
    assert order.items[0]["price"] == 10
    assert _stock(s.id) == 1

    with pytest.raises(InsufficientStockError):
        settlement.create_order(member.id, [
            {"supplementId": s.id, "quantity": 1},
            {"supplementId": s.id, "quantity": 1},
        ])


def test_order_validation(seed):
    member = seed.member()
    s = seed.supplement()
    for items in (None, [], [{"supplementId": s.id, "quantity": 0}], [{"quantity": 1}], ["x"]):
        with pytest.raises(ValidationError):
            settlement.create_order(member.id, items)
    with pytest.raises(NotFoundError):
        settlement.create_order(9999, [{"supplementId": s.id, "quantity": 1}])
    Supplement.deactivate(s.id)
    with pytest.raises(NotFoundError):
        settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 1}])


def test_purchase_supplement(seed):
    member = seed.member()
    s = seed.supplement(price=25, stock=4)
    result = settlement.purchase_supplement(member.user_id, s.id, 2, "pi_777")

    assert result["total_amount"] == 50
    assert result["supplement"] == {"id": s.id, "name": s.name, "quantity": 2}
    order = SupplementOrder.get_by_id(result["order_id"])
    assert order.order_status == "completed"
    assert order.payment_id == result["payment_id"]
    payment = Payment.get_by_id(result["payment_id"])
    assert payment.payment_type == "supplement"
    assert payment.transaction_id == "pi_777"
    assert _stock(s.id) == 2


def test_purchase_supplement_requires_member_profile(seed, count):
    admin = seed.user("admin")
    s = seed.supplement(stock=4)
    with pytest.raises(NotFoundError):
        settlement.purchase_supplement(admin.id, s.id, 1)
    assert _stock(s.id) == 4
    assert count("payments") == 0


def test_process_membership_payment(seed, count, app_ctx):
    member = seed.member()
    seed.active_membership(member.id)
    plan_id = seed.plan_id("Yearly VIP")

    result = settlement.process_payment(member.id, 8999, "membership", "cash",
                                        description="VIP", membership_plan_id=plan_id)

    assert result["warnings"] == []
    assert os.path.exists(result["invoice_path"])
    assert Payment.get_by_id(result["payment_id"]).invoice_path == result["invoice_path"]
    active = Membership.find_valid_active(member.id, datetime.now().date().isoformat())
    assert active.membership_plan_id == plan_id
    assert count("member_memberships", "member_id = ? AND status = 'active'", (member.id,)) == 1


def test_process_supplement_payment_completes_order(seed):
    member = seed.member()
    s = seed.supplement(price=10, stock=5)
    order = settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 1}])
    result = settlement.process_payment(member.id, 10, "supplement", "card",
                                        supplement_order_id=order["order_id"])
    reloaded = SupplementOrder.get_by_id(order["order_id"])
    assert reloaded.order_status == "completed"
    assert reloaded.payment_id == result["payment_id"]

    other = seed.member()
    with pytest.raises(NotFoundError):
        settlement.process_payment(other.id, 10, "supplement", "card",
                                   supplement_order_id=order["order_id"])


def test_process_payment_validation(seed, count):
    member = seed.member()
    with pytest.raises(ValidationError):
        settlement.process_payment(member.id, 10, "gift")
    with pytest.raises(ValidationError):
        settlement.process_payment(member.id, -5, "membership")
    with pytest.raises(ValidationError):
        settlement.process_payment(member.id, "ten", "membership")
    with pytest.raises(NotFoundError):
        settlement.process_payment(9999, 10, "membership")
    assert count("payments") == 0


def test_invoice_failure_keeps_payment(seed):
    member = seed.member()
    with patch("gymdesk.services.settlement.generate_invoice_pdf", side_effect=OSError("disk full")):
        result = settlement.process_payment(member.id, 10, "training_session", "cash")
    assert "Invoice could not be generated" in result["warnings"]
    assert result["invoice_path"] is None
    assert Payment.get_by_id(result["payment_id"]).payment_status == "completed"


def test_email_failure_keeps_payment(seed):
    member = seed.member()
    with patch("gymdesk.services.settlement.send_payment_confirmation", return_value=False):
        result = settlement.process_payment(member.id, 10, "training_session", "cash")
    assert result["warnings"] == ["Confirmation email could not be sent"]
    assert Payment.get_by_id(result["payment_id"]) is not None


def test_confirm_payment_requires_transaction(seed):
    member = seed.member()
    with pytest.raises(ValidationError):
        settlement.confirm_payment(member.id, 10, "membership")
    result = settlement.confirm_payment(member.id, 10, "training_session", transaction_id="pi_1")
    assert Payment.get_by_id(result["payment_id"]).payment_method == "stripe"


def test_refund_cash_payment(seed):
    member = seed.member()
    pid = settlement.process_payment(member.id, 10, "training_session", "cash")["payment_id"]
    assert settlement.refund_payment(pid) is True
    assert Payment.get_by_id(pid).payment_status == "refunded"
    with pytest.raises(ConflictError):
        settlement.refund_payment(pid)
    with pytest.raises(NotFoundError):
        settlement.refund_payment(9999)


def test_refund_stripe_payment_uses_gateway(seed):
    member = seed.member()
    pid = settlement.process_payment(member.id, 10, "training_session", "stripe", "pi_9")["payment_id"]

    with patch("gymdesk.utils.payment_gateway.refund", return_value="re_1") as refund:
        settlement.refund_payment(pid)
    refund.assert_called_once_with("pi_9")

    pid2 = settlement.process_payment(member.id, 10, "training_session", "stripe", "pi_10")["payment_id"]
    with pytest.raises(IntegrationError):
        settlement.refund_payment(pid2)
    assert Payment.get_by_id(pid2).payment_status == "completed"


def test_payment_reminders_for_old_pending(seed, app_ctx):
    member = seed.member()
    old = Payment.create(member.id, 30, "membership", "cash", "INV-OLD", status="pending")
    Payment.create(member.id, 30, "membership", "cash", "INV-NEW", status="pending")
    created = (datetime.now() - timedelta(days=5)).strftime("%Y-%m-%d %H:%M:%S")
    execute_update("UPDATE payments SET created_at = ? WHERE id = ?", (created, old), current_db_path())

    with patch("gymdesk.services.settlement.send_payment_reminder", return_value=True) as send:
        assert settlement.send_payment_reminders() == 1
    expected_due = (datetime.strptime(created, "%Y-%m-%d %H:%M:%S") + timedelta(days=7)).date().isoformat()
    assert send.call_args[0][3] == expected_due


def test_order_cannot_be_paid_twice(seed, count):
    member = seed.member()
    s = seed.supplement(price=10, stock=5)
    order = settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 1}])
    first = settlement.process_payment(member.id, 10, "supplement", "card",
                                       supplement_order_id=order["order_id"])

    with pytest.raises(ConflictError):
        settlement.process_payment(member.id, 10, "supplement", "card",
                                   supplement_order_id=order["order_id"])
    assert count("payments") == 1
    assert SupplementOrder.get_by_id(order["order_id"]).payment_id == first["payment_id"]


def test_cancelled_order_cannot_be_paid(seed, count):
    member = seed.member()
    s = seed.supplement(price=10, stock=5)
    order = settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 1}])
    execute_update("UPDATE supplement_orders SET order_status = 'cancelled' WHERE id = ?",
                   (order["order_id"],), current_db_path())

    with pytest.raises(ConflictError):
        settlement.process_payment(member.id, 10, "supplement", "card",
                                   supplement_order_id=order["order_id"])
    assert count("payments") == 0


def test_amount_must_match_plan_price_or_order_total(seed, count):
    member = seed.member()
    plan_id = seed.plan_id("Yearly VIP")
    s = seed.supplement(price=10, stock=5)
    order = settlement.create_order(member.id, [{"supplementId": s.id, "quantity": 2}])

    with pytest.raises(ValidationError):
        settlement.process_payment(member.id, 1, "membership", "cash", membership_plan_id=plan_id)
    with pytest.raises(ValidationError):
        settlement.process_payment(member.id, 5, "supplement", "cash",
                                   supplement_order_id=order["order_id"])
    assert count("payments") == 0
    assert count("member_memberships") == 0
    assert SupplementOrder.get_by_id(order["order_id"]).order_status == "pending"


def test_inactive_plan_cannot_be_paid_for(seed, count):
    member = seed.member()
    plan_id = seed.plan_id("Monthly Basic")
    MembershipPlan.deactivate(plan_id)

    with pytest.raises(NotFoundError):
        settlement.process_payment(member.id, 999, "membership", "cash", membership_plan_id=plan_id)
    assert count("payments") == 0
