"""Supplement orders, payments and refunds.

Orders are all-or-nothing: validation, the order header, its items and the
stock decrements commit together. Post-commit side effects (invoice PDF,
confirmation email) only ever produce warnings.
"""
from collections import OrderedDict
from datetime import date, datetime, timedelta

from flask import current_app

from gymdesk.models.database import transaction
from gymdesk.models.member import Member
from gymdesk.models.membership import Membership
from gymdesk.models.membership_plan import MembershipPlan
from gymdesk.models.payment import Payment, PAYMENT_TYPES
from gymdesk.models.supplement import Supplement
from gymdesk.models.supplement_order import SupplementOrder
from gymdesk.utils import payment_gateway
from gymdesk.utils.email_utils import send_payment_confirmation, send_payment_reminder
from gymdesk.utils.errors import (ConflictError, InsufficientStockError,
                                  NotFoundError, ValidationError)
from gymdesk.utils.helpers import calculate_expiry_date, generate_invoice_number, parse_id
from gymdesk.utils.invoice_utils import generate_invoice_pdf

PAYMENT_REMINDER_AFTER_DAYS = 3
PAYMENT_DUE_DAYS = 7
PAYABLE_ORDER_STATUSES = ('pending', 'processing')


def _check_amount(amount, expected, label):
    if round(float(expected), 2) != amount:
        raise ValidationError(f'amount must equal the {label} ({float(expected):.2f})')


def _parse_quantity(value):
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError('quantity must be a positive integer')
    if quantity <= 0:
        raise ValidationError('quantity must be a positive integer')
    return quantity


def _merge_items(items):
    """[{supplementId, quantity}, ...] -> OrderedDict(supplement_id -> total quantity)."""
    if not items or not isinstance(items, (list, tuple)):
        raise ValidationError('Order must contain at least one item')
    merged = OrderedDict()
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError('Each item needs supplementId and quantity')
        supplement_id = parse_id(item.get('supplementId', item.get('supplement_id')), 'supplementId')
        merged[supplement_id] = merged.get(supplement_id, 0) + _parse_quantity(item.get('quantity'))
    return merged


def _place_order(conn, member_id, lines, status):
    """Validate stock, insert order and items, decrement stock. Returns (order_id, total, supplements)."""
    priced = []
    for supplement_id, quantity in lines.items():
        supplement = Supplement.get_by_id(supplement_id, conn=conn)
        if not supplement or not supplement.is_active:
            raise NotFoundError(f'Supplement {supplement_id} not found')
        if supplement.stock_quantity < quantity:
            raise InsufficientStockError(
                f'Insufficient stock for {supplement.name}. Available: {supplement.stock_quantity}'
            )
        priced.append((supplement, quantity))

    total = round(sum(s.price * q for s, q in priced), 2)
    order_id = SupplementOrder.create(member_id, total, status=status, conn=conn)
    for supplement, quantity in priced:
        SupplementOrder.add_item(order_id, supplement.id, quantity, supplement.price, conn=conn)
        if not Supplement.decrement_stock(supplement.id, quantity, conn):
            raise InsufficientStockError(f'Insufficient stock for {supplement.name}')
    return order_id, total, [s for s, _ in priced]


def create_order(member_id, items):
    """Create a pending supplement order; returns {'order_id', 'total_amount'}."""
    member_id = parse_id(member_id, 'memberId')
    lines = _merge_items(items)
    with transaction() as conn:
        if not Member.get_by_id(member_id, conn=conn):
            raise NotFoundError('Member not found')
        order_id, total, _ = _place_order(conn, member_id, lines, 'pending')
    return {'order_id': order_id, 'total_amount': total}


def purchase_supplement(user_id, supplement_id, quantity, external_payment_ref=None,
                        payment_method='stripe'):
    """Single-item purchase by a member; the order is completed immediately."""
    supplement_id = parse_id(supplement_id, 'supplementId')
    lines = OrderedDict([(supplement_id, _parse_quantity(quantity))])
    with transaction() as conn:
        member = Member.get_by_user_id(user_id, conn=conn)
        if not member:
            raise NotFoundError('Member profile not found')
        order_id, total, supplements = _place_order(conn, member.id, lines, 'completed')
        payment_id = Payment.create(member.id, total, 'supplement', payment_method,
                                    generate_invoice_number(), transaction_id=external_payment_ref,
                                    description=f'Supplement order #{order_id}', conn=conn)
        SupplementOrder.mark_completed(order_id, payment_id, conn=conn)

    supplement = supplements[0]
    return {
        'order_id': order_id,
        'payment_id': payment_id,
        'total_amount': total,
        'supplement': {'id': supplement.id, 'name': supplement.name, 'quantity': lines[supplement_id]},
    }


def _after_payment(payment_id):
    """Invoice PDF and confirmation email; returns (invoice_path, warnings)."""
    warnings = []
    invoice_path = None
    payment = Payment.get_by_id(payment_id)
    try:
        invoice_path = generate_invoice_pdf(payment, current_app.config['INVOICE_DIR'],
                                            current_app.config.get('GYM_NAME', 'GymDesk'))
        Payment.set_invoice_path(payment_id, invoice_path)
    except Exception:
        current_app.logger.exception("Invoice generation failed for payment %s", payment_id)
        warnings.append('Invoice could not be generated')

    if not send_payment_confirmation(payment.email, payment.member_name, payment.amount,
                                     payment.invoice_number, payment.description, invoice_path):
        current_app.logger.warning("Payment confirmation email failed for payment %s", payment_id)
        warnings.append('Confirmation email could not be sent')
    return invoice_path, warnings


def process_payment(member_id, amount, payment_type, payment_method='cash', transaction_id=None,
                    description=None, membership_plan_id=None, supplement_order_id=None):
    """Record a completed payment and apply it.

    A membership payment with a plan starts a new active membership today; a
    supplement payment with an order completes that order. Returns
    payment_id, invoice_number, invoice_path and warnings.
    """
    member_id = parse_id(member_id, 'memberId')
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"paymentType must be one of: {', '.join(PAYMENT_TYPES)}")
    try:
        amount = round(float(amount), 2)
    except (TypeError, ValueError):
        raise ValidationError('amount must be a number')
    if amount <= 0:
        raise ValidationError('amount must be greater than zero')

    invoice_number = generate_invoice_number()
    today = date.today()
    with transaction() as conn:
        if not Member.get_by_id(member_id, conn=conn):
            raise NotFoundError('Member not found')

        plan = order = None
        if payment_type == 'membership' and membership_plan_id:
            plan = MembershipPlan.get_by_id(parse_id(membership_plan_id, 'membershipPlanId'), conn=conn)
            if not plan or not plan.is_active:
                raise NotFoundError('Membership plan not found')
            _check_amount(amount, plan.price, 'plan price')
        if payment_type == 'supplement' and supplement_order_id:
            order = SupplementOrder.get_by_id(parse_id(supplement_order_id, 'supplementOrderId'), conn=conn)
            if not order or order.member_id != member_id:
                raise NotFoundError('Supplement order not found')
            if order.order_status not in PAYABLE_ORDER_STATUSES:
                raise ConflictError(f'Cannot pay for a {order.order_status} order')
            _check_amount(amount, order.total_amount, 'order total')

        payment_id = Payment.create(member_id, amount, payment_type, payment_method, invoice_number,
                                    transaction_id=transaction_id, description=description, conn=conn)
        if plan:
            Membership.deactivate_active(member_id, conn)
            Membership.create(member_id, plan.id, today.isoformat(),
                              calculate_expiry_date(today, plan.duration_months).isoformat(), conn=conn)
        if order:
            SupplementOrder.mark_completed(order.id, payment_id, conn=conn)

    invoice_path, warnings = _after_payment(payment_id)
    return {'payment_id': payment_id, 'invoice_number': invoice_number,
            'invoice_path': invoice_path, 'warnings': warnings}


def confirm_payment(member_id, amount, payment_type, payment_method='stripe', transaction_id=None,
                    description=None, membership_plan_id=None, supplement_order_id=None):
    """Confirmation of a gateway-side payment; a transaction id is required."""
    if not transaction_id:
        raise ValidationError('transactionId is required')
    return process_payment(member_id, amount, payment_type, payment_method, transaction_id,
                           description, membership_plan_id, supplement_order_id)


def refund_payment(payment_id):
    payment = Payment.get_by_id(payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    if payment.payment_status == 'refunded':
        raise ConflictError('Payment already refunded')
    if payment.payment_status != 'completed':
        raise ConflictError(f'Cannot refund a {payment.payment_status} payment')

    if payment.payment_method in payment_gateway.GATEWAY_METHODS and payment.transaction_id:
        payment_gateway.refund(payment.transaction_id)

    if not Payment.mark_refunded(payment.id):
        raise ConflictError('Payment status changed during refund')
    current_app.logger.info("Payment %s refunded", payment.id)
    return True


def get_payment(payment_id):
    payment = Payment.get_by_id(payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    return payment


def send_payment_reminders(now=None):
    """Remind members about payments pending for more than three days."""
    now = now or datetime.now()
    cutoff = (now - timedelta(days=PAYMENT_REMINDER_AFTER_DAYS)).strftime('%Y-%m-%d %H:%M:%S')
    sent = 0
    for p in Payment.get_pending_older_than(cutoff):
        try:
            created = datetime.strptime(str(p.created_at)[:19], '%Y-%m-%d %H:%M:%S')
        except ValueError:
            created = now
        due_date = (created + timedelta(days=PAYMENT_DUE_DAYS)).date().isoformat()
        if send_payment_reminder(p.email, p.member_name, p.amount, due_date):
            sent += 1
    current_app.logger.info("Sent %d payment reminders", sent)
    return sent
