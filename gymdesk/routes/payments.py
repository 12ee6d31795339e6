from flask import Blueprint, request, session

from gymdesk.models.payment import Payment
from gymdesk.services import settlement
from gymdesk.utils.decorators import admin_required, login_required, scoped_member_id
from gymdesk.utils.helpers import paginate, success_response

payments_bp = Blueprint('payments', __name__)


def _payment_args(data, member_id, default_method):
    return dict(
        member_id=member_id,
        amount=data.get('amount'),
        payment_type=data.get('paymentType'),
        payment_method=data.get('paymentMethod') or default_method,
        transaction_id=data.get('transactionId'),
        description=data.get('description'),
        membership_plan_id=data.get('membershipPlanId'),
        supplement_order_id=data.get('supplementOrderId'),
    )


def _result_body(result):
    return {
        'paymentId': result['payment_id'],
        'invoiceNumber': result['invoice_number'],
        'invoicePath': result['invoice_path'],
        'warnings': result['warnings'],
    }


@payments_bp.route('/process', methods=['POST'])
@admin_required
def process():
    data = request.get_json(silent=True) or {}
    result = settlement.process_payment(**_payment_args(data, data.get('memberId'), 'cash'))
    return success_response(_result_body(result), 'Payment processed successfully', 201)


@payments_bp.route('/confirm', methods=['POST'])
@login_required
def confirm():
    data = request.get_json(silent=True) or {}
    member_id = scoped_member_id(data.get('memberId'))
    result = settlement.confirm_payment(**_payment_args(data, member_id, 'stripe'))
    return success_response(_result_body(result), 'Payment confirmed successfully', 201)


@payments_bp.route('/<int:payment_id>/refund', methods=['POST'])
@admin_required
def refund(payment_id):
    settlement.refund_payment(payment_id)
    return success_response(message='Payment refunded successfully')


@payments_bp.route('', methods=['GET'])
@login_required
def list_payments():
    limit, offset = paginate(request.args.get('page', 1), request.args.get('limit', 20))
    member_id = request.args.get('memberId', type=int)
    if session.get('role') != 'admin':
        member_id = scoped_member_id(member_id)
    payments = Payment.search(
        member_id=member_id,
        status=request.args.get('status'),
        payment_type=request.args.get('paymentType'),
        limit=limit, offset=offset
    )
    return success_response([p.to_dict() for p in payments])


@payments_bp.route('/<int:payment_id>', methods=['GET'])
@login_required
def get_payment(payment_id):
    payment = settlement.get_payment(payment_id)
    if session.get('role') != 'admin':
        scoped_member_id(payment.member_id)
    return success_response(payment.to_dict())
