from flask import Blueprint, request, session

from gymdesk.models.supplement import Supplement
from gymdesk.models.supplement_order import SupplementOrder
from gymdesk.services import settlement
from gymdesk.utils.decorators import admin_required, login_required, role_required, scoped_member_id
from gymdesk.utils.errors import NotFoundError
from gymdesk.utils.helpers import success_response

supplements_bp = Blueprint('supplements', __name__)


@supplements_bp.route('', methods=['GET'])
def list_supplements():
    supplements = Supplement.get_all(category=request.args.get('category'))
    return success_response([s.to_dict() for s in supplements])


@supplements_bp.route('/<int:supplement_id>', methods=['GET'])
def get_supplement(supplement_id):
    supplement = Supplement.get_by_id(supplement_id)
    if not supplement or (not supplement.is_active and session.get('role') != 'admin'):
        raise NotFoundError('Supplement not found')
    return success_response(supplement.to_dict())


@supplements_bp.route('', methods=['POST'])
@admin_required
def create():
    data = request.get_json(silent=True) or {}
    supplement = Supplement(
        name=data.get('name'),
        category=data.get('category'),
        description=data.get('description'),
        price=data.get('price'),
        stock_quantity=data.get('stockQuantity', 0),
        is_active=data.get('isActive', True),
    )
    supplement.save()
    return success_response(supplement.to_dict(), 'Supplement created', 201)


@supplements_bp.route('/<int:supplement_id>', methods=['PUT'])
@admin_required
def update(supplement_id):
    if not Supplement.get_by_id(supplement_id):
        raise NotFoundError('Supplement not found')
    Supplement.update(supplement_id, request.get_json(silent=True) or {})
    return success_response(Supplement.get_by_id(supplement_id).to_dict(), 'Supplement updated')


@supplements_bp.route('/<int:supplement_id>', methods=['DELETE'])
@admin_required
def delete(supplement_id):
    if not Supplement.deactivate(supplement_id):
        raise NotFoundError('Supplement not found')
    return success_response(message='Supplement deleted')


@supplements_bp.route('/orders', methods=['POST'])
@role_required('member', 'admin')
def create_order():
    data = request.get_json(silent=True) or {}
    member_id = scoped_member_id(data.get('memberId'))
    result = settlement.create_order(member_id, data.get('items'))
    return success_response({'orderId': result['order_id'], 'totalAmount': result['total_amount']},
                            'Order created successfully', 201)


@supplements_bp.route('/orders/member/<int:member_id>', methods=['GET'])
@login_required
def member_orders(member_id):
    member_id = scoped_member_id(member_id)
    return success_response([o.to_dict() for o in SupplementOrder.get_by_member(member_id)])


@supplements_bp.route('/purchase', methods=['POST'])
@role_required('member')
def purchase():
    data = request.get_json(silent=True) or {}
    result = settlement.purchase_supplement(
        session['user_id'], data.get('supplementId'), data.get('quantity', 1),
        data.get('paymentIntentId') or data.get('transactionId'),
        data.get('paymentMethod') or 'stripe'
    )
    return success_response({
        'orderId': result['order_id'],
        'paymentId': result['payment_id'],
        'totalAmount': result['total_amount'],
        'supplement': result['supplement'],
    }, 'Purchase successful', 201)
