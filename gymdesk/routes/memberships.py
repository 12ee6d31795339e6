from flask import Blueprint, request, session

from gymdesk.models.membership import Membership
from gymdesk.models.membership_plan import MembershipPlan
from gymdesk.services import membership_lifecycle
from gymdesk.utils.decorators import admin_required, login_required, role_required, scoped_member_id
from gymdesk.utils.errors import NotFoundError
from gymdesk.utils.helpers import paginate, parse_bool, success_response

memberships_bp = Blueprint('memberships', __name__)


# -------------------- Plans --------------------

@memberships_bp.route('/plans', methods=['GET'])
def list_plans():
    include_inactive = parse_bool(request.args.get('includeInactive')) and session.get('role') == 'admin'
    plans = MembershipPlan.get_all(include_inactive=include_inactive)
    return success_response([p.to_dict() for p in plans])


@memberships_bp.route('/plans', methods=['POST'])
@admin_required
def create_plan():
    data = request.get_json(silent=True) or {}
    plan = MembershipPlan(
        name=data.get('name'),
        description=data.get('description'),
        duration_months=data.get('durationMonths'),
        price=data.get('price'),
        features=data.get('features'),
        is_active=data.get('isActive', True),
    )
    plan.save()
    return success_response(plan.to_dict(), 'Membership plan created', 201)


@memberships_bp.route('/plans/<int:plan_id>', methods=['PUT'])
@admin_required
def update_plan(plan_id):
    if not MembershipPlan.get_by_id(plan_id):
        raise NotFoundError('Membership plan not found')
    MembershipPlan.update(plan_id, request.get_json(silent=True) or {})
    return success_response(MembershipPlan.get_by_id(plan_id).to_dict(), 'Membership plan updated')


@memberships_bp.route('/plans/<int:plan_id>', methods=['DELETE'])
@admin_required
def delete_plan(plan_id):
    if not MembershipPlan.deactivate(plan_id):
        raise NotFoundError('Membership plan not found')
    return success_response(message='Membership plan deactivated')


# -------------------- Memberships --------------------

@memberships_bp.route('', methods=['GET'])
@admin_required
def list_memberships():
    limit, offset = paginate(request.args.get('page', 1), request.args.get('limit', 20))
    memberships = Membership.get_all(status=request.args.get('status'), limit=limit, offset=offset)
    return success_response([m.to_dict() for m in memberships])


@memberships_bp.route('/check-expiry', methods=['GET'])
@admin_required
def check_expiry():
    days = request.args.get('days', 7, type=int)
    return success_response(membership_lifecycle.check_expiring_memberships(days))


@memberships_bp.route('/member/<int:member_id>', methods=['GET'])
@login_required
def member_memberships(member_id):
    member_id = scoped_member_id(member_id)
    return success_response([m.to_dict() for m in Membership.get_by_member(member_id)])


@memberships_bp.route('/<int:membership_id>', methods=['GET'])
@login_required
def get_membership(membership_id):
    membership = membership_lifecycle.get_membership(membership_id)
    scoped_member_id(membership.member_id)
    return success_response(membership.to_dict())


@memberships_bp.route('', methods=['POST'])
@admin_required
def assign():
    data = request.get_json(silent=True) or {}
    membership_id = membership_lifecycle.assign_membership(
        data.get('memberId'), data.get('membershipPlanId'),
        data.get('startDate'), data.get('endDate'),
        data.get('autoRenewal', False), data.get('status', 'active')
    )
    return success_response({'membershipId': membership_id}, 'Membership assigned successfully', 201)


@memberships_bp.route('/purchase', methods=['POST'])
@role_required('member', 'admin')
def purchase():
    data = request.get_json(silent=True) or {}
    member_id = scoped_member_id(data.get('memberId'))
    result = membership_lifecycle.purchase_membership(
        member_id, data.get('membershipPlanId'),
        data.get('paymentIntentId') or data.get('transactionId'),
        data.get('paymentMethod') or 'stripe',
        data.get('autoRenewal', False)
    )
    return success_response({
        'membershipId': result['membership_id'],
        'paymentId': result['payment_id'],
        'invoiceNumber': result['invoice_number'],
    }, 'Membership purchased successfully', 201)


@memberships_bp.route('/<int:membership_id>', methods=['PUT'])
@admin_required
def update(membership_id):
    membership_lifecycle.update_membership(membership_id, request.get_json(silent=True) or {})
    return success_response(membership_lifecycle.get_membership(membership_id).to_dict(),
                            'Membership updated successfully')


@memberships_bp.route('/<int:membership_id>', methods=['DELETE'])
@admin_required
def delete(membership_id):
    membership_lifecycle.delete_membership(membership_id)
    return success_response(message='Membership deleted successfully')
