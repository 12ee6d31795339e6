from flask import Blueprint, request

from gymdesk.models.member import Member
from gymdesk.services import accounts
from gymdesk.utils.decorators import admin_required, login_required, scoped_member_id
from gymdesk.utils.errors import NotFoundError
from gymdesk.utils.helpers import paginate, success_response

members_bp = Blueprint('members', __name__)


@members_bp.route('', methods=['GET'])
@admin_required
def list_members():
    limit, offset = paginate(request.args.get('page', 1), request.args.get('limit', 20))
    members = Member.get_all(search=request.args.get('search'), limit=limit, offset=offset)
    return success_response({
        'members': [m.to_dict() for m in members],
        'total': Member.count(),
    })


@members_bp.route('/<int:member_id>', methods=['GET'])
@login_required
def get_member(member_id):
    member = Member.get_by_id(scoped_member_id(member_id))
    if not member:
        raise NotFoundError('Member not found')
    return success_response(member.to_dict())


@members_bp.route('', methods=['POST'])
@admin_required
def create_member():
    member, warnings = accounts.register_member(request.get_json(silent=True) or {})
    body = member.to_dict()
    body['warnings'] = warnings
    return success_response(body, 'Member registered successfully', 201)


@members_bp.route('/<int:member_id>', methods=['PUT'])
@login_required
def update_member(member_id):
    member_id = scoped_member_id(member_id)
    if not Member.get_by_id(member_id):
        raise NotFoundError('Member not found')
    Member.update(member_id, request.get_json(silent=True) or {})
    return success_response(Member.get_by_id(member_id).to_dict(), 'Member updated successfully')


@members_bp.route('/<int:member_id>', methods=['DELETE'])
@admin_required
def delete_member(member_id):
    if not Member.delete(member_id):
        raise NotFoundError('Member not found')
    return success_response(message='Member deleted successfully')
