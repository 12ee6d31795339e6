from flask import Blueprint, session

from gymdesk.services import accounts
from gymdesk.utils.decorators import admin_required
from gymdesk.utils.helpers import success_response

users_bp = Blueprint('users', __name__)


@users_bp.route('/<int:user_id>/toggle-status', methods=['PUT'])
@admin_required
def toggle_status(user_id):
    is_active = accounts.toggle_user_status(user_id, session.get('user_id'))
    return success_response({'isActive': is_active},
                            f"User {'activated' if is_active else 'deactivated'} successfully")
