from functools import wraps

from flask import session

from gymdesk.models.member import Member
from gymdesk.utils.errors import AuthError, NotFoundError, ValidationError
from gymdesk.utils.helpers import error_response, parse_id


def login_required(f):
    """Decorator to require login for API routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return error_response('Authentication required', 401)
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require admin role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return error_response('Authentication required', 401)
        if session.get('role') != 'admin':
            return error_response('Access denied. Admin privileges required.', 403)
        return f(*args, **kwargs)
    return decorated_function


def role_required(*allowed_roles):
    """Decorator to require specific roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if 'user_id' not in session:
                return error_response('Authentication required', 401)
            if session.get('role') not in allowed_roles:
                return error_response(f'Access denied. Required roles: {", ".join(allowed_roles)}', 403)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def scoped_member_id(requested_id=None):
    """Member id a request may act on.

    Members always act on their own profile; staff must name the member.
    """
    if session.get('role') == 'member':
        member = Member.get_by_user_id(session['user_id'])
        if not member:
            raise NotFoundError('Member profile not found')
        if requested_id not in (None, '') and parse_id(requested_id, 'memberId') != member.id:
            raise AuthError('Access denied', status_code=403)
        return member.id
    if requested_id in (None, ''):
        raise ValidationError('memberId is required')
    return parse_id(requested_id, 'memberId')
