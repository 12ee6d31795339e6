from flask import Blueprint, request, session, current_app

from gymdesk.models.member import Member
from gymdesk.models.trainer import Trainer
from gymdesk.models.user import User
from gymdesk.utils.decorators import login_required
from gymdesk.utils.errors import AuthError, NotFoundError, ValidationError
from gymdesk.utils.helpers import success_response

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError('Email and password are required')

    user = User.authenticate(email, password)
    if not user:
        current_app.logger.warning("Failed login for %s", email)
        raise AuthError('Invalid email or password')

    session.clear()
    session['user_id'] = user.id
    session['role'] = user.role
    profile = None
    if user.role == 'member':
        profile = Member.get_by_user_id(user.id)
        if profile:
            session['member_id'] = profile.id
    elif user.role == 'trainer':
        profile = Trainer.get_by_user_id(user.id)
        if profile:
            session['trainer_id'] = profile.id

    return success_response({
        'user': user.to_dict(),
        'profile': profile.to_dict() if profile else None,
    }, 'Login successful')


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return success_response(message='Logged out')


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    user = User.get_by_id(session['user_id'])
    if not user:
        session.clear()
        raise NotFoundError('User not found')
    profile = None
    if user.role == 'member':
        profile = Member.get_by_user_id(user.id)
    elif user.role == 'trainer':
        profile = Trainer.get_by_user_id(user.id)
    return success_response({
        'user': user.to_dict(),
        'profile': profile.to_dict() if profile else None,
    })
