import secrets

from flask import current_app

from gymdesk.models.database import transaction
from gymdesk.models.member import Member
from gymdesk.models.trainer import Trainer
from gymdesk.models.user import User
from gymdesk.utils.email_utils import send_welcome_email
from gymdesk.utils.errors import ConflictError, NotFoundError, ValidationError
from gymdesk.utils.helpers import validate_email


def _new_user(data, role, conn):
    email = (data.get('email') or '').strip().lower()
    if not validate_email(email):
        raise ValidationError('A valid email is required')
    if not data.get('firstName') or not data.get('lastName'):
        raise ValidationError('firstName and lastName are required')
    if User.get_by_email(email, conn=conn):
        raise ConflictError('Email already registered')
    password = data.get('password') or secrets.token_urlsafe(8)
    user = User(email=email, password_hash=User.hash_password(password), role=role)
    user.save(conn=conn)
    return user, password


def _welcome(email, full_name, password, provided):
    warnings = []
    if not provided and not send_welcome_email(email, full_name, password):
        current_app.logger.warning("Welcome email to %s failed", email)
        warnings.append('Welcome email could not be sent')
    return warnings


def register_member(data):
    """Create a member user and profile together; returns (Member, warnings)."""
    with transaction() as conn:
        user, password = _new_user(data, 'member', conn)
        member = Member(
            user_id=user.id, first_name=data['firstName'], last_name=data['lastName'],
            phone=data.get('phone'), address=data.get('address'),
            date_of_birth=data.get('dateOfBirth'), gender=data.get('gender'),
            height=data.get('height'), weight=data.get('weight')
        )
        member.save(conn=conn)
    warnings = _welcome(user.email, member.full_name, password, bool(data.get('password')))
    return Member.get_by_id(member.id), warnings


def register_trainer(data):
    with transaction() as conn:
        user, password = _new_user(data, 'trainer', conn)
        trainer = Trainer(
            user_id=user.id, first_name=data['firstName'], last_name=data['lastName'],
            phone=data.get('phone'), specialization=data.get('specialization'),
            hourly_rate=data.get('hourlyRate'),
            is_available=data.get('isAvailable', True)
        )
        trainer.save(conn=conn)
    warnings = _welcome(user.email, trainer.full_name, password, bool(data.get('password')))
    return Trainer.get_by_id(trainer.id), warnings


def toggle_user_status(user_id, acting_user_id=None):
    """Flip users.is_active; returns the new value. Admins cannot deactivate themselves."""
    with transaction() as conn:
        user = User.get_by_id(user_id, conn=conn)
        if not user:
            raise NotFoundError('User not found')
        if user.id == acting_user_id:
            raise ConflictError('You cannot change the status of your own account')
        new_status = not user.is_active
        User.set_active(user.id, new_status, conn=conn)
    current_app.logger.info("User %s %s", user.id, 'activated' if new_status else 'deactivated')
    return new_status
