from flask import Blueprint, request, session

from gymdesk.models.trainer import Trainer
from gymdesk.services import accounts, booking
from gymdesk.utils.decorators import admin_required, login_required
from gymdesk.utils.errors import AuthError, NotFoundError
from gymdesk.utils.helpers import parse_bool, success_response

trainers_bp = Blueprint('trainers', __name__)


@trainers_bp.route('', methods=['GET'])
@login_required
def list_trainers():
    trainers = Trainer.get_all(available_only=parse_bool(request.args.get('available')))
    return success_response([t.to_dict() for t in trainers])


@trainers_bp.route('/<int:trainer_id>', methods=['GET'])
@login_required
def get_trainer(trainer_id):
    trainer = Trainer.get_by_id(trainer_id)
    if not trainer:
        raise NotFoundError('Trainer not found')
    return success_response(trainer.to_dict())


@trainers_bp.route('', methods=['POST'])
@admin_required
def create_trainer():
    trainer, warnings = accounts.register_trainer(request.get_json(silent=True) or {})
    body = trainer.to_dict()
    body['warnings'] = warnings
    return success_response(body, 'Trainer registered successfully', 201)


@trainers_bp.route('/<int:trainer_id>', methods=['PUT'])
@login_required
def update_trainer(trainer_id):
    role = session.get('role')
    if role != 'admin' and not (role == 'trainer' and session.get('trainer_id') == trainer_id):
        raise AuthError('Access denied', status_code=403)
    if not Trainer.get_by_id(trainer_id):
        raise NotFoundError('Trainer not found')
    Trainer.update(trainer_id, request.get_json(silent=True) or {})
    return success_response(Trainer.get_by_id(trainer_id).to_dict(), 'Trainer updated successfully')


@trainers_bp.route('/<int:trainer_id>', methods=['DELETE'])
@admin_required
def delete_trainer(trainer_id):
    if not Trainer.delete(trainer_id):
        raise NotFoundError('Trainer not found')
    return success_response(message='Trainer deleted successfully')


@trainers_bp.route('/<int:trainer_id>/schedule', methods=['GET'])
@login_required
def trainer_schedule(trainer_id):
    if session.get('role') == 'trainer' and session.get('trainer_id') != trainer_id:
        raise AuthError('Access denied', status_code=403)
    sessions = booking.get_trainer_schedule(trainer_id, request.args.get('startDate'),
                                            request.args.get('endDate'))
    return success_response([s.to_dict() for s in sessions])
