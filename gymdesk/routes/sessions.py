from flask import Blueprint, request, session

from gymdesk.services import booking
from gymdesk.utils.decorators import admin_required, login_required, role_required, scoped_member_id
from gymdesk.utils.errors import AuthError
from gymdesk.utils.helpers import paginate, success_response

sessions_bp = Blueprint('sessions', __name__)


def _guard_owner(training_session):
    """Members may only touch their own sessions, trainers only theirs."""
    role = session.get('role')
    if role == 'member' and training_session.member_id != session.get('member_id'):
        raise AuthError('Access denied', status_code=403)
    if role == 'trainer' and training_session.trainer_id != session.get('trainer_id'):
        raise AuthError('Access denied', status_code=403)


@sessions_bp.route('', methods=['GET'])
@login_required
def list_sessions():
    limit, offset = paginate(request.args.get('page', 1), request.args.get('limit', 20))
    member_id = request.args.get('memberId', type=int)
    trainer_id = request.args.get('trainerId', type=int)
    if session.get('role') == 'member':
        member_id = session.get('member_id')
    elif session.get('role') == 'trainer':
        trainer_id = session.get('trainer_id')
    sessions = booking.list_sessions(
        status=request.args.get('status'),
        trainer_id=trainer_id,
        member_id=member_id,
        date_from=request.args.get('dateFrom'),
        date_to=request.args.get('dateTo'),
        limit=limit, offset=offset
    )
    return success_response([s.to_dict() for s in sessions])


@sessions_bp.route('/<int:session_id>', methods=['GET'])
@login_required
def get_session(session_id):
    training_session = booking.get_session(session_id)
    _guard_owner(training_session)
    return success_response(training_session.to_dict())


@sessions_bp.route('', methods=['POST'])
@role_required('member', 'admin')
def book():
    data = request.get_json(silent=True) or {}
    member_id = scoped_member_id(data.get('memberId'))
    result = booking.book_session(
        data.get('trainerId'), member_id, data.get('sessionDate'),
        data.get('startTime'), data.get('endTime'),
        data.get('sessionType'), data.get('notes')
    )
    return success_response({'sessionId': result['session_id'], 'warnings': result['warnings']},
                            'Session booked successfully', 201)


@sessions_bp.route('/<int:session_id>', methods=['PUT'])
@login_required
def update(session_id):
    _guard_owner(booking.get_session(session_id))
    data = request.get_json(silent=True) or {}
    booking.update_session(session_id, data)
    return success_response(booking.get_session(session_id).to_dict(), 'Session updated successfully')


@sessions_bp.route('/<int:session_id>/cancel', methods=['PUT'])
@login_required
def cancel(session_id):
    _guard_owner(booking.get_session(session_id))
    booking.cancel_session(session_id)
    return success_response(message='Session cancelled successfully')


@sessions_bp.route('/<int:session_id>/complete', methods=['PUT'])
@role_required('trainer', 'admin')
def complete(session_id):
    _guard_owner(booking.get_session(session_id))
    data = request.get_json(silent=True) or {}
    booking.complete_session(session_id, data.get('notes'))
    return success_response(message='Session marked as completed')


@sessions_bp.route('/<int:session_id>', methods=['DELETE'])
@admin_required
def delete(session_id):
    booking.delete_session(session_id)
    return success_response(message='Session deleted successfully')
