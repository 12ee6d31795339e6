from flask import Blueprint, request

from gymdesk.services import attendance_gate
from gymdesk.utils.decorators import admin_required, login_required, role_required, scoped_member_id
from gymdesk.utils.errors import ValidationError
from gymdesk.utils.helpers import paginate, success_response

attendance_bp = Blueprint('attendance', __name__)


@attendance_bp.route('/check-in', methods=['POST'])
@role_required('member', 'admin')
def check_in():
    data = request.get_json(silent=True) or {}
    member_id = scoped_member_id(data.get('memberId'))
    result = attendance_gate.check_in(member_id, data.get('method') or 'manual')
    return success_response({
        'attendanceId': result['attendance_id'],
        'checkInTime': result['check_in_time'],
        'memberName': result['member_name'],
    }, f"Welcome {result['first_name']}! Check-in successful.", 201)


@attendance_bp.route('/check-out', methods=['POST'])
@role_required('member', 'admin')
def check_out():
    data = request.get_json(silent=True) or {}
    member_id = scoped_member_id(data.get('memberId'))
    result = attendance_gate.check_out(member_id)
    return success_response({
        'attendanceId': result['attendance_id'],
        'checkInTime': result['check_in_time'],
        'checkOutTime': result['check_out_time'],
        'memberName': result['member_name'],
    }, f"Goodbye {result['first_name']}! Check-out successful.")


@attendance_bp.route('/qr-check-in', methods=['POST'])
def qr_check_in():
    data = request.get_json(silent=True) or {}
    payload = data.get('qrData')
    if not payload:
        raise ValidationError('qrData is required')
    result = attendance_gate.qr_check_in(payload)
    return success_response({
        'attendanceId': result['attendance_id'],
        'checkInTime': result['check_in_time'],
        'memberName': result['member_name'],
    }, f"Welcome {result['first_name']}! Check-in successful.", 201)


@attendance_bp.route('/qr-code/<int:member_id>', methods=['GET'])
@login_required
def qr_code(member_id):
    member_id = scoped_member_id(member_id)
    result = attendance_gate.get_member_qr_code(member_id)
    return success_response({
        'qrCodePath': result['qr_code_path'],
        'qrCodeDataUrl': result['qr_code_data_url'],
        'qrData': result['qr_data'],
    })


@attendance_bp.route('', methods=['GET'])
@admin_required
def list_attendance():
    limit, offset = paginate(request.args.get('page', 1), request.args.get('limit', 50))
    rows = attendance_gate.list_attendance(
        member_id=request.args.get('memberId', type=int),
        date_from=request.args.get('dateFrom'),
        date_to=request.args.get('dateTo'),
        limit=limit, offset=offset
    )
    return success_response([r.to_dict() for r in rows])


@attendance_bp.route('/today', methods=['GET'])
@admin_required
def today():
    return success_response(attendance_gate.todays_attendance())


@attendance_bp.route('/stats/<int:member_id>', methods=['GET'])
@login_required
def stats(member_id):
    member_id = scoped_member_id(member_id)
    return success_response(attendance_gate.member_attendance_stats(member_id))
