from flask import Blueprint, request

from gymdesk.services import reports
from gymdesk.utils.decorators import admin_required
from gymdesk.utils.helpers import success_response

reports_bp = Blueprint('reports', __name__)


def _range():
    return request.args.get('startDate'), request.args.get('endDate')


@reports_bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    return success_response(reports.dashboard_stats())


@reports_bp.route('/membership', methods=['GET'])
@admin_required
def membership():
    return success_response(reports.membership_report())


@reports_bp.route('/payments', methods=['GET'])
@admin_required
def payments():
    date_from, date_to = _range()
    return success_response(reports.payment_report(date_from, date_to, request.args.get('paymentType')))


@reports_bp.route('/attendance', methods=['GET'])
@admin_required
def attendance():
    return success_response(reports.attendance_report(*_range()))


@reports_bp.route('/trainers', methods=['GET'])
@admin_required
def trainers():
    return success_response(reports.trainer_report(*_range()))


@reports_bp.route('/supplements', methods=['GET'])
@admin_required
def supplements():
    return success_response(reports.supplement_report(*_range()))


@reports_bp.route('/revenue', methods=['GET'])
@admin_required
def revenue():
    date_from, date_to = _range()
    return success_response(reports.revenue_report(request.args.get('period', 'month'), date_from, date_to))
