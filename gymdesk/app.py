import atexit
import logging
import os
import sqlite3

from flask import Flask, current_app
from flask_bcrypt import Bcrypt
from flask_mail import Mail
from werkzeug.exceptions import HTTPException

from gymdesk.models.database import init_db
from gymdesk.routes.attendance import attendance_bp
from gymdesk.routes.auth import auth_bp
from gymdesk.routes.members import members_bp
from gymdesk.routes.memberships import memberships_bp
from gymdesk.routes.payments import payments_bp
from gymdesk.routes.reports import reports_bp
from gymdesk.routes.sessions import sessions_bp
from gymdesk.routes.supplements import supplements_bp
from gymdesk.routes.trainers import trainers_bp
from gymdesk.routes.users import users_bp
from gymdesk.services.scheduler import GymScheduler
from gymdesk.utils.errors import GymDeskError, InternalError
from gymdesk.utils.helpers import error_response, parse_bool


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change-me-in-production')
    app.config['DATABASE_PATH'] = os.environ.get('DATABASE_PATH', 'gym_management.db')
    app.config['DEBUG'] = parse_bool(os.environ.get('DEBUG', 'false'))
    app.config['GYM_NAME'] = os.environ.get('GYM_NAME', 'GymDesk')

    # Mail configuration
    app.config['MAIL_SERVER'] = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    app.config['MAIL_PORT'] = int(os.environ.get('MAIL_PORT', '587'))
    app.config['MAIL_USE_TLS'] = parse_bool(os.environ.get('MAIL_USE_TLS', 'true'))
    app.config['MAIL_USERNAME'] = os.environ.get('MAIL_USERNAME')
    app.config['MAIL_PASSWORD'] = os.environ.get('MAIL_PASSWORD')
    app.config['MAIL_DEFAULT_SENDER'] = os.environ.get(
        'MAIL_DEFAULT_SENDER',
        'GymDesk <noreply@gymdesk.local>'
    )
    app.config['MAIL_SUPPRESS_SEND'] = parse_bool(os.environ.get('MAIL_SUPPRESS_SEND', 'false'))

    # Documents and integrations
    app.config['INVOICE_DIR'] = os.environ.get('INVOICE_DIR', os.path.join('uploads', 'invoices'))
    app.config['QR_CODE_DIR'] = os.environ.get('QR_CODE_DIR', os.path.join('uploads', 'qr'))
    app.config['STRIPE_SECRET_KEY'] = os.environ.get('STRIPE_SECRET_KEY', '')
    app.config['SCHEDULER_ENABLED'] = parse_bool(os.environ.get('SCHEDULER_ENABLED', 'true'))
    app.config['SCHEDULER_TIMEZONE'] = os.environ.get('SCHEDULER_TIMEZONE')

    app.config.setdefault('SESSION_COOKIE_SAMESITE', 'Lax')
    app.config.setdefault('SESSION_COOKIE_HTTPONLY', True)

    if test_config:
        app.config.update(test_config)

    app.mail = Mail(app)
    app.bcrypt = Bcrypt(app)

    app.logger.setLevel(logging.DEBUG if app.config['DEBUG'] else logging.INFO)

    # Seeding uses current_app / bcrypt
    with app.app_context():
        init_db(app.config['DATABASE_PATH'])

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')
    app.register_blueprint(memberships_bp, url_prefix='/api/memberships')
    app.register_blueprint(payments_bp, url_prefix='/api/payments')
    app.register_blueprint(supplements_bp, url_prefix='/api/supplements')
    app.register_blueprint(members_bp, url_prefix='/api/members')
    app.register_blueprint(trainers_bp, url_prefix='/api/trainers')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')

    register_error_handlers(app)

    @app.route('/api/health')
    def health():
        return {'success': True, 'message': 'OK'}

    if app.config['SCHEDULER_ENABLED'] and not app.config.get('TESTING'):
        scheduler = GymScheduler(app, timezone=app.config['SCHEDULER_TIMEZONE'])
        scheduler.start()
        app.scheduler = scheduler
        atexit.register(lambda: scheduler.shutdown())

    return app


def register_error_handlers(app):
    @app.errorhandler(GymDeskError)
    def handle_domain_error(error):
        return error.to_dict(), error.status_code

    @app.errorhandler(sqlite3.IntegrityError)
    def handle_integrity_error(error):
        text = str(error)
        if 'UNIQUE' in text:
            return error_response('Duplicate entry. This record already exists.', 400)
        if 'FOREIGN KEY' in text:
            return error_response('Referenced record does not exist.', 400)
        current_app.logger.warning("Integrity error: %s", text)
        return error_response('Request violates a data constraint.', 400)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Resource not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method not allowed', 405)

    @app.errorhandler(Exception)
    def internal_server_error(error):
        if isinstance(error, HTTPException):
            return error_response(error.description, error.code)
        current_app.logger.exception("Unhandled error: %s", error)
        wrapped = InternalError(payload={'detail': str(error)} if current_app.config.get('DEBUG') else None)
        return wrapped.to_dict(), wrapped.status_code


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=5000)
