"""Error taxonomy shared by the services and the JSON error handlers."""


class GymDeskError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, status_code=None, payload=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        body = {'success': False, 'message': self.message}
        if self.payload:
            body['data'] = self.payload
        return body


class ValidationError(GymDeskError):
    status_code = 400
    default_message = 'Invalid request data'


class NotFoundError(GymDeskError):
    status_code = 404
    default_message = 'Resource not found'


class ConflictError(GymDeskError):
    status_code = 409
    default_message = 'Request conflicts with the current state'


class AlreadyCheckedInError(ConflictError):
    default_message = 'You are already checked in. Please check out first.'


class InsufficientStockError(GymDeskError):
    status_code = 400
    default_message = 'Insufficient stock'


class MembershipInvalidError(GymDeskError):
    status_code = 400
    default_message = 'No active membership found. Please renew your membership.'


class AuthError(GymDeskError):
    status_code = 401
    default_message = 'Authentication required'


class IntegrationError(GymDeskError):
    status_code = 502
    default_message = 'External service failure'


class InternalError(GymDeskError):
    pass
