from datetime import date, datetime, time as dtime
import random
import re
import time
from dateutil.relativedelta import relativedelta
from flask import jsonify

from gymdesk.utils.errors import ValidationError


def calculate_expiry_date(start_date, months=1):
    """Calculate membership expiry date (calendar months, clamped to month end)."""
    return start_date + relativedelta(months=int(months))


def parse_date(value, field='date'):
    """Return a date for a date object or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f'{field} is required')
    try:
        return datetime.strptime(str(value).strip()[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f'{field} must be a date in YYYY-MM-DD format')


def parse_time(value, field='time'):
    """Normalize '9:00', '09:00' or '09:00:00' into a 'HH:MM:SS' string.

    Stored times must share one format because overlap checks compare them as text.
    """
    if isinstance(value, dtime):
        return value.strftime('%H:%M:%S')
    if not value:
        raise ValidationError(f'{field} is required')
    s = str(value).strip()
    for fmt in ('%H:%M:%S', '%H:%M', '%I:%M %p'):
        try:
            return datetime.strptime(s, fmt).strftime('%H:%M:%S')
        except ValueError:
            continue
    raise ValidationError(f'{field} must be a time in HH:MM format')


def parse_id(value, field='id'):
    """Positive integer id from request data."""
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a positive integer')
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a positive integer')
    if parsed <= 0:
        raise ValidationError(f'{field} must be a positive integer')
    return parsed


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def now_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def generate_invoice_number(sequence=None, on_date=None):
    """INV-<YYYY><MM>-<sequence>.

    With a sequence (usually the new row id) the number is zero padded to five
    digits; without one a millisecond timestamp plus a random suffix is used.
    """
    on_date = on_date or date.today()
    prefix = f"INV-{on_date.year}{on_date.month:02d}"
    if sequence is not None:
        return f"{prefix}-{int(sequence):05d}"
    return f"{prefix}-{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def success_response(data=None, message='Success', status_code=200):
    body = {'success': True, 'message': message}
    if data is not None:
        body['data'] = data
    return jsonify(body), status_code


def error_response(message='Error occurred', status_code=500, error=None):
    body = {'success': False, 'message': message}
    if error:
        body['error'] = error
    return jsonify(body), status_code


def paginate(page=1, limit=10):
    try:
        page = max(int(page), 1)
        limit = max(int(limit), 1)
    except (TypeError, ValueError):
        raise ValidationError('page and limit must be integers')
    return limit, (page - 1) * limit


def validate_email(email):
    """Validate email format"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email or '') is not None


def calculate_bmi(weight_kg, height_cm):
    """Calculate BMI from weight and height"""
    if weight_kg is None or height_cm is None:
        return None
    weight_kg = float(weight_kg)
    height_cm = float(height_cm)
    if height_cm <= 0 or weight_kg <= 0:
        return None

    height_m = height_cm / 100
    bmi = weight_kg / (height_m ** 2)
    return round(bmi, 2)


def get_bmi_category(bmi):
    """Get BMI category based on BMI value.

    Categories (WHO-style):
      - < 18.5 : 'Underweight'
      - 18.5 - <25 : 'Normal weight'
      - 25 - <30 : 'Overweight'
      - >=30 : 'Obese'
    """
    if bmi is None:
        return "Unknown"

    try:
        bmi_val = float(bmi)
    except (TypeError, ValueError):
        return "Unknown"

    if bmi_val < 18.5:
        return "Underweight"
    elif bmi_val < 25:
        return "Normal weight"
    elif bmi_val < 30:
        return "Overweight"
    else:
        return "Obese"
