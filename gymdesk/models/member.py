from .database import (execute_query, execute_update, current_db_path,
                       map_fields, update_columns)
from gymdesk.utils.helpers import calculate_bmi, get_bmi_category

_SELECT = '''
    SELECT m.*, u.email, u.is_active AS user_active
    FROM members m
    JOIN users u ON m.user_id = u.id
'''


class Member:
    """
    Member profile, 1:1 with a users row of role 'member'.

    email is joined from users; bmi is derived from height (cm) and weight (kg)
    whenever either changes.
    """

    FIELD_MAP = {
        'firstName': 'first_name',
        'lastName': 'last_name',
        'phone': 'phone',
        'address': 'address',
        'dateOfBirth': 'date_of_birth',
        'gender': 'gender',
        'height': 'height',
        'weight': 'weight',
    }

    def __init__(self, id=None, user_id=None, first_name=None, last_name=None, phone=None,
                 address=None, date_of_birth=None, gender=None, height=None, weight=None,
                 bmi=None, qr_code=None, created_at=None, updated_at=None, email=None):
        self.id = id
        self.user_id = user_id
        self.first_name = first_name
        self.last_name = last_name
        self.phone = phone
        self.address = address
        self.date_of_birth = date_of_birth
        self.gender = gender
        self.height = height
        self.weight = weight
        self.bmi = bmi
        self.qr_code = qr_code
        self.created_at = created_at
        self.updated_at = updated_at
        # joined from users
        self.email = email

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        keys = row.keys()
        return cls(
            id=row['id'], user_id=row['user_id'], first_name=row['first_name'],
            last_name=row['last_name'], phone=row['phone'], address=row['address'],
            date_of_birth=row['date_of_birth'], gender=row['gender'], height=row['height'],
            weight=row['weight'], bmi=row['bmi'], qr_code=row['qr_code'],
            created_at=row['created_at'], updated_at=row['updated_at'],
            email=row['email'] if 'email' in keys else None
        )

    # -------------------- Fetchers --------------------

    @classmethod
    def get_by_id(cls, member_id, conn=None):
        rows = execute_query(_SELECT + ' WHERE m.id = ?', (member_id,), cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_by_user_id(cls, user_id, conn=None):
        """Fetch the member profile for a given users.id."""
        rows = execute_query(_SELECT + ' WHERE m.user_id = ?', (user_id,), cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_all(cls, search=None, limit=None, offset=0):
        query = _SELECT + ' WHERE 1=1'
        params = []
        if search:
            query += ' AND (m.first_name LIKE ? OR m.last_name LIKE ? OR u.email LIKE ?)'
            like = f"%{search}%"
            params.extend([like, like, like])
        query += ' ORDER BY m.created_at DESC, m.id DESC'
        if limit:
            query += ' LIMIT ? OFFSET ?'
            params.extend([int(limit), int(offset)])
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def count(cls):
        rows = execute_query('SELECT COUNT(*) FROM members', (), cls._db_path(), fetch=True)
        return rows[0][0] if rows else 0

    # -------------------- Writes --------------------

    def save(self, conn=None):
        self.bmi = calculate_bmi(self.weight, self.height)
        if self.id:
            update_columns('members', self.id, {
                'first_name': self.first_name, 'last_name': self.last_name,
                'phone': self.phone, 'address': self.address,
                'date_of_birth': self.date_of_birth, 'gender': self.gender,
                'height': self.height, 'weight': self.weight, 'bmi': self.bmi,
                'qr_code': self.qr_code,
            }, self._db_path(), conn=conn)
        else:
            self.id = execute_query(
                '''INSERT INTO members (user_id, first_name, last_name, phone, address,
                       date_of_birth, gender, height, weight, bmi, qr_code)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                (self.user_id, self.first_name, self.last_name, self.phone, self.address,
                 self.date_of_birth, self.gender, self.height, self.weight, self.bmi, self.qr_code),
                self._db_path(), conn=conn
            )
        return self.id

    @classmethod
    def update(cls, member_id, fields):
        """Partial update; recomputes bmi when height or weight is touched."""
        values = map_fields(fields, cls.FIELD_MAP)
        if not values:
            return False
        if 'height' in values or 'weight' in values:
            current = cls.get_by_id(member_id)
            if not current:
                return False
            values['bmi'] = calculate_bmi(values.get('weight', current.weight),
                                          values.get('height', current.height))
        return update_columns('members', member_id, values, cls._db_path())

    @classmethod
    def set_qr_code(cls, member_id, qr_code):
        return update_columns('members', member_id, {'qr_code': qr_code}, cls._db_path())

    @classmethod
    def delete(cls, member_id):
        """Delete the profile through its user row so the cascade removes everything."""
        member = cls.get_by_id(member_id)
        if not member:
            return False
        return execute_update('DELETE FROM users WHERE id = ?', (member.user_id,), cls._db_path()) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'dateOfBirth': self.date_of_birth,
            'gender': self.gender,
            'height': self.height,
            'weight': self.weight,
            'bmi': self.bmi,
            'bmiCategory': get_bmi_category(self.bmi) if self.bmi is not None else None,
            'qrCode': self.qr_code,
            'createdAt': self.created_at,
        }
