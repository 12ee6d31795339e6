from .database import (execute_query, execute_update, current_db_path,
                       map_fields, update_columns)

_SELECT = '''
    SELECT t.*, u.email
    FROM trainers t
    JOIN users u ON t.user_id = u.id
'''


class Trainer:
    FIELD_MAP = {
        'firstName': 'first_name',
        'lastName': 'last_name',
        'phone': 'phone',
        'specialization': 'specialization',
        'hourlyRate': 'hourly_rate',
        'isAvailable': 'is_available',
        'rating': 'rating',
    }

    def __init__(self, id=None, user_id=None, first_name=None, last_name=None, phone=None,
                 specialization=None, hourly_rate=None, is_available=True, rating=0,
                 created_at=None, updated_at=None, email=None):
        self.id = id
        self.user_id = user_id
        self.first_name = first_name
        self.last_name = last_name
        self.phone = phone
        self.specialization = specialization
        self.hourly_rate = hourly_rate
        self.is_available = is_available
        self.rating = rating
        self.created_at = created_at
        self.updated_at = updated_at
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
        return cls(
            id=row['id'], user_id=row['user_id'], first_name=row['first_name'],
            last_name=row['last_name'], phone=row['phone'], specialization=row['specialization'],
            hourly_rate=row['hourly_rate'], is_available=bool(row['is_available']),
            rating=row['rating'], created_at=row['created_at'], updated_at=row['updated_at'],
            email=row['email'] if 'email' in row.keys() else None
        )

    @classmethod
    def get_by_id(cls, trainer_id, conn=None):
        rows = execute_query(_SELECT + ' WHERE t.id = ?', (trainer_id,), cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_available_by_id(cls, trainer_id, conn=None):
        """Trainer that exists and currently accepts bookings, else None."""
        rows = execute_query(_SELECT + ' WHERE t.id = ? AND t.is_available = 1',
                             (trainer_id,), cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_by_user_id(cls, user_id):
        rows = execute_query(_SELECT + ' WHERE t.user_id = ?', (user_id,), cls._db_path(), fetch=True)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_all(cls, available_only=False):
        query = _SELECT
        if available_only:
            query += ' WHERE t.is_available = 1'
        query += ' ORDER BY t.rating DESC, t.id'
        rows = execute_query(query, (), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    def save(self, conn=None):
        if self.id:
            update_columns('trainers', self.id, {
                'first_name': self.first_name, 'last_name': self.last_name,
                'phone': self.phone, 'specialization': self.specialization,
                'hourly_rate': self.hourly_rate, 'is_available': int(bool(self.is_available)),
                'rating': self.rating,
            }, self._db_path(), conn=conn)
        else:
            self.id = execute_query(
                '''INSERT INTO trainers (user_id, first_name, last_name, phone, specialization,
                       hourly_rate, is_available, rating)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
                (self.user_id, self.first_name, self.last_name, self.phone, self.specialization,
                 self.hourly_rate, int(bool(self.is_available)), self.rating or 0),
                self._db_path(), conn=conn
            )
        return self.id

    @classmethod
    def update(cls, trainer_id, fields):
        values = map_fields(fields, cls.FIELD_MAP)
        if 'is_available' in values:
            values['is_available'] = int(bool(values['is_available']))
        return update_columns('trainers', trainer_id, values, cls._db_path())

    @classmethod
    def delete(cls, trainer_id):
        trainer = cls.get_by_id(trainer_id)
        if not trainer:
            return False
        return execute_update('DELETE FROM users WHERE id = ?', (trainer.user_id,), cls._db_path()) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'specialization': self.specialization,
            'hourlyRate': self.hourly_rate,
            'isAvailable': self.is_available,
            'rating': self.rating,
        }
