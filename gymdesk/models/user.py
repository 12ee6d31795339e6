from flask import current_app
from flask_bcrypt import Bcrypt

from .database import execute_query, execute_update, current_db_path

ROLES = ('admin', 'trainer', 'member')


class User:
    def __init__(self, id=None, email=None, password_hash=None, role=None,
                 is_active=True, created_at=None, updated_at=None):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.role = role
        self.is_active = is_active
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _get_bcrypt(cls):
        """Return the app's Bcrypt instance, or a fresh one bound to current_app."""
        return getattr(current_app, 'bcrypt', None) or Bcrypt(current_app)

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        return cls(
            id=row['id'], email=row['email'], password_hash=row['password_hash'],
            role=row['role'], is_active=bool(row['is_active']),
            created_at=row['created_at'], updated_at=row['updated_at']
        )

    @classmethod
    def hash_password(cls, password):
        hashed = cls._get_bcrypt().generate_password_hash(password)
        if isinstance(hashed, bytes):
            hashed = hashed.decode('utf-8')
        return hashed

    @classmethod
    def authenticate(cls, email, password):
        """Authenticate an active user by email and password using bcrypt."""
        rows = execute_query(
            'SELECT * FROM users WHERE email = ? AND is_active = 1',
            (email,), cls._db_path(), fetch=True
        )
        if not rows:
            return None
        user = cls._from_row(rows[0])
        try:
            if user.password_hash and cls._get_bcrypt().check_password_hash(user.password_hash, password):
                return user
        except ValueError:
            # stored hash in an unexpected format
            current_app.logger.warning("Unreadable password hash for user %s", user.id)
        return None

    @classmethod
    def get_by_id(cls, user_id, conn=None):
        rows = execute_query('SELECT * FROM users WHERE id = ?', (user_id,), cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_by_email(cls, email, conn=None):
        rows = execute_query('SELECT * FROM users WHERE email = ?', (email,), cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def set_active(cls, user_id, is_active, conn=None):
        return execute_update(
            'UPDATE users SET is_active = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            (int(bool(is_active)), user_id), cls._db_path(), conn=conn
        ) > 0

    def save(self, conn=None):
        """Insert or update the user. password_hash must already be hashed."""
        if self.id:
            execute_query(
                '''UPDATE users SET email = ?, password_hash = ?, role = ?, is_active = ?,
                   updated_at = CURRENT_TIMESTAMP WHERE id = ?''',
                (self.email, self.password_hash, self.role, int(bool(self.is_active)), self.id),
                self._db_path(), conn=conn
            )
        else:
            self.id = execute_query(
                'INSERT INTO users (email, password_hash, role, is_active) VALUES (?, ?, ?, ?)',
                (self.email, self.password_hash, self.role, int(bool(self.is_active))),
                self._db_path(), conn=conn
            )
        return self.id

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'isActive': self.is_active,
            'createdAt': self.created_at,
        }
