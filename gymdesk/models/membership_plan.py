import json

from .database import execute_query, execute_update, current_db_path, map_fields, update_columns
from gymdesk.utils.errors import ValidationError


class MembershipPlan:
    """
    MembershipPlan model with validation and a single place for features handling.

    Fields:
      - id, name, description, duration_months (int), price (float),
        features (list of str), is_active (bool), created_at, updated_at
    """

    FIELD_MAP = {
        'name': 'name',
        'description': 'description',
        'durationMonths': 'duration_months',
        'price': 'price',
        'features': 'features',
        'isActive': 'is_active',
    }

    def __init__(self, id=None, name=None, description=None, duration_months=None,
                 price=None, features=None, is_active=True, created_at=None, updated_at=None):
        self.id = id
        self.name = name
        self.description = description
        self.duration_months = int(duration_months) if duration_months is not None else None
        self.price = float(price) if price is not None else None
        self.features = self.normalize_features(features)
        self.is_active = bool(int(is_active)) if isinstance(is_active, (str, int)) else bool(is_active)
        self.created_at = created_at
        self.updated_at = updated_at

    # ----------------- Helpers & Validation -----------------
    @staticmethod
    def normalize_features(features):
        """Return features as an ordered list of strings.

        Accepts a list, a JSON array string, a comma-separated string, or a
        mapping (its values are used, in insertion order).
        """
        if features is None:
            return []
        if isinstance(features, str):
            text = features.strip()
            if not text:
                return []
            try:
                parsed = json.loads(text)
            except ValueError:
                return [f.strip() for f in text.split(',') if f.strip()]
            if isinstance(parsed, str):
                return [f.strip() for f in parsed.split(',') if f.strip()]
            return MembershipPlan.normalize_features(parsed)
        if isinstance(features, dict):
            return [str(v).strip() for v in features.values() if v is not None and str(v).strip()]
        if isinstance(features, (list, tuple)):
            return [str(f).strip() for f in features if f is not None and str(f).strip()]
        return [str(features)]

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        return cls(
            id=row['id'], name=row['name'], description=row['description'],
            duration_months=row['duration_months'], price=row['price'],
            features=row['features'], is_active=row['is_active'],
            created_at=row['created_at'], updated_at=row['updated_at']
        )

    def validate(self):
        """Raise ValidationError on invalid data."""
        if not self.name or not str(self.name).strip():
            raise ValidationError("Plan name is required.")
        if self.duration_months is None or self.duration_months < 1:
            raise ValidationError("durationMonths must be an integer >= 1.")
        if self.price is None or self.price < 0:
            raise ValidationError("price is required and must be >= 0.")

    # ----------------- Fetchers -----------------
    @classmethod
    def get_by_id(cls, plan_id, conn=None):
        rows = execute_query('SELECT * FROM membership_plans WHERE id = ?', (plan_id,),
                             cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_all(cls, include_inactive=False):
        query = 'SELECT * FROM membership_plans'
        if not include_inactive:
            query += ' WHERE is_active = 1'
        query += ' ORDER BY price ASC'
        rows = execute_query(query, (), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    # ----------------- Writes -----------------
    def save(self):
        self.validate()
        features_json = json.dumps(self.features)
        if self.id:
            update_columns('membership_plans', self.id, {
                'name': self.name, 'description': self.description,
                'duration_months': self.duration_months, 'price': self.price,
                'features': features_json, 'is_active': int(self.is_active),
            }, self._db_path())
        else:
            self.id = execute_query(
                '''INSERT INTO membership_plans (name, description, duration_months, price, features, is_active)
                   VALUES (?, ?, ?, ?, ?, ?)''',
                (self.name, self.description, self.duration_months, self.price,
                 features_json, int(self.is_active)),
                self._db_path()
            )
        return self.id

    @classmethod
    def update(cls, plan_id, fields):
        values = map_fields(fields, cls.FIELD_MAP)
        if 'features' in values:
            values['features'] = json.dumps(cls.normalize_features(values['features']))
        if 'is_active' in values:
            values['is_active'] = int(bool(values['is_active']))
        if 'duration_months' in values:
            try:
                values['duration_months'] = int(values['duration_months'])
            except (TypeError, ValueError):
                raise ValidationError("durationMonths must be an integer >= 1.")
            if values['duration_months'] < 1:
                raise ValidationError("durationMonths must be an integer >= 1.")
        return update_columns('membership_plans', plan_id, values, cls._db_path())

    @classmethod
    def deactivate(cls, plan_id):
        """Soft delete; existing memberships keep referencing the plan."""
        return execute_update(
            'UPDATE membership_plans SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            (plan_id,), cls._db_path()
        ) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'durationMonths': self.duration_months,
            'price': self.price,
            'features': self.features,
            'isActive': self.is_active,
        }
