from .database import execute_query, execute_update, current_db_path, map_fields, update_columns
from gymdesk.utils.errors import ValidationError


class Supplement:
    FIELD_MAP = {
        'name': 'name',
        'category': 'category',
        'description': 'description',
        'price': 'price',
        'stockQuantity': 'stock_quantity',
        'isActive': 'is_active',
    }

    def __init__(self, id=None, name=None, category=None, description=None, price=None,
                 stock_quantity=0, is_active=True, created_at=None, updated_at=None):
        self.id = id
        self.name = name
        self.category = category
        self.description = description
        self.price = float(price) if price is not None else None
        self.stock_quantity = int(stock_quantity or 0)
        self.is_active = bool(is_active)
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        return cls(
            id=row['id'], name=row['name'], category=row['category'],
            description=row['description'], price=row['price'],
            stock_quantity=row['stock_quantity'], is_active=row['is_active'],
            created_at=row['created_at'], updated_at=row['updated_at']
        )

    def validate(self):
        if not self.name or not str(self.name).strip():
            raise ValidationError('name is required')
        if self.price is None or self.price < 0:
            raise ValidationError('price must be a non-negative number')
        if self.stock_quantity < 0:
            raise ValidationError('stockQuantity must not be negative')

    @classmethod
    def get_by_id(cls, supplement_id, conn=None):
        rows = execute_query('SELECT * FROM supplements WHERE id = ?', (supplement_id,),
                             cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_all(cls, category=None, include_inactive=False):
        query = 'SELECT * FROM supplements WHERE 1=1'
        params = []
        if not include_inactive:
            query += ' AND is_active = 1'
        if category:
            query += ' AND category = ?'
            params.append(category)
        query += ' ORDER BY name'
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    def save(self):
        self.validate()
        if self.id:
            update_columns('supplements', self.id, {
                'name': self.name, 'category': self.category, 'description': self.description,
                'price': self.price, 'stock_quantity': self.stock_quantity,
                'is_active': int(self.is_active),
            }, self._db_path())
        else:
            self.id = execute_query(
                '''INSERT INTO supplements (name, category, description, price, stock_quantity, is_active)
                   VALUES (?, ?, ?, ?, ?, ?)''',
                (self.name, self.category, self.description, self.price,
                 self.stock_quantity, int(self.is_active)),
                self._db_path()
            )
        return self.id

    @classmethod
    def update(cls, supplement_id, fields):
        values = map_fields(fields, cls.FIELD_MAP)
        if 'is_active' in values:
            values['is_active'] = int(bool(values['is_active']))
        if 'stock_quantity' in values and int(values['stock_quantity']) < 0:
            raise ValidationError('stockQuantity must not be negative')
        return update_columns('supplements', supplement_id, values, cls._db_path())

    @classmethod
    def decrement_stock(cls, supplement_id, quantity, conn):
        """Guarded decrement; returns False when stock would go negative."""
        return execute_update(
            '''UPDATE supplements SET stock_quantity = stock_quantity - ?, updated_at = CURRENT_TIMESTAMP
               WHERE id = ? AND stock_quantity >= ?''',
            (quantity, supplement_id, quantity), cls._db_path(), conn=conn
        ) > 0

    @classmethod
    def deactivate(cls, supplement_id):
        """Soft delete; order items keep their FK."""
        return execute_update(
            'UPDATE supplements SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            (supplement_id,), cls._db_path()
        ) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'price': self.price,
            'stockQuantity': self.stock_quantity,
            'isActive': self.is_active,
        }
