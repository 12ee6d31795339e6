from .database import execute_query, execute_update, current_db_path

PAYMENT_TYPES = ('membership', 'supplement', 'training_session')
PAYMENT_METHODS = ('stripe', 'paypal', 'cash', 'card')
PAYMENT_STATUSES = ('pending', 'completed', 'failed', 'refunded')

_SELECT = '''
    SELECT p.*, m.first_name, m.last_name, m.user_id, u.email
    FROM payments p
    JOIN members m ON p.member_id = m.id
    JOIN users u ON m.user_id = u.id
'''


class Payment:
    def __init__(self, id=None, member_id=None, amount=None, payment_type=None,
                 payment_method=None, payment_status='pending', transaction_id=None,
                 invoice_number=None, invoice_path=None, description=None,
                 payment_date=None, created_at=None, member_name=None, email=None,
                 user_id=None):
        self.id = id
        self.member_id = member_id
        self.amount = amount
        self.payment_type = payment_type
        self.payment_method = payment_method
        self.payment_status = payment_status
        self.transaction_id = transaction_id
        self.invoice_number = invoice_number
        self.invoice_path = invoice_path
        self.description = description
        self.payment_date = payment_date
        self.created_at = created_at
        # joined
        self.member_name = member_name
        self.email = email
        self.user_id = user_id

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        keys = row.keys()
        return cls(
            id=row['id'], member_id=row['member_id'], amount=row['amount'],
            payment_type=row['payment_type'], payment_method=row['payment_method'],
            payment_status=row['payment_status'], transaction_id=row['transaction_id'],
            invoice_number=row['invoice_number'], invoice_path=row['invoice_path'],
            description=row['description'], payment_date=row['payment_date'],
            created_at=row['created_at'],
            member_name=f"{row['first_name']} {row['last_name']}" if 'first_name' in keys else None,
            email=row['email'] if 'email' in keys else None,
            user_id=row['user_id'] if 'user_id' in keys else None
        )

    @classmethod
    def get_by_id(cls, payment_id, conn=None):
        rows = execute_query(_SELECT + ' WHERE p.id = ?', (payment_id,), cls._db_path(),
                             fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def search(cls, member_id=None, status=None, payment_type=None, limit=None, offset=0):
        query = _SELECT + ' WHERE 1=1'
        params = []
        if member_id:
            query += ' AND p.member_id = ?'
            params.append(member_id)
        if status:
            query += ' AND p.payment_status = ?'
            params.append(status)
        if payment_type:
            query += ' AND p.payment_type = ?'
            params.append(payment_type)
        query += ' ORDER BY p.payment_date DESC, p.id DESC'
        if limit:
            query += ' LIMIT ? OFFSET ?'
            params.extend([int(limit), int(offset)])
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_pending_older_than(cls, cutoff):
        rows = execute_query(
            _SELECT + " WHERE p.payment_status = 'pending' AND p.created_at < ? ORDER BY p.created_at",
            (cutoff,), cls._db_path(), fetch=True
        )
        return [cls._from_row(r) for r in rows]

    @classmethod
    def revenue_between(cls, date_from, date_to):
        """(total revenue, completed transaction count) for payments dated in the range."""
        rows = execute_query(
            '''SELECT COALESCE(SUM(amount), 0) AS revenue, COUNT(*) AS transactions
               FROM payments
               WHERE payment_status = 'completed' AND DATE(payment_date) BETWEEN ? AND ?''',
            (str(date_from), str(date_to)), cls._db_path(), fetch=True
        )
        return float(rows[0]['revenue'] or 0), rows[0]['transactions'] or 0

    @classmethod
    def create(cls, member_id, amount, payment_type, payment_method, invoice_number,
               status='completed', transaction_id=None, description=None, conn=None):
        return execute_query(
            '''INSERT INTO payments (member_id, amount, payment_type, payment_method, payment_status,
                   transaction_id, invoice_number, description)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
            (member_id, amount, payment_type, payment_method, status, transaction_id,
             invoice_number, description),
            cls._db_path(), conn=conn
        )

    @classmethod
    def set_invoice_path(cls, payment_id, invoice_path):
        return execute_update('UPDATE payments SET invoice_path = ? WHERE id = ?',
                              (invoice_path, payment_id), cls._db_path()) > 0

    @classmethod
    def mark_refunded(cls, payment_id):
        """completed -> refunded; False when the payment was not completed."""
        return execute_update(
            "UPDATE payments SET payment_status = 'refunded' WHERE id = ? AND payment_status = 'completed'",
            (payment_id,), cls._db_path()
        ) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'amount': self.amount,
            'paymentType': self.payment_type,
            'paymentMethod': self.payment_method,
            'paymentStatus': self.payment_status,
            'transactionId': self.transaction_id,
            'invoiceNumber': self.invoice_number,
            'invoicePath': self.invoice_path,
            'description': self.description,
            'paymentDate': self.payment_date,
        }
