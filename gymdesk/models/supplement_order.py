from .database import execute_query, execute_update, current_db_path

ORDER_STATUSES = ('pending', 'processing', 'completed', 'cancelled')


class SupplementOrder:
    """Order header plus its line items; item prices are snapshots taken at order time."""

    def __init__(self, id=None, member_id=None, total_amount=None, order_status='pending',
                 payment_id=None, order_date=None, items=None):
        self.id = id
        self.member_id = member_id
        self.total_amount = total_amount
        self.order_status = order_status
        self.payment_id = payment_id
        self.order_date = order_date
        self.items = items or []

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        return cls(
            id=row['id'], member_id=row['member_id'], total_amount=row['total_amount'],
            order_status=row['order_status'], payment_id=row['payment_id'],
            order_date=row['order_date']
        )

    @classmethod
    def _load_items(cls, order_id, conn=None):
        rows = execute_query(
            '''SELECT oi.*, s.name AS supplement_name
               FROM supplement_order_items oi
               JOIN supplements s ON oi.supplement_id = s.id
               WHERE oi.order_id = ? ORDER BY oi.id''',
            (order_id,), cls._db_path(), fetch=True, conn=conn
        )
        return [{
            'id': r['id'],
            'supplementId': r['supplement_id'],
            'supplementName': r['supplement_name'],
            'quantity': r['quantity'],
            'price': r['price'],
        } for r in rows]

    @classmethod
    def get_by_id(cls, order_id, conn=None):
        rows = execute_query('SELECT * FROM supplement_orders WHERE id = ?', (order_id,),
                             cls._db_path(), fetch=True, conn=conn)
        order = cls._from_row(rows[0]) if rows else None
        if order:
            order.items = cls._load_items(order.id, conn=conn)
        return order

    @classmethod
    def get_by_member(cls, member_id):
        rows = execute_query(
            'SELECT * FROM supplement_orders WHERE member_id = ? ORDER BY order_date DESC, id DESC',
            (member_id,), cls._db_path(), fetch=True
        )
        orders = [cls._from_row(r) for r in rows]
        for order in orders:
            order.items = cls._load_items(order.id)
        return orders

    @classmethod
    def create(cls, member_id, total_amount, status='pending', payment_id=None, conn=None):
        return execute_query(
            '''INSERT INTO supplement_orders (member_id, total_amount, order_status, payment_id)
               VALUES (?, ?, ?, ?)''',
            (member_id, total_amount, status, payment_id), cls._db_path(), conn=conn
        )

    @classmethod
    def add_item(cls, order_id, supplement_id, quantity, price, conn=None):
        return execute_query(
            '''INSERT INTO supplement_order_items (order_id, supplement_id, quantity, price)
               VALUES (?, ?, ?, ?)''',
            (order_id, supplement_id, quantity, price), cls._db_path(), conn=conn
        )

    @classmethod
    def mark_completed(cls, order_id, payment_id, conn=None):
        return execute_update(
            "UPDATE supplement_orders SET order_status = 'completed', payment_id = ? WHERE id = ?",
            (payment_id, order_id), cls._db_path(), conn=conn
        ) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'memberId': self.member_id,
            'totalAmount': self.total_amount,
            'orderStatus': self.order_status,
            'paymentId': self.payment_id,
            'orderDate': self.order_date,
            'items': self.items,
        }
