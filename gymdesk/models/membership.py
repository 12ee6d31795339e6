from .database import execute_query, execute_update, current_db_path, update_columns

STATUSES = ('active', 'expired', 'cancelled')

_SELECT = '''
    SELECT mm.*, mp.name AS plan_name, mp.price AS plan_price, mp.duration_months,
           m.first_name, m.last_name, u.email
    FROM member_memberships mm
    JOIN membership_plans mp ON mm.membership_plan_id = mp.id
    JOIN members m ON mm.member_id = m.id
    JOIN users u ON m.user_id = u.id
'''


class Membership:
    """A member's subscription to a plan (member_memberships row)."""

    FIELD_MAP = {
        'startDate': 'start_date',
        'endDate': 'end_date',
        'status': 'status',
        'membershipPlanId': 'membership_plan_id',
        'autoRenewal': 'auto_renewal',
    }

    def __init__(self, id=None, member_id=None, membership_plan_id=None, start_date=None,
                 end_date=None, status='active', auto_renewal=False, created_at=None,
                 updated_at=None, plan_name=None, plan_price=None, duration_months=None,
                 member_name=None, email=None):
        self.id = id
        self.member_id = member_id
        self.membership_plan_id = membership_plan_id
        self.start_date = start_date
        self.end_date = end_date
        self.status = status
        self.auto_renewal = auto_renewal
        self.created_at = created_at
        self.updated_at = updated_at
        # joined
        self.plan_name = plan_name
        self.plan_price = plan_price
        self.duration_months = duration_months
        self.member_name = member_name
        self.email = email

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        keys = row.keys()
        member_name = None
        if 'first_name' in keys:
            member_name = f"{row['first_name']} {row['last_name']}"
        return cls(
            id=row['id'], member_id=row['member_id'], membership_plan_id=row['membership_plan_id'],
            start_date=row['start_date'], end_date=row['end_date'], status=row['status'],
            auto_renewal=bool(row['auto_renewal']), created_at=row['created_at'],
            updated_at=row['updated_at'],
            plan_name=row['plan_name'] if 'plan_name' in keys else None,
            plan_price=row['plan_price'] if 'plan_price' in keys else None,
            duration_months=row['duration_months'] if 'duration_months' in keys else None,
            member_name=member_name,
            email=row['email'] if 'email' in keys else None
        )

    # -------------------- Fetchers --------------------

    @classmethod
    def get_by_id(cls, membership_id, conn=None):
        rows = execute_query(_SELECT + ' WHERE mm.id = ?', (membership_id,),
                             cls._db_path(), fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_all(cls, status=None, limit=None, offset=0):
        query = _SELECT + ' WHERE 1=1'
        params = []
        if status:
            query += ' AND mm.status = ?'
            params.append(status)
        query += ' ORDER BY mm.created_at DESC, mm.id DESC'
        if limit:
            query += ' LIMIT ? OFFSET ?'
            params.extend([int(limit), int(offset)])
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_by_member(cls, member_id):
        rows = execute_query(_SELECT + ' WHERE mm.member_id = ? ORDER BY mm.start_date DESC, mm.id DESC',
                             (member_id,), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def find_valid_active(cls, member_id, on_date, conn=None):
        """Active membership covering on_date (end_date >= on_date), newest first."""
        rows = execute_query(
            _SELECT + ''' WHERE mm.member_id = ? AND mm.status = 'active' AND mm.end_date >= ?
                          ORDER BY mm.end_date DESC LIMIT 1''',
            (member_id, on_date), cls._db_path(), fetch=True, conn=conn
        )
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def get_expiring(cls, from_date, to_date):
        """Active rows whose end_date falls inside [from_date, to_date]."""
        rows = execute_query(
            _SELECT + ''' WHERE mm.status = 'active' AND mm.end_date BETWEEN ? AND ?
                          ORDER BY mm.end_date ASC''',
            (from_date, to_date), cls._db_path(), fetch=True
        )
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_ending_on(cls, end_date):
        rows = execute_query(_SELECT + " WHERE mm.status = 'active' AND mm.end_date = ?",
                             (end_date,), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_auto_renew_candidates(cls, expired_on):
        rows = execute_query(
            _SELECT + " WHERE mm.status = 'expired' AND mm.auto_renewal = 1 AND mm.end_date = ?",
            (expired_on,), cls._db_path(), fetch=True
        )
        return [cls._from_row(r) for r in rows]

    # -------------------- Writes --------------------

    @classmethod
    def deactivate_active(cls, member_id, conn, exclude_id=None):
        """Mark every active row of the member expired; returns the row count."""
        query = "UPDATE member_memberships SET status = 'expired', updated_at = CURRENT_TIMESTAMP " \
                "WHERE member_id = ? AND status = 'active'"
        params = [member_id]
        if exclude_id is not None:
            query += ' AND id != ?'
            params.append(exclude_id)
        return execute_update(query, tuple(params), cls._db_path(), conn=conn)

    @classmethod
    def create(cls, member_id, plan_id, start_date, end_date, status='active',
               auto_renewal=False, conn=None):
        return execute_query(
            '''INSERT INTO member_memberships
                   (member_id, membership_plan_id, start_date, end_date, status, auto_renewal)
               VALUES (?, ?, ?, ?, ?, ?)''',
            (member_id, plan_id, str(start_date), str(end_date), status, int(bool(auto_renewal))),
            cls._db_path(), conn=conn
        )

    @classmethod
    def update_fields(cls, membership_id, values, conn=None):
        return update_columns('member_memberships', membership_id, values, cls._db_path(), conn=conn)

    @classmethod
    def expire_past_due(cls, today):
        """Bulk active -> expired for rows that ended before today."""
        return execute_update(
            '''UPDATE member_memberships SET status = 'expired', updated_at = CURRENT_TIMESTAMP
               WHERE status = 'active' AND end_date < ?''',
            (today,), cls._db_path()
        )

    @classmethod
    def delete(cls, membership_id):
        return execute_update('DELETE FROM member_memberships WHERE id = ?',
                              (membership_id,), cls._db_path()) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'membershipPlanId': self.membership_plan_id,
            'planName': self.plan_name,
            'planPrice': self.plan_price,
            'startDate': self.start_date,
            'endDate': self.end_date,
            'status': self.status,
            'autoRenewal': self.auto_renewal,
        }
