from .database import execute_query, execute_update, current_db_path

CHECK_IN_METHODS = ('qr', 'manual', 'card')

_SELECT = '''
    SELECT a.*, m.first_name, m.last_name
    FROM attendance a
    JOIN members m ON a.member_id = m.id
'''


class Attendance:
    def __init__(self, id=None, member_id=None, attendance_date=None, check_in_time=None,
                 check_out_time=None, check_in_method='manual', created_at=None,
                 member_name=None):
        self.id = id
        self.member_id = member_id
        self.attendance_date = attendance_date
        self.check_in_time = check_in_time
        self.check_out_time = check_out_time
        self.check_in_method = check_in_method
        self.created_at = created_at
        self.member_name = member_name

    @property
    def is_open(self):
        return self.check_out_time is None

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        keys = row.keys()
        return cls(
            id=row['id'], member_id=row['member_id'], attendance_date=row['attendance_date'],
            check_in_time=row['check_in_time'], check_out_time=row['check_out_time'],
            check_in_method=row['check_in_method'], created_at=row['created_at'],
            member_name=f"{row['first_name']} {row['last_name']}" if 'first_name' in keys else None
        )

    @classmethod
    def find_open(cls, member_id, on_date, conn=None):
        rows = execute_query(
            '''SELECT * FROM attendance
               WHERE member_id = ? AND attendance_date = ? AND check_out_time IS NULL
               ORDER BY check_in_time DESC LIMIT 1''',
            (member_id, str(on_date)), cls._db_path(), fetch=True, conn=conn
        )
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def create(cls, member_id, on_date, check_in_time, method='manual', conn=None):
        return execute_query(
            '''INSERT INTO attendance (member_id, attendance_date, check_in_time, check_in_method)
               VALUES (?, ?, ?, ?)''',
            (member_id, str(on_date), check_in_time, method), cls._db_path(), conn=conn
        )

    @classmethod
    def close(cls, attendance_id, check_out_time, conn=None):
        return execute_update(
            'UPDATE attendance SET check_out_time = ? WHERE id = ? AND check_out_time IS NULL',
            (check_out_time, attendance_id), cls._db_path(), conn=conn
        ) > 0

    # -------------------- Projections --------------------

    @classmethod
    def get_for_date(cls, on_date, open_only=False):
        query = _SELECT + ' WHERE a.attendance_date = ?'
        if open_only:
            query += ' AND a.check_out_time IS NULL'
        query += ' ORDER BY a.check_in_time DESC'
        rows = execute_query(query, (str(on_date),), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def search(cls, member_id=None, date_from=None, date_to=None, limit=None, offset=0):
        query = _SELECT + ' WHERE 1=1'
        params = []
        if member_id:
            query += ' AND a.member_id = ?'
            params.append(member_id)
        if date_from:
            query += ' AND a.attendance_date >= ?'
            params.append(str(date_from))
        if date_to:
            query += ' AND a.attendance_date <= ?'
            params.append(str(date_to))
        query += ' ORDER BY a.attendance_date DESC, a.check_in_time DESC'
        if limit:
            query += ' LIMIT ? OFFSET ?'
            params.extend([int(limit), int(offset)])
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def member_stats(cls, member_id, month_start):
        rows = execute_query(
            '''SELECT COUNT(*) AS total_visits,
                      COUNT(DISTINCT attendance_date) AS days_visited,
                      SUM(CASE WHEN attendance_date >= ? THEN 1 ELSE 0 END) AS visits_this_month,
                      MAX(attendance_date) AS last_visit
               FROM attendance WHERE member_id = ?''',
            (str(month_start), member_id), cls._db_path(), fetch=True
        )
        row = rows[0]
        return {
            'totalVisits': row['total_visits'] or 0,
            'daysVisited': row['days_visited'] or 0,
            'visitsThisMonth': row['visits_this_month'] or 0,
            'lastVisit': row['last_visit'],
        }

    @classmethod
    def average_daily_between(cls, date_from, date_to):
        rows = execute_query(
            '''SELECT AVG(daily) FROM (
                   SELECT COUNT(*) AS daily FROM attendance
                   WHERE attendance_date BETWEEN ? AND ?
                   GROUP BY attendance_date
               )''',
            (str(date_from), str(date_to)), cls._db_path(), fetch=True
        )
        return round(rows[0][0] or 0, 2)

    @classmethod
    def delete_before(cls, cutoff_date):
        return execute_update('DELETE FROM attendance WHERE attendance_date < ?',
                              (str(cutoff_date),), cls._db_path())

    def to_dict(self):
        return {
            'id': self.id,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'attendanceDate': self.attendance_date,
            'checkInTime': self.check_in_time,
            'checkOutTime': self.check_out_time,
            'checkInMethod': self.check_in_method,
        }
