from .database import execute_query, execute_update, current_db_path, update_columns

STATUSES = ('scheduled', 'completed', 'cancelled', 'no-show')
TERMINAL_STATUSES = ('completed', 'cancelled', 'no-show')

_SELECT = '''
    SELECT ts.*,
           t.first_name AS trainer_first_name, t.last_name AS trainer_last_name,
           m.first_name AS member_first_name, m.last_name AS member_last_name,
           m.phone AS member_phone, u.email AS member_email
    FROM training_sessions ts
    JOIN trainers t ON ts.trainer_id = t.id
    JOIN members m ON ts.member_id = m.id
    JOIN users u ON m.user_id = u.id
'''


class TrainingSession:
    FIELD_MAP = {
        'trainerId': 'trainer_id',
        'sessionDate': 'session_date',
        'startTime': 'start_time',
        'endTime': 'end_time',
        'sessionType': 'session_type',
        'notes': 'notes',
        'status': 'status',
    }

    def __init__(self, id=None, trainer_id=None, member_id=None, session_date=None,
                 start_time=None, end_time=None, session_type=None, notes=None,
                 status='scheduled', created_at=None, updated_at=None,
                 trainer_name=None, member_name=None, member_email=None, member_phone=None):
        self.id = id
        self.trainer_id = trainer_id
        self.member_id = member_id
        self.session_date = session_date
        self.start_time = start_time
        self.end_time = end_time
        self.session_type = session_type
        self.notes = notes
        self.status = status
        self.created_at = created_at
        self.updated_at = updated_at
        self.trainer_name = trainer_name
        self.member_name = member_name
        self.member_email = member_email
        self.member_phone = member_phone

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @classmethod
    def _db_path(cls):
        return current_db_path()

    @classmethod
    def _from_row(cls, row):
        if not row:
            return None
        keys = row.keys()
        joined = 'trainer_first_name' in keys
        return cls(
            id=row['id'], trainer_id=row['trainer_id'], member_id=row['member_id'],
            session_date=row['session_date'], start_time=row['start_time'],
            end_time=row['end_time'], session_type=row['session_type'], notes=row['notes'],
            status=row['status'], created_at=row['created_at'], updated_at=row['updated_at'],
            trainer_name=f"{row['trainer_first_name']} {row['trainer_last_name']}" if joined else None,
            member_name=f"{row['member_first_name']} {row['member_last_name']}" if joined else None,
            member_email=row['member_email'] if joined else None,
            member_phone=row['member_phone'] if joined else None
        )

    # -------------------- Fetchers --------------------

    @classmethod
    def get_by_id(cls, session_id, conn=None):
        rows = execute_query(_SELECT + ' WHERE ts.id = ?', (session_id,), cls._db_path(),
                             fetch=True, conn=conn)
        return cls._from_row(rows[0]) if rows else None

    @classmethod
    def find_conflicts(cls, trainer_id, session_date, start_time, end_time,
                       exclude_id=None, conn=None):
        """Non-cancelled sessions of the trainer overlapping [start_time, end_time).

        Times are 'HH:MM:SS' strings so lexical comparison is chronological.
        Back-to-back sessions (one ends when the next starts) do not overlap.
        """
        query = '''
            SELECT * FROM training_sessions
            WHERE trainer_id = ? AND session_date = ? AND status != 'cancelled'
              AND start_time < ? AND end_time > ?
        '''
        params = [trainer_id, str(session_date), end_time, start_time]
        if exclude_id is not None:
            query += ' AND id != ?'
            params.append(exclude_id)
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True, conn=conn)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def search(cls, status=None, trainer_id=None, member_id=None, date_from=None,
               date_to=None, limit=None, offset=0):
        query = _SELECT + ' WHERE 1=1'
        params = []
        if status:
            query += ' AND ts.status = ?'
            params.append(status)
        if trainer_id:
            query += ' AND ts.trainer_id = ?'
            params.append(trainer_id)
        if member_id:
            query += ' AND ts.member_id = ?'
            params.append(member_id)
        if date_from:
            query += ' AND ts.session_date >= ?'
            params.append(str(date_from))
        if date_to:
            query += ' AND ts.session_date <= ?'
            params.append(str(date_to))
        query += ' ORDER BY ts.session_date DESC, ts.start_time DESC'
        if limit:
            query += ' LIMIT ? OFFSET ?'
            params.extend([int(limit), int(offset)])
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_trainer_schedule(cls, trainer_id, date_from=None, date_to=None):
        """All sessions of a trainer in chronological order, optionally within a date range."""
        query = _SELECT + ' WHERE ts.trainer_id = ?'
        params = [trainer_id]
        if date_from and date_to:
            query += ' AND ts.session_date BETWEEN ? AND ?'
            params.extend([str(date_from), str(date_to)])
        query += ' ORDER BY ts.session_date ASC, ts.start_time ASC'
        rows = execute_query(query, tuple(params), cls._db_path(), fetch=True)
        return [cls._from_row(r) for r in rows]

    @classmethod
    def get_scheduled_on(cls, session_date):
        rows = execute_query(
            _SELECT + " WHERE ts.session_date = ? AND ts.status = 'scheduled' ORDER BY ts.start_time",
            (str(session_date),), cls._db_path(), fetch=True
        )
        return [cls._from_row(r) for r in rows]

    @classmethod
    def count_between(cls, date_from, date_to):
        rows = execute_query(
            'SELECT COUNT(*) FROM training_sessions WHERE session_date BETWEEN ? AND ?',
            (str(date_from), str(date_to)), cls._db_path(), fetch=True
        )
        return rows[0][0] if rows else 0

    # -------------------- Writes --------------------

    @classmethod
    def create(cls, trainer_id, member_id, session_date, start_time, end_time,
               session_type=None, notes=None, conn=None):
        return execute_query(
            '''INSERT INTO training_sessions
                   (trainer_id, member_id, session_date, start_time, end_time, session_type, notes, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, 'scheduled')''',
            (trainer_id, member_id, str(session_date), start_time, end_time, session_type, notes),
            cls._db_path(), conn=conn
        )

    @classmethod
    def update_fields(cls, session_id, values, conn=None):
        return update_columns('training_sessions', session_id, values, cls._db_path(), conn=conn)

    @classmethod
    def transition(cls, session_id, from_status, to_status, notes=None, conn=None):
        """Conditional status change; returns False when the row was not in from_status."""
        query = 'UPDATE training_sessions SET status = ?, updated_at = CURRENT_TIMESTAMP'
        params = [to_status]
        if notes is not None:
            query += ', notes = ?'
            params.append(notes)
        query += ' WHERE id = ? AND status = ?'
        params.extend([session_id, from_status])
        return execute_update(query, tuple(params), cls._db_path(), conn=conn) > 0

    @classmethod
    def mark_past_no_show(cls, today):
        return execute_update(
            '''UPDATE training_sessions SET status = 'no-show', updated_at = CURRENT_TIMESTAMP
               WHERE status = 'scheduled' AND session_date < ?''',
            (str(today),), cls._db_path()
        )

    @classmethod
    def delete(cls, session_id):
        return execute_update('DELETE FROM training_sessions WHERE id = ?',
                              (session_id,), cls._db_path()) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'trainerId': self.trainer_id,
            'trainerName': self.trainer_name,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'memberPhone': self.member_phone,
            'sessionDate': self.session_date,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'sessionType': self.session_type,
            'notes': self.notes,
            'status': self.status,
        }
