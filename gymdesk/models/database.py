import sqlite3
from contextlib import contextmanager
from flask import current_app, has_app_context
from flask_bcrypt import Bcrypt

DEFAULT_DB_PATH = 'gym_management.db'


def current_db_path():
    """DATABASE_PATH of the running app, or the default file outside an app context."""
    if has_app_context():
        return current_app.config.get('DATABASE_PATH', DEFAULT_DB_PATH)
    return DEFAULT_DB_PATH


def get_db_connection(db_path=DEFAULT_DB_PATH):
    """Get database connection with row factory and FK enabled.

    The connection runs in autocommit mode; multi-statement work goes through
    transaction(), which issues BEGIN IMMEDIATE/COMMIT/ROLLBACK itself.
    """
    conn = sqlite3.connect(db_path, timeout=30, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _log_db_error(e, query, params):
    if has_app_context():
        current_app.logger.error("DB Error: %s | Query: %s | Params: %s", e, query, params)


def execute_query(query, params=(), db_path=DEFAULT_DB_PATH, fetch=False, conn=None):
    """Execute a database query with optional parameters.

    Returns the fetched rows when fetch=True, otherwise the lastrowid.
    When conn is given the statement joins that connection's transaction and
    the connection is left open.
    """
    if conn is not None:
        try:
            cursor = conn.execute(query, params)
        except Exception as e:
            _log_db_error(e, query, params)
            raise
        return cursor.fetchall() if fetch else cursor.lastrowid

    conn = get_db_connection(db_path)
    try:
        cursor = conn.execute(query, params)
        if fetch:
            return cursor.fetchall()
        return cursor.lastrowid
    except Exception as e:
        _log_db_error(e, query, params)
        raise
    finally:
        conn.close()


def execute_update(query, params=(), db_path=DEFAULT_DB_PATH, conn=None):
    """Run an UPDATE/DELETE and return the number of affected rows."""
    if conn is not None:
        try:
            return conn.execute(query, params).rowcount
        except Exception as e:
            _log_db_error(e, query, params)
            raise

    conn = get_db_connection(db_path)
    try:
        return conn.execute(query, params).rowcount
    except Exception as e:
        _log_db_error(e, query, params)
        raise
    finally:
        conn.close()


@contextmanager
def transaction(db_path=None):
    """Open a write transaction and yield its connection.

    BEGIN IMMEDIATE takes sqlite's write lock up front, so a read-then-write
    sequence inside the block cannot interleave with another writer.
    Everything commits together or rolls back together.
    """
    conn = get_db_connection(db_path or current_db_path())
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def run_in_transaction(fn, db_path=None):
    """Call fn(conn) inside transaction() and return its result."""
    with transaction(db_path) as conn:
        return fn(conn)


def map_fields(fields, field_map):
    """Translate request keys into column names using an explicit field map.

    field_map maps API keys (camelCase) to columns; column names themselves are
    accepted too. Unknown keys and None values are dropped.
    """
    columns = set(field_map.values())
    mapped = {}
    for key, value in (fields or {}).items():
        column = field_map.get(key) or (key if key in columns else None)
        if column is None or value is None:
            continue
        mapped[column] = value
    return mapped


def update_columns(table, row_id, values, db_path=None, conn=None, touch=True):
    """UPDATE <table> SET <columns> WHERE id = ?; returns True when a row changed."""
    if not values:
        return False
    assignments = [f"{column} = ?" for column in values]
    if touch:
        assignments.append("updated_at = CURRENT_TIMESTAMP")
    query = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?"
    params = tuple(values.values()) + (row_id,)
    return execute_update(query, params, db_path or current_db_path(), conn=conn) > 0


def _get_bcrypt():
    """Return a Bcrypt instance bound to the current app (call inside app context)."""
    return Bcrypt(current_app)


SCHEMA = (
    '''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('admin', 'member', 'trainer')),
        is_active BOOLEAN DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        phone TEXT,
        address TEXT,
        date_of_birth DATE,
        gender TEXT,
        height DECIMAL(5,2),
        weight DECIMAL(5,2),
        bmi DECIMAL(4,2),
        qr_code TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS trainers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        phone TEXT,
        specialization TEXT,
        hourly_rate DECIMAL(10,2),
        is_available BOOLEAN DEFAULT 1,
        rating DECIMAL(3,2) DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS membership_plans (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        duration_months INTEGER NOT NULL CHECK (duration_months > 0),
        price DECIMAL(10,2) NOT NULL,
        features TEXT, -- JSON array of strings
        is_active BOOLEAN DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS member_memberships (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        member_id INTEGER NOT NULL,
        membership_plan_id INTEGER NOT NULL,
        start_date DATE NOT NULL,
        end_date DATE NOT NULL,
        status TEXT DEFAULT 'active' CHECK (status IN ('active', 'expired', 'cancelled')),
        auto_renewal BOOLEAN DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (member_id) REFERENCES members (id) ON DELETE CASCADE,
        FOREIGN KEY (membership_plan_id) REFERENCES membership_plans (id)
    )
    ''',
    # one active membership per member
    '''
    CREATE UNIQUE INDEX IF NOT EXISTS ux_member_memberships_one_active
    ON member_memberships (member_id) WHERE status = 'active'
    ''',
    '''
    CREATE TABLE IF NOT EXISTS training_sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trainer_id INTEGER NOT NULL,
        member_id INTEGER NOT NULL,
        session_date DATE NOT NULL,
        start_time TEXT NOT NULL, -- HH:MM:SS
        end_time TEXT NOT NULL,
        session_type TEXT,
        notes TEXT,
        status TEXT DEFAULT 'scheduled' CHECK (status IN ('scheduled', 'completed', 'cancelled', 'no-show')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (trainer_id) REFERENCES trainers (id) ON DELETE CASCADE,
        FOREIGN KEY (member_id) REFERENCES members (id) ON DELETE CASCADE
    )
    ''',
    '''
    CREATE INDEX IF NOT EXISTS ix_training_sessions_trainer_date
    ON training_sessions (trainer_id, session_date)
    ''',
    '''
    CREATE TABLE IF NOT EXISTS attendance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        member_id INTEGER NOT NULL,
        attendance_date DATE NOT NULL,
        check_in_time TIMESTAMP NOT NULL,
        check_out_time TIMESTAMP,
        check_in_method TEXT DEFAULT 'manual' CHECK (check_in_method IN ('qr', 'manual', 'card')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (member_id) REFERENCES members (id) ON DELETE CASCADE
    )
    ''',
    # one open check-in per member per day
    '''
    CREATE UNIQUE INDEX IF NOT EXISTS ux_attendance_one_open
    ON attendance (member_id, attendance_date) WHERE check_out_time IS NULL
    ''',
    '''
    CREATE TABLE IF NOT EXISTS supplements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        category TEXT,
        description TEXT,
        price DECIMAL(10,2) NOT NULL,
        stock_quantity INTEGER NOT NULL DEFAULT 0 CHECK (stock_quantity >= 0),
        is_active BOOLEAN DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS payments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        member_id INTEGER NOT NULL,
        amount DECIMAL(10,2) NOT NULL,
        payment_type TEXT NOT NULL CHECK (payment_type IN ('membership', 'supplement', 'training_session')),
        payment_method TEXT,
        payment_status TEXT DEFAULT 'pending' CHECK (payment_status IN ('pending', 'completed', 'failed', 'refunded')),
        transaction_id TEXT,
        invoice_number TEXT UNIQUE,
        invoice_path TEXT,
        description TEXT,
        payment_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (member_id) REFERENCES members (id) ON DELETE CASCADE
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS supplement_orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        member_id INTEGER NOT NULL,
        total_amount DECIMAL(10,2) NOT NULL,
        order_status TEXT DEFAULT 'pending' CHECK (order_status IN ('pending', 'processing', 'completed', 'cancelled')),
        payment_id INTEGER,
        order_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (member_id) REFERENCES members (id) ON DELETE CASCADE,
        FOREIGN KEY (payment_id) REFERENCES payments (id) ON DELETE SET NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS supplement_order_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id INTEGER NOT NULL,
        supplement_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        price DECIMAL(10,2) NOT NULL,
        FOREIGN KEY (order_id) REFERENCES supplement_orders (id) ON DELETE CASCADE,
        FOREIGN KEY (supplement_id) REFERENCES supplements (id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS email_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        recipient_email TEXT NOT NULL,
        subject TEXT NOT NULL,
        body TEXT,
        email_type TEXT,
        status TEXT DEFAULT 'pending' CHECK (status IN ('pending', 'sent', 'failed')),
        sent_at TIMESTAMP,
        error_message TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
)


def init_db(db_path=DEFAULT_DB_PATH, seed=True):
    """Initialize database with all required tables"""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    for statement in SCHEMA:
        cursor.execute(statement)

    if seed:
        insert_default_data(cursor)

    conn.commit()
    conn.close()


def insert_default_data(cursor):
    """Insert default admin account and membership plans (call inside app context)."""
    cursor.execute("SELECT COUNT(*) FROM users WHERE role = 'admin'")
    if cursor.fetchone()[0] == 0:
        bcrypt = _get_bcrypt()
        admin_password = bcrypt.generate_password_hash(
            current_app.config.get('DEFAULT_ADMIN_PASSWORD', 'admin123')
        )
        if isinstance(admin_password, bytes):
            admin_password = admin_password.decode('utf-8')
        cursor.execute(
            'INSERT INTO users (email, password_hash, role) VALUES (?, ?, ?)',
            (current_app.config.get('DEFAULT_ADMIN_EMAIL', 'admin@gymdesk.local'), admin_password, 'admin')
        )

    cursor.execute('SELECT COUNT(*) FROM membership_plans')
    if cursor.fetchone()[0] == 0:
        plans = [
            ('Monthly Basic', 'Basic gym access', 1, 999.00, '["Gym Access", "Locker Room"]'),
            ('Quarterly Premium', 'Premium features with trainer support', 3, 2499.00,
             '["Gym Access", "Locker Room", "1 Personal Training Session/Month", "Diet Consultation"]'),
            ('Yearly VIP', 'Full access with premium benefits', 12, 8999.00,
             '["Unlimited Gym Access", "Locker Room", "4 Personal Training Sessions/Month", "Nutrition Plan", "Priority Support"]'),
        ]
        cursor.executemany('''
            INSERT INTO membership_plans (name, description, duration_months, price, features)
            VALUES (?, ?, ?, ?, ?)
        ''', plans)
