"""Admin report projections.

Read-only aggregates over the live tables. Monthly series are keyed
'YYYY-MM'; only completed payments and completed supplement orders count
as revenue.
"""
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from gymdesk.models.database import execute_query, current_db_path
from gymdesk.models.payment import PAYMENT_TYPES
from gymdesk.utils.errors import ValidationError
from gymdesk.utils.helpers import parse_date

LOW_STOCK_THRESHOLD = 10
TOP_LIMIT = 10
REVENUE_PERIODS = ('today', 'week', 'month', 'year', 'custom')


def _rows(sql, params=()):
    rows = execute_query(sql, tuple(params), current_db_path(), fetch=True) or []
    return [dict(r) for r in rows]


def _scalar(sql, params=()):
    rows = execute_query(sql, tuple(params), current_db_path(), fetch=True)
    if not rows or rows[0][0] is None:
        return 0
    return rows[0][0]


def _month_start(today, months_back):
    return (today.replace(day=1) - relativedelta(months=months_back)).isoformat()


def _date_range(date_from, date_to):
    """Both ends or neither; returns (from, to) as ISO strings or (None, None)."""
    if date_from and date_to:
        start = parse_date(date_from, 'startDate')
        end = parse_date(date_to, 'endDate')
        if end < start:
            raise ValidationError('endDate must not be before startDate')
        return start.isoformat(), end.isoformat()
    return None, None


def _between(column, start, end, params):
    if not start:
        return ''
    params.extend([start, end])
    return f' AND DATE({column}) BETWEEN ? AND ?'


def dashboard_stats(today=None):
    today = today or date.today()
    week_ahead = (today + timedelta(days=7)).isoformat()
    return {
        'totalMembers': _scalar('SELECT COUNT(*) FROM members'),
        'activeMembers': _scalar(
            '''SELECT COUNT(DISTINCT member_id) FROM member_memberships
               WHERE status = 'active' AND end_date >= ?''', (today.isoformat(),)),
        'totalTrainers': _scalar('SELECT COUNT(*) FROM trainers WHERE is_available = 1'),
        'todayAttendance': _scalar('SELECT COUNT(*) FROM attendance WHERE attendance_date = ?',
                                   (today.isoformat(),)),
        'monthRevenue': float(_scalar(
            '''SELECT SUM(amount) FROM payments
               WHERE payment_status = 'completed' AND strftime('%Y-%m', payment_date) = ?''',
            (today.strftime('%Y-%m'),))),
        'pendingPayments': _scalar("SELECT COUNT(*) FROM payments WHERE payment_status = 'pending'"),
        'upcomingSessions': _scalar(
            '''SELECT COUNT(*) FROM training_sessions
               WHERE status = 'scheduled' AND session_date BETWEEN ? AND ?''',
            (today.isoformat(), week_ahead)),
        'expiringMemberships': _scalar(
            '''SELECT COUNT(*) FROM member_memberships
               WHERE status = 'active' AND end_date BETWEEN ? AND ?''',
            (today.isoformat(), week_ahead)),
    }


def membership_report(today=None):
    today = today or date.today()
    return {
        'membershipByPlan': _rows('''
            SELECT mp.id AS planId, mp.name AS planName, mp.price,
                   COUNT(mm.id) AS totalSubscriptions,
                   IFNULL(SUM(CASE WHEN mm.status = 'active' THEN 1 ELSE 0 END), 0) AS activeSubscriptions
            FROM membership_plans mp
            LEFT JOIN member_memberships mm ON mm.membership_plan_id = mp.id
            GROUP BY mp.id
            ORDER BY totalSubscriptions DESC, mp.id
        '''),
        'membershipTrend': _rows('''
            SELECT strftime('%Y-%m', mm.start_date) AS month,
                   COUNT(*) AS newMemberships, IFNULL(SUM(mp.price), 0) AS planValue
            FROM member_memberships mm
            JOIN membership_plans mp ON mm.membership_plan_id = mp.id
            WHERE mm.start_date >= ?
            GROUP BY month
            ORDER BY month
        ''', (_month_start(today, 11),)),
        'expiringSoon': _rows('''
            SELECT mm.id AS membershipId, m.id AS memberId,
                   m.first_name || ' ' || m.last_name AS memberName, u.email,
                   mp.name AS planName, mm.end_date AS endDate,
                   CAST(julianday(mm.end_date) - julianday(?) AS INTEGER) AS daysRemaining
            FROM member_memberships mm
            JOIN members m ON mm.member_id = m.id
            JOIN users u ON m.user_id = u.id
            JOIN membership_plans mp ON mm.membership_plan_id = mp.id
            WHERE mm.status = 'active' AND mm.end_date BETWEEN ? AND ?
            ORDER BY mm.end_date
        ''', (today.isoformat(), today.isoformat(), (today + timedelta(days=30)).isoformat())),
        'statusDistribution': _rows('''
            SELECT status, COUNT(*) AS count FROM member_memberships
            GROUP BY status ORDER BY status
        '''),
    }


def payment_report(date_from=None, date_to=None, payment_type=None, today=None):
    today = today or date.today()
    if payment_type and payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"paymentType must be one of: {', '.join(PAYMENT_TYPES)}")
    start, end = _date_range(date_from, date_to)

    summary_params = []
    summary_filter = _between('payment_date', start, end, summary_params)
    if payment_type:
        summary_filter += ' AND payment_type = ?'
        summary_params.append(payment_type)

    top_params = []
    top_filter = _between('p.payment_date', start, end, top_params)

    return {
        'revenueSummary': _rows(f'''
            SELECT payment_type AS paymentType, payment_method AS paymentMethod,
                   COUNT(*) AS transactionCount, SUM(amount) AS totalAmount,
                   ROUND(AVG(amount), 2) AS averageAmount
            FROM payments
            WHERE payment_status = 'completed'{summary_filter}
            GROUP BY payment_type, payment_method
            ORDER BY totalAmount DESC
        ''', summary_params),
        'revenueTrend': _rows('''
            SELECT strftime('%Y-%m', payment_date) AS month,
                   SUM(amount) AS revenue, COUNT(*) AS transactionCount
            FROM payments
            WHERE payment_status = 'completed' AND DATE(payment_date) >= ?
            GROUP BY month
            ORDER BY month
        ''', (_month_start(today, 11),)),
        'topMembers': _rows(f'''
            SELECT m.id AS memberId, m.first_name || ' ' || m.last_name AS memberName,
                   u.email, COUNT(p.id) AS paymentCount, SUM(p.amount) AS totalPaid
            FROM payments p
            JOIN members m ON p.member_id = m.id
            JOIN users u ON m.user_id = u.id
            WHERE p.payment_status = 'completed'{top_filter}
            GROUP BY m.id
            ORDER BY totalPaid DESC
            LIMIT {TOP_LIMIT}
        ''', top_params),
        'statusDistribution': _rows('''
            SELECT payment_status AS status, COUNT(*) AS count, SUM(amount) AS totalAmount
            FROM payments
            GROUP BY payment_status
            ORDER BY payment_status
        '''),
    }


def attendance_report(date_from=None, date_to=None, today=None):
    """Check-in projections; defaults to the last 30 days."""
    today = today or date.today()
    start, end = _date_range(date_from, date_to)
    if not start:
        start, end = (today - timedelta(days=30)).isoformat(), today.isoformat()
    window = (start, end)

    return {
        'attendanceTrend': _rows('''
            SELECT attendance_date AS date, COUNT(*) AS totalCheckIns,
                   COUNT(DISTINCT member_id) AS uniqueMembers,
                   ROUND(AVG(CASE WHEN check_out_time IS NOT NULL
                             THEN (julianday(check_out_time) - julianday(check_in_time)) * 1440 END), 1)
                       AS avgDurationMinutes
            FROM attendance
            WHERE attendance_date BETWEEN ? AND ?
            GROUP BY attendance_date
            ORDER BY attendance_date
        ''', window),
        'peakHours': _rows('''
            SELECT CAST(strftime('%H', check_in_time) AS INTEGER) AS hour, COUNT(*) AS checkIns
            FROM attendance
            WHERE attendance_date BETWEEN ? AND ?
            GROUP BY hour
            ORDER BY checkIns DESC, hour
        ''', window),
        'activeMembers': _rows(f'''
            SELECT m.id AS memberId, m.first_name || ' ' || m.last_name AS memberName,
                   COUNT(a.id) AS visits, MAX(a.attendance_date) AS lastVisit
            FROM attendance a
            JOIN members m ON a.member_id = m.id
            WHERE a.attendance_date BETWEEN ? AND ?
            GROUP BY m.id
            ORDER BY visits DESC, m.id
            LIMIT {TOP_LIMIT}
        ''', window),
        'checkInMethods': _rows('''
            SELECT check_in_method AS method, COUNT(*) AS count
            FROM attendance
            WHERE attendance_date BETWEEN ? AND ?
            GROUP BY check_in_method
            ORDER BY count DESC
        ''', window),
        'dateRange': {'startDate': start, 'endDate': end},
    }


def trainer_report(date_from=None, date_to=None, today=None):
    today = today or date.today()
    start, end = _date_range(date_from, date_to)
    join_params = []
    join_filter = ''
    if start:
        join_filter = ' AND ts.session_date BETWEEN ? AND ?'
        join_params = [start, end]

    return {
        'trainerPerformance': _rows(f'''
            SELECT t.id AS trainerId, t.first_name || ' ' || t.last_name AS trainerName,
                   t.specialization, t.rating,
                   COUNT(ts.id) AS totalSessions,
                   IFNULL(SUM(CASE WHEN ts.status = 'completed' THEN 1 ELSE 0 END), 0) AS completedSessions,
                   IFNULL(SUM(CASE WHEN ts.status = 'cancelled' THEN 1 ELSE 0 END), 0) AS cancelledSessions,
                   COUNT(DISTINCT ts.member_id) AS uniqueClients
            FROM trainers t
            LEFT JOIN training_sessions ts ON ts.trainer_id = t.id{join_filter}
            GROUP BY t.id
            ORDER BY totalSessions DESC, t.id
        ''', join_params),
        'sessionStatus': _rows('''
            SELECT status, COUNT(*) AS count FROM training_sessions
            GROUP BY status ORDER BY status
        '''),
        'utilization': _rows('''
            SELECT strftime('%Y-%m', ts.session_date) AS month, t.id AS trainerId,
                   t.first_name || ' ' || t.last_name AS trainerName, COUNT(ts.id) AS sessions
            FROM training_sessions ts
            JOIN trainers t ON ts.trainer_id = t.id
            WHERE ts.session_date >= ? AND ts.status != 'cancelled'
            GROUP BY month, t.id
            ORDER BY month, sessions DESC
        ''', (_month_start(today, 5),)),
    }


def supplement_report(date_from=None, date_to=None, today=None):
    today = today or date.today()
    start, end = _date_range(date_from, date_to)
    sales_params = []
    sales_filter = _between('o.order_date', start, end, sales_params)

    return {
        'topSelling': _rows(f'''
            SELECT s.id AS supplementId, s.name, s.category,
                   SUM(oi.quantity) AS unitsSold, SUM(oi.quantity * oi.price) AS revenue
            FROM supplement_order_items oi
            JOIN supplement_orders o ON oi.order_id = o.id
            JOIN supplements s ON oi.supplement_id = s.id
            WHERE o.order_status = 'completed'{sales_filter}
            GROUP BY s.id
            ORDER BY unitsSold DESC, s.id
            LIMIT {TOP_LIMIT}
        ''', sales_params),
        'categorySales': _rows(f'''
            SELECT s.category, SUM(oi.quantity) AS unitsSold,
                   SUM(oi.quantity * oi.price) AS revenue
            FROM supplement_order_items oi
            JOIN supplement_orders o ON oi.order_id = o.id
            JOIN supplements s ON oi.supplement_id = s.id
            WHERE o.order_status = 'completed'{sales_filter}
            GROUP BY s.category
            ORDER BY revenue DESC
        ''', sales_params),
        'lowStock': _rows('''
            SELECT id AS supplementId, name, category, stock_quantity AS stockQuantity
            FROM supplements
            WHERE stock_quantity < ? AND is_active = 1
            ORDER BY stock_quantity, id
        ''', (LOW_STOCK_THRESHOLD,)),
        'orderTrend': _rows('''
            SELECT strftime('%Y-%m', order_date) AS month, COUNT(*) AS orders,
                   SUM(total_amount) AS revenue
            FROM supplement_orders
            WHERE DATE(order_date) >= ? AND order_status != 'cancelled'
            GROUP BY month
            ORDER BY month
        ''', (_month_start(today, 11),)),
    }


def _period_range(period, date_from, date_to, today):
    if period == 'today':
        return today, today
    if period == 'week':
        monday = today - timedelta(days=today.weekday())
        return monday, monday + timedelta(days=6)
    if period == 'month':
        first = today.replace(day=1)
        return first, first + relativedelta(months=1) - timedelta(days=1)
    if period == 'year':
        return today.replace(month=1, day=1), today.replace(month=12, day=31)
    start, end = _date_range(date_from, date_to)
    if not start:
        raise ValidationError('startDate and endDate are required for a custom period')
    return parse_date(start), parse_date(end)


def revenue_report(period='month', date_from=None, date_to=None, today=None):
    """Completed revenue in a period.

    period is today, week (Monday to Sunday), month, year or custom (needs
    startDate and endDate). The trend is daily except for year, which is monthly.
    """
    today = today or date.today()
    period = period or 'month'
    if period not in REVENUE_PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(REVENUE_PERIODS)}")
    start, end = _period_range(period, date_from, date_to, today)
    window = (start.isoformat(), end.isoformat())
    where = "WHERE payment_status = 'completed' AND DATE(payment_date) BETWEEN ? AND ?"
    bucket = "strftime('%Y-%m', payment_date)" if period == 'year' else 'DATE(payment_date)'

    totals = _rows(f'''
        SELECT IFNULL(SUM(amount), 0) AS total, COUNT(*) AS transactionCount,
               IFNULL(AVG(amount), 0) AS average
        FROM payments {where}
    ''', window)[0]

    return {
        'summary': {
            'totalRevenue': round(float(totals['total']), 2),
            'transactionCount': totals['transactionCount'],
            'averageTransaction': round(float(totals['average']), 2),
        },
        'revenueByType': _rows(f'''
            SELECT payment_type AS paymentType, SUM(amount) AS total, COUNT(*) AS count
            FROM payments {where}
            GROUP BY payment_type ORDER BY total DESC
        ''', window),
        'revenueByMethod': _rows(f'''
            SELECT payment_method AS paymentMethod, SUM(amount) AS total, COUNT(*) AS count
            FROM payments {where}
            GROUP BY payment_method ORDER BY total DESC
        ''', window),
        'revenueTrend': _rows(f'''
            SELECT {bucket} AS period, SUM(amount) AS revenue, COUNT(*) AS transactions
            FROM payments {where}
            GROUP BY {bucket} ORDER BY {bucket}
        ''', window),
        'topMembers': _rows(f'''
            SELECT m.id AS memberId, m.first_name || ' ' || m.last_name AS memberName,
                   SUM(p.amount) AS totalSpent, COUNT(p.id) AS transactionCount
            FROM payments p
            JOIN members m ON p.member_id = m.id
            WHERE p.payment_status = 'completed' AND DATE(p.payment_date) BETWEEN ? AND ?
            GROUP BY m.id
            ORDER BY totalSpent DESC
            LIMIT {TOP_LIMIT}
        ''', window),
        'period': period,
        'dateRange': {'startDate': window[0], 'endDate': window[1]},
    }
