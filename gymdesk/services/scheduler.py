"""Time-triggered sweeps.

GymScheduler wraps an APScheduler BackgroundScheduler. Each job runs inside
the Flask application context and logs its own failure, so one bad run never
stops the schedule.
"""
import logging
from datetime import date, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from gymdesk.models.attendance import Attendance
from gymdesk.models.database import execute_query, current_db_path
from gymdesk.models.payment import Payment
from gymdesk.models.training_session import TrainingSession
from gymdesk.services import attendance_gate, booking, membership_lifecycle, settlement

logger = logging.getLogger(__name__)


def generate_monthly_report(today=None):
    """Log last month's revenue, transactions, new members, sessions and average attendance."""
    today = today or date.today()
    last_month_end = today.replace(day=1) - timedelta(days=1)
    last_month_start = last_month_end.replace(day=1)

    revenue, transactions = Payment.revenue_between(last_month_start, last_month_end)
    rows = execute_query(
        'SELECT COUNT(*) FROM members WHERE DATE(created_at) BETWEEN ? AND ?',
        (last_month_start.isoformat(), last_month_end.isoformat()), current_db_path(), fetch=True
    )
    report = {
        'period': last_month_start.strftime('%Y-%m'),
        'revenue': revenue,
        'transactions': transactions,
        'newMembers': rows[0][0] if rows else 0,
        'sessions': TrainingSession.count_between(last_month_start, last_month_end),
        'averageDailyAttendance': Attendance.average_daily_between(last_month_start, last_month_end),
    }
    logger.info("Monthly report %s: %s", report['period'], report)
    return report


# (job id, callable, cron fields)
JOBS = (
    ('expire_memberships', membership_lifecycle.update_expired_memberships, {'hour': 0, 'minute': 0}),
    ('auto_renew_memberships', membership_lifecycle.auto_renew_memberships, {'hour': 0, 'minute': 30}),
    ('session_reminders', booking.send_session_reminders, {'hour': 8, 'minute': 0}),
    ('membership_expiry_reminders', membership_lifecycle.check_membership_expiry, {'hour': 9, 'minute': 0}),
    ('payment_reminders', settlement.send_payment_reminders, {'hour': 10, 'minute': 0}),
    ('mark_no_show_sessions', booking.mark_no_show_sessions, {'hour': 23, 'minute': 0}),
    ('monthly_report', generate_monthly_report, {'day': 1, 'hour': 6, 'minute': 0}),
    ('cleanup_old_attendance', attendance_gate.cleanup_old_attendance,
     {'day_of_week': 'sun', 'hour': 3, 'minute': 0}),
)


class GymScheduler:
    def __init__(self, app, timezone=None):
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone=timezone)

    def run_job(self, job_id, func):
        """Run one sweep inside the app context; errors are logged, never raised."""
        with self.app.app_context():
            try:
                result = func()
                logger.info("Job %s finished: %s", job_id, result)
                return result
            except Exception:
                logger.exception("Job %s failed", job_id)
                return None

    def register_jobs(self):
        for job_id, func, cron in JOBS:
            self.scheduler.add_job(
                func=self.run_job,
                trigger=CronTrigger(**cron),
                args=[job_id, func],
                id=job_id,
                replace_existing=True,
            )

    def start(self):
        self.register_jobs()
        self.scheduler.start()
        logger.info("Scheduler started with %d jobs", len(JOBS))

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
