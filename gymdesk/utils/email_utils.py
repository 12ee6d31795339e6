import os
from datetime import datetime

from flask import current_app
from flask_mail import Message

from gymdesk.models.database import execute_query, current_db_path


def _gym_name():
    return current_app.config.get('GYM_NAME', 'GymDesk')


def _log_email(to_email, subject, body, email_type, status, error_message=None):
    execute_query(
        '''INSERT INTO email_logs (recipient_email, subject, body, email_type, status, sent_at, error_message)
           VALUES (?, ?, ?, ?, ?, ?, ?)''',
        (to_email, subject, body, email_type, status,
         datetime.now().strftime('%Y-%m-%d %H:%M:%S') if status == 'sent' else None,
         error_message),
        current_db_path()
    )


def send_email(to_email, subject, body, html_body=None, email_type=None, attachment_path=None):
    """Send email using Flask-Mail.

    Returns True on success and False on any delivery failure; every attempt is
    written to email_logs. Never raises for delivery problems.
    """
    try:
        msg = Message(
            subject=subject,
            recipients=[to_email],
            body=body,
            html=html_body
        )
        if attachment_path and os.path.exists(attachment_path):
            with open(attachment_path, 'rb') as fh:
                msg.attach(os.path.basename(attachment_path), 'application/pdf', fh.read())
        current_app.mail.send(msg)
    except Exception as e:
        current_app.logger.warning("Email to %s failed: %s", to_email, e)
        try:
            _log_email(to_email, subject, body, email_type, 'failed', str(e))
        except Exception:
            current_app.logger.exception("Could not write email log")
        return False

    try:
        _log_email(to_email, subject, body, email_type, 'sent')
    except Exception:
        current_app.logger.exception("Could not write email log")
    return True


def send_session_confirmation(email, full_name, trainer_name, session_date, start_time, end_time):
    """Send training session booking confirmation"""
    subject = f"Session Confirmed - {session_date}"
    body = f"""
    Dear {full_name},

    Your training session has been booked.

    Trainer: {trainer_name}
    Date: {session_date}
    Time: {start_time} - {end_time}

    Please arrive 10 minutes early.

    Best regards,
    {_gym_name()} Team
    """

    html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif;">
        <h2 style="color: #1a73e8;">Session Confirmed</h2>
        <p>Dear <strong>{full_name}</strong>,</p>
        <p>Your training session with <strong>{trainer_name}</strong> is booked for
           <strong>{session_date}</strong>, {start_time} - {end_time}.</p>
        <p>Please arrive 10 minutes early.</p>
        <p>Best regards,<br><strong>{_gym_name()} Team</strong></p>
    </body>
    </html>
    """

    return send_email(email, subject, body, html_body, email_type='session_confirmation')


def send_session_reminder(email, full_name, trainer_name, session_date, start_time):
    """Send reminder for a session happening tomorrow"""
    subject = "Reminder: Training Session Tomorrow"
    body = f"""
    Dear {full_name},

    This is a reminder of your training session with {trainer_name}
    on {session_date} at {start_time}.

    Best regards,
    {_gym_name()} Team
    """

    return send_email(email, subject, body, email_type='session_reminder')


def send_membership_renewal_reminder(email, full_name, expiry_date, days_remaining):
    """Send membership renewal reminder"""
    subject = f"Membership Expiring Soon - {days_remaining} Days Remaining"
    body = f"""
    Dear {full_name},

    This is a friendly reminder that your gym membership will expire on {expiry_date}.

    You have {days_remaining} days remaining. Please renew your membership to continue enjoying our facilities.

    Best regards,
    {_gym_name()} Team
    """

    html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #1a73e8;">Membership Expiring Soon</h2>
            <p>Dear <strong>{full_name}</strong>,</p>
            <div style="background-color: #fff3cd; border: 1px solid #ffeaa7; padding: 15px; border-radius: 5px;">
                <p><strong>Your gym membership will expire on {expiry_date}</strong></p>
                <p style="font-size: 18px; color: #d63031;">You have <strong>{days_remaining} days</strong> remaining.</p>
            </div>
            <p>Best regards,<br><strong>{_gym_name()} Team</strong></p>
        </div>
    </body>
    </html>
    """

    return send_email(email, subject, body, html_body, email_type='membership_expiry')


def send_payment_confirmation(email, full_name, amount, invoice_number, description, invoice_path=None):
    """Send payment receipt, with the invoice PDF attached when available"""
    subject = f"Payment Received - Invoice {invoice_number}"
    body = f"""
    Dear {full_name},

    We have received your payment of ${amount}.

    Invoice: {invoice_number}
    Description: {description or '-'}

    Thank you for being part of {_gym_name()}.

    Best regards,
    {_gym_name()} Team
    """

    return send_email(email, subject, body, email_type='payment_confirmation',
                      attachment_path=invoice_path)


def send_payment_reminder(email, full_name, amount, due_date):
    """Send payment reminder"""
    subject = f"Payment Reminder - {_gym_name()}"
    body = f"""
    Dear {full_name},

    This is a reminder that you have an outstanding payment of ${amount} due on {due_date}.

    Please make your payment at your earliest convenience to avoid any service interruptions.

    Best regards,
    {_gym_name()} Team
    """

    return send_email(email, subject, body, email_type='payment_reminder')


def send_welcome_email(email, full_name, temporary_password):
    """Send welcome email to a newly registered member or trainer"""
    subject = f"Welcome to {_gym_name()}"
    body = f"""
    Dear {full_name},

    Your account has been created.

    Login email: {email}
    Temporary password: {temporary_password}

    Please change your password after your first login.

    Best regards,
    {_gym_name()} Team
    """

    return send_email(email, subject, body, email_type='welcome')
