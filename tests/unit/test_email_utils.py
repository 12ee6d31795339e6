from unittest.mock import patch

from gymdesk.models.database import execute_query, current_db_path
from gymdesk.utils import email_utils


def _log_rows():
    return execute_query("SELECT * FROM email_logs ORDER BY id", (), current_db_path(), fetch=True)


def test_send_email_logs_success(app_ctx):
    assert email_utils.send_email("to@example.com", "Hello", "Body", email_type="test") is True
    rows = _log_rows()
    assert len(rows) == 1
    assert rows[0]["status"] == "sent"
    assert rows[0]["email_type"] == "test"


def test_send_email_failure_returns_false_and_logs(app_ctx):
    with patch.object(app_ctx.mail, "send", side_effect=RuntimeError("smtp down")):
        assert email_utils.send_email("to@example.com", "Hello", "Body") is False
    rows = _log_rows()
    assert rows[-1]["status"] == "failed"
    assert "smtp down" in rows[-1]["error_message"]


def test_payment_confirmation_attaches_invoice(app_ctx, tmp_path):
    pdf = tmp_path / "INV-1.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    with patch.object(app_ctx.mail, "send") as send:
        assert email_utils.send_payment_confirmation("m@example.com", "Mia", 10, "INV-1", "Test", str(pdf))
    message = send.call_args[0][0]
    assert message.attachments[0].filename == "INV-1.pdf"


def test_renewal_reminder_subject(app_ctx):
    with patch.object(email_utils, "send_email", return_value=True) as send:
        email_utils.send_membership_renewal_reminder("m@example.com", "Mia", "2024-02-01", 3)
    assert send.call_args[0][1] == "Membership Expiring Soon - 3 Days Remaining"
