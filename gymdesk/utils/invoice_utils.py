import os
from datetime import datetime

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def generate_invoice_pdf(payment, invoice_dir, gym_name='GymDesk'):
    """Render a one-page invoice for a Payment and return the file path."""
    os.makedirs(invoice_dir, exist_ok=True)
    path = os.path.join(invoice_dir, f"{payment.invoice_number}.pdf")

    c = canvas.Canvas(path, pagesize=letter)
    width, height = letter
    x = 72
    y = height - 72

    c.setFont("Helvetica-Bold", 18)
    c.drawString(x, y, gym_name)
    y -= 28
    c.setFont("Helvetica-Bold", 14)
    c.drawString(x, y, "INVOICE")
    y -= 24

    c.setFont("Helvetica", 10)
    lines = [
        f"Invoice number: {payment.invoice_number}",
        f"Date: {payment.payment_date or datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"Billed to: {payment.member_name or ''} <{payment.email or ''}>",
        "",
        f"Payment type: {payment.payment_type}",
        f"Payment method: {payment.payment_method or '-'}",
        f"Description: {payment.description or '-'}",
        f"Transaction: {payment.transaction_id or '-'}",
    ]
    for line in lines:
        c.drawString(x, y, line)
        y -= 16

    y -= 10
    c.setFont("Helvetica-Bold", 12)
    c.drawString(x, y, f"Total paid: ${float(payment.amount):,.2f}")
    y -= 30
    c.setFont("Helvetica", 9)
    c.drawString(x, y, f"Thank you for training with {gym_name}.")

    c.showPage()
    c.save()
    return path
