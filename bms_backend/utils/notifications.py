import logging
import smtplib

from flask import current_app
from flask_mail import Message

from ..extensions import db
from ..models import Tenant

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str):
    """
    Send email using Flask-Mail configuration.
    Returns False (and logs) when mail is not configured or delivery fails.
    """
    mail = current_app.extensions.get("mail")
    if mail is None:
        logger.warning("Email not configured; to=%s subject=%s", to_email, subject)
        return False

    msg = Message(
        subject=subject,
        recipients=[to_email],
        body=body,
        sender=current_app.config.get("MAIL_DEFAULT_SENDER"),
    )
    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False
    logger.info("Email sent to %s: %s", to_email, subject)
    return True


def send_sms(to_phone: str, body: str):
    """
    SMS gateway placeholder: messages are logged only.
    """
    logger.info("SMS to %s: %s", to_phone, body[:120])
    return True


def _invoice_message(invoice):
    tenant = invoice.tenant
    name = tenant.full_name if tenant else "Tenant"
    return (
        f"Dear {name},\n\n"
        f"Invoice {invoice.invoice_number} for {float(invoice.total):.2f} {invoice.currency} "
        f"is due on {invoice.due_date.isoformat()}.\n"
        f"Billing period: {invoice.period_start.isoformat()} to {invoice.period_end.isoformat()}."
    )


def notify_tenant(tenant, subject, body):
    """Email and SMS the tenant on whichever channels they have."""
    channels, errors = [], []
    if tenant is None:
        return {"success": False, "channels": channels, "errors": ["Tenant not found"]}
    if tenant.email:
        if send_email(tenant.email, subject, body):
            channels.append("email")
        else:
            errors.append("email delivery failed")
    if tenant.primary_phone:
        if send_sms(tenant.primary_phone, body):
            channels.append("sms")
        else:
            errors.append("sms delivery failed")
    if not channels and not errors:
        errors.append("Tenant has no contact channel")
    return {"success": bool(channels), "channels": channels, "errors": errors}


def send_invoice_to_tenant(invoice):
    """Deliver an invoice by email and SMS; a delivered draft becomes ``sent``."""
    outcome = notify_tenant(invoice.tenant, f"Invoice {invoice.invoice_number}", _invoice_message(invoice))
    if outcome["success"] and invoice.status == "draft":
        invoice.status = "sent"
        db.session.commit()
    return outcome


def send_payment_confirmation(payment):
    tenant = db.session.get(Tenant, payment.tenant_id)
    body = (
        f"Your payment of {payment.currency} {float(payment.amount):,.2f} has been processed successfully."
    )
    if payment.receipt_url:
        body += f"\nReceipt: {payment.receipt_url}"
    return notify_tenant(tenant, "Payment Completed", body)


def _plural(n):
    return "" if n == 1 else "s"


def reminder_message(invoice, days_until_due):
    """Subject and body for a reminder; negative days mean overdue."""
    amount = f"{invoice.currency or 'ETB'} {float(invoice.total):,.2f}"
    number = invoice.invoice_number
    if days_until_due > 0:
        return (
            f"Payment Reminder: Invoice {number}",
            f"Your invoice {number} is due in {days_until_due} day{_plural(days_until_due)}. "
            f"Amount: {amount}. Due date: {invoice.due_date.isoformat()}",
        )
    if days_until_due == 0:
        return (
            f"Payment Due Today: Invoice {number}",
            f"Your invoice {number} is due today. Amount: {amount}. Please make payment as soon as possible.",
        )
    overdue = -days_until_due
    return (
        f"Overdue Invoice: {number}",
        f"Your invoice {number} is {overdue} day{_plural(overdue)} overdue. Amount: {amount}. "
        "Please make payment immediately.",
    )


def send_payment_reminder(invoice, days_until_due):
    subject, body = reminder_message(invoice, days_until_due)
    outcome = notify_tenant(invoice.tenant, subject, body)
    if outcome["success"]:
        logger.info("Payment reminder for invoice %s sent (%d days until due)", invoice.id, days_until_due)
    return outcome
