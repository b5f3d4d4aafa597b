"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def mail_configured():
    return bool(current_app.config.get('MAIL_SERVER'))


def send_email(subject, recipients, body, html=None):
    """
    Send an email

    Args:
        subject: Email subject
        recipients: List of recipient email addresses
        body: Plain text body
        html: HTML body (optional)
    """
    msg = Message(
        subject=subject,
        recipients=recipients,
        body=body,
        html=html
    )
    mail.send(msg)


def send_admin_password_reset_email(admin, reset_url):
    """Send the admin a password reset link. Raises if mail is not configured."""
    if not mail_configured():
        raise RuntimeError("MAIL_SERVER not configured. Please set MAIL_SERVER environment variable.")

    subject = "Reset Your Admin Password - Wallet Dashboard"
    body = f"""
Hello {admin.username},

You requested to reset your password for the wallet admin dashboard.

Click the link below to reset your password:
{reset_url}

This link will expire in 1 hour.

If you did not request this password reset, please ignore this email.
"""
    send_email(subject, [admin.email], body)


def get_admin_emails():
    """Active admin email addresses"""
    from models.admin import Admin
    admins = Admin.query.filter_by(is_active=True).all()
    return [admin.email for admin in admins]


def send_new_cash_in_email(transaction):
    """
    Email all active admins about a new pending cash-in request.
    Silently skipped if mail is not configured; failures are logged.
    """
    if not mail_configured():
        return False

    try:
        recipients = get_admin_emails()
        if not recipients:
            return False
        amount = f"{(transaction.amount_cents or 0) / 100:,.2f}"
        subject = f"New Cash-In Request #{transaction.id}"
        body = f"""
A new cash-in request is waiting for review.

User: {transaction.user_id}
Amount: PHP {amount}
Method: {transaction.method}
Referral code: {transaction.referral_code or '-'}

Review it in the admin dashboard.
"""
        send_email(subject, recipients, body)
        return True
    except Exception as e:
        current_app.logger.error(f"Error sending cash-in notification email: {str(e)}", exc_info=True)
        return False
