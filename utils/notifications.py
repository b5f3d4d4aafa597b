"""
Admin notification utility functions
"""
from models import db
from models.admin_notification import AdminNotification
from flask import current_app


def create_notification(notification_type, title, message, related_id=None):
    """
    Create a new admin notification

    Args:
        notification_type: 'transaction' or 'system'
        title: Notification title
        message: Notification message
        related_id: Optional wallet transaction id

    Returns:
        AdminNotification object or None if creation failed
    """
    try:
        notification = AdminNotification(
            type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
            is_read=False
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create notification: {str(e)}", exc_info=True)
        return None


def format_pesos(amount_cents):
    return f"₱{(amount_cents or 0) / 100:,.2f}"


def record_transition_notification(event):
    """Transition listener: audit entry for each approve/reject"""
    title = f"Transaction {event.new_status.title()}"
    message = (
        f"Cash-in #{event.transaction_id} from {event.user_id} "
        f"({format_pesos(event.amount_cents)} via {event.method}) "
        f"moved {event.previous_status} -> {event.new_status}"
    )
    if event.used_fallback:
        message += " (via pending)"
    return create_notification('transaction', title, message, related_id=event.transaction_id)


def notify_new_cash_in(transaction):
    """Create notification for a new pending cash-in request"""
    title = "New Cash-In Request"
    message = (
        f"User {transaction.user_id} requested {format_pesos(transaction.amount_cents)} "
        f"via {transaction.method} (Status: PENDING)"
    )
    return create_notification('transaction', title, message, related_id=transaction.id)


def notify_transition_failed(transaction_id, target_status, error_message=None):
    """Create notification for a status change the store refused"""
    title = "Status Change Failed"
    message = f"Failed to set transaction #{transaction_id} to {target_status}"
    if error_message:
        message += f": {error_message}"
    return create_notification('system', title, message, related_id=transaction_id)
