"""
Admin notification routes
"""
from flask import Blueprint, jsonify, request
from routes.admin.auth import admin_required
from models import db
from models.admin_notification import AdminNotification

admin_notifications_bp = Blueprint('admin_notifications', __name__, url_prefix='/admin')


def get_notifications(limit=50, unread_only=False):
    """Newest first"""
    query = AdminNotification.query
    if unread_only:
        query = query.filter_by(is_read=False)
    query = query.order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


@admin_notifications_bp.route('/notifications')
@admin_required
def list_notifications():
    limit = request.args.get('limit', 50, type=int)
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'
    notifications = get_notifications(limit=limit, unread_only=unread_only)
    return jsonify({
        'success': True,
        'notifications': [n.to_dict() for n in notifications]
    })


@admin_notifications_bp.route('/notifications/unread-count')
@admin_required
def get_unread_count():
    unread_count = AdminNotification.query.filter_by(is_read=False).count()
    return jsonify({'success': True, 'unread_count': unread_count})


@admin_notifications_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@admin_required
def mark_as_read(notification_id):
    notification = db.get_or_404(AdminNotification, notification_id)
    notification.is_read = True
    try:
        db.session.commit()
        return jsonify({'success': True, 'message': 'Notification marked as read'})
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': str(e)}), 500


@admin_notifications_bp.route('/notifications/mark-all-read', methods=['POST'])
@admin_required
def mark_all_as_read():
    unread_notifications = AdminNotification.query.filter_by(is_read=False).all()
    try:
        for notification in unread_notifications:
            notification.is_read = True
        db.session.commit()
        return jsonify({
            'success': True,
            'message': f'{len(unread_notifications)} notifications marked as read'
        })
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': str(e)}), 500
