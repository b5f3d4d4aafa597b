"""
Routes package for the wallet cash-in admin application
"""
from routes.admin.auth import admin_auth_bp
from routes.admin.dashboard import admin_dashboard_bp
from routes.admin.transactions import transactions_bp
from routes.admin.notifications import admin_notifications_bp

__all__ = [
    'admin_auth_bp',
    'admin_dashboard_bp',
    'transactions_bp',
    'admin_notifications_bp',
]
