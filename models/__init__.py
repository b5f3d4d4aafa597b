"""
Models package for the wallet cash-in admin application
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.wallet_transaction import WalletTransaction
from models.admin import Admin
from models.admin_notification import AdminNotification

__all__ = [
    'db',
    'WalletTransaction',
    'Admin',
    'AdminNotification',
]
