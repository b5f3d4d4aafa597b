"""
Wallet transaction (cash-in request) model definition
"""
from datetime import datetime, timezone
from models import db

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_REJECTED = 'rejected'
STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

METHODS = ('GCash', 'Bank', 'PayPal')


def utcnow():
    """Naive UTC now, the convention for every timestamp column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class WalletTransaction(db.Model):
    """Cash-in request reviewed by admins"""
    __tablename__ = 'user_wallet'
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name='user_wallet_status_check',
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(20), nullable=False)  # GCash, Bank, PayPal
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
    referral_code = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f'<WalletTransaction {self.id} {self.status}>'

    def snapshot(self):
        """Plain dict of column values (datetimes kept as datetime objects)"""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'amount_cents': self.amount_cents,
            'method': self.method,
            'status': self.status,
            'referral_code': self.referral_code,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    def to_dict(self):
        """Convert transaction to dictionary for JSON responses"""
        return serialize_row(self.snapshot())


def serialize_row(row):
    """JSON-safe copy of a row snapshot."""
    data = dict(row)
    for key in ('created_at', 'updated_at'):
        value = data.get(key)
        data[key] = value.isoformat() if value else None
    return data
