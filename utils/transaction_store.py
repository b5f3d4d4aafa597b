"""
SQLAlchemy-backed store for wallet transactions (table user_wallet).
Every write commits immediately; database errors roll back the session and
surface as StoreError carrying the database's message.
"""
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.wallet_transaction import WalletTransaction
from utils.wallet_errors import StoreError, TransactionNotFound


def _error_message(exc):
    """Database text for a SQLAlchemy error (trigger messages live on .orig)."""
    orig = getattr(exc, 'orig', None)
    if orig is not None:
        return str(orig).strip()
    return str(exc)


class SQLAlchemyTransactionStore:
    """Read/insert/update-by-id over the wallet table using db.session."""

    def list(self, status=None, user_id=None):
        """All rows, newest first, optionally narrowed by status and user"""
        query = WalletTransaction.query
        if status:
            query = query.filter_by(status=status)
        if user_id:
            query = query.filter_by(user_id=user_id)
        try:
            return query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc()).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(_error_message(e), cause=e) from e

    def get_by_id(self, transaction_id):
        try:
            return db.session.get(WalletTransaction, transaction_id)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(_error_message(e), cause=e) from e

    def insert(self, fields):
        """Insert a row; id and created_at are assigned by the store"""
        transaction = WalletTransaction(**fields)
        db.session.add(transaction)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(_error_message(e), cause=e) from e
        return transaction

    def update_status(self, transaction_id, status):
        """Set status on one row and return it as stored after commit"""
        transaction = self.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        transaction.status = status
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(_error_message(e), cause=e) from e
        return transaction
