"""
Transaction status engine.

Owns the rules for moving a wallet transaction between pending, approved and
rejected:
- reject is only allowed while now - created_at <= reject window (24h default)
- a direct update is tried first; when the store refuses it with a
  transition-policy violation, the engine goes through pending and then to
  rejected (two writes, strictly in that order)
- a committed landing in approved/rejected emits one TransitionEvent to the
  subscribed listeners; listener failures are logged, never raised

The store is always read fresh; nothing is cached here.
"""
import logging
import re
from datetime import datetime, timedelta, timezone

from models.wallet_transaction import (
    METHODS,
    STATUSES,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    utcnow,
)
from utils.wallet_errors import (
    EligibilityExpired,
    InvalidStatus,
    InvalidTransaction,
    NotificationFailed,
    StoreError,
    StoreUpdateFailed,
    StoreWriteFailed,
    TransactionNotFound,
)

logger = logging.getLogger(__name__)

DEFAULT_REJECT_WINDOW = timedelta(hours=24)

TRANSITION_POLICY_PATTERN = re.compile(
    r'cannot\s+change\s+status|status\s+transition|not\s+allowed', re.IGNORECASE
)

NOTIFY_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


def is_transition_policy_violation(error):
    """True when a store error is the database refusing a direct status jump."""
    return bool(TRANSITION_POLICY_PATTERN.search(str(error) or ''))


def _as_naive_utc(value):
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _field(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


class TransitionEvent:
    """A committed status change that landed in approved or rejected."""

    EVENT_NAME = 'transaction_status_updated'

    def __init__(self, transaction_id, user_id, previous_status, new_status,
                 amount_cents, method, timestamp, used_fallback=False):
        self.transaction_id = transaction_id
        self.user_id = user_id
        self.previous_status = previous_status
        self.new_status = new_status
        self.amount_cents = amount_cents
        self.method = method
        self.timestamp = timestamp
        self.used_fallback = used_fallback

    def to_payload(self):
        """Webhook body"""
        return {
            'event': self.EVENT_NAME,
            'transaction_id': self.transaction_id,
            'user_id': self.user_id,
            'previous_status': self.previous_status,
            'new_status': self.new_status,
            'amount_cents': self.amount_cents,
            'method': self.method,
            'timestamp': self.timestamp.isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
        }

    def __repr__(self):
        return f'<TransitionEvent #{self.transaction_id} {self.previous_status}->{self.new_status}>'


class StatusEngine:
    """Status transitions and cash-in creation over a transaction store.

    `store` needs get_by_id, insert and update_status (see
    utils.transaction_store). `clock` returns the current naive UTC time.
    """

    def __init__(self, store, reject_window=DEFAULT_REJECT_WINDOW, clock=None, listeners=None):
        self.store = store
        self.reject_window = reject_window
        self.clock = clock or utcnow
        self._listeners = list(listeners or [])

    def subscribe(self, listener):
        """Register a callable that receives TransitionEvent objects"""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def within_reject_window(self, transaction, now=None):
        created_at = _field(transaction, 'created_at')
        if created_at is None:
            return False
        now = _as_naive_utc(now or self.clock())
        return now - _as_naive_utc(created_at) <= self.reject_window

    def can_reject(self, transaction, now=None):
        """Whether the Reject action should be offered for this row"""
        if _field(transaction, 'status') == STATUS_REJECTED:
            return False
        return self.within_reject_window(transaction, now=now)

    def request_status_change(self, transaction, target_status):
        """
        Move a transaction to target_status and return the stored record.

        Args:
            transaction: record with an `id`, or the id itself
            target_status: 'pending', 'approved' or 'rejected'

        Raises:
            InvalidStatus, TransactionNotFound, EligibilityExpired,
            StoreUpdateFailed
        """
        if target_status not in STATUSES:
            raise InvalidStatus(f"Invalid status: {target_status!r}")

        transaction_id = transaction if isinstance(transaction, (int, str)) else _field(transaction, 'id')
        current = self._fetch(transaction_id)
        previous_status = current.status

        if previous_status == target_status:
            logger.info("Transaction #%s already %s; nothing to do", transaction_id, target_status)
            return current

        used_fallback = False
        if target_status == STATUS_REJECTED:
            if not self.within_reject_window(current):
                raise EligibilityExpired(transaction_id, self.reject_window)
            updated, used_fallback = self._reject(transaction_id)
        else:
            updated = self._update(transaction_id, target_status)

        logger.info(
            "Transaction #%s status %s -> %s%s",
            transaction_id, previous_status, target_status,
            " (via pending)" if used_fallback else "",
        )

        if target_status in NOTIFY_STATUSES:
            self._dispatch(TransitionEvent(
                transaction_id=updated.id,
                user_id=updated.user_id,
                previous_status=previous_status,
                new_status=updated.status,
                amount_cents=updated.amount_cents,
                method=updated.method,
                timestamp=datetime.now(timezone.utc),
                used_fallback=used_fallback,
            ))
        return updated

    def create_pending_transaction(self, user_id, amount_cents, method, referral_code=None):
        """Insert a new cash-in request in pending state and return it"""
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidTransaction("User ID is required.")
        user_id = user_id.strip()
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
            raise InvalidTransaction("Amount must be a positive whole number of cents.")
        if method not in METHODS:
            raise InvalidTransaction(f"Invalid method: {method!r}. Use one of {', '.join(METHODS)}.")

        fields = {
            'user_id': user_id,
            'amount_cents': amount_cents,
            'method': method,
            'status': STATUS_PENDING,
            'referral_code': (referral_code or '').strip() or None,
        }
        try:
            created = self.store.insert(fields)
        except StoreError as e:
            logger.error("Creating cash-in request for %s failed: %s", user_id, e)
            raise StoreWriteFailed(f"Could not create cash-in request: {e}", cause=e) from e
        logger.info("Cash-in request #%s created for %s (%s cents via %s)",
                    created.id, user_id, amount_cents, method)
        return created

    def _fetch(self, transaction_id):
        try:
            current = self.store.get_by_id(transaction_id)
        except StoreError as e:
            raise StoreUpdateFailed(f"Could not load transaction #{transaction_id}: {e}", cause=e) from e
        if current is None:
            raise TransactionNotFound(transaction_id)
        return current

    def _update(self, transaction_id, status):
        try:
            return self.store.update_status(transaction_id, status)
        except StoreError as e:
            raise StoreUpdateFailed(f"Could not set transaction #{transaction_id} to {status}: {e}", cause=e) from e

    def _reject(self, transaction_id):
        """Direct reject, falling back to pending -> rejected on a policy violation."""
        try:
            return self.store.update_status(transaction_id, STATUS_REJECTED), False
        except StoreError as direct_error:
            if not is_transition_policy_violation(direct_error):
                raise StoreUpdateFailed(
                    f"Could not reject transaction #{transaction_id}: {direct_error}", cause=direct_error
                ) from direct_error
            original = direct_error

        logger.warning("Direct reject of #%s blocked (%s); retrying via pending", transaction_id, original)
        try:
            self.store.update_status(transaction_id, STATUS_PENDING)
        except StoreError:
            # The fallback never got going; report what blocked the reject.
            raise StoreUpdateFailed(
                f"Could not reject transaction #{transaction_id}: {original}", cause=original
            ) from original

        try:
            return self.store.update_status(transaction_id, STATUS_REJECTED), True
        except StoreError as e:
            raise StoreUpdateFailed(
                f"Could not reject transaction #{transaction_id} after moving it to pending: {e}", cause=e
            ) from e

    def _dispatch(self, event):
        for listener in list(self._listeners):
            try:
                listener(event)
            except NotificationFailed as e:
                logger.warning("Notification for transaction #%s failed: %s", event.transaction_id, e)
            except Exception:
                logger.error("Transition listener %r failed for %r", listener, event, exc_info=True)


def get_status_engine():
    """Engine configured for the current app (see app.create_app)."""
    from flask import current_app
    return current_app.extensions['status_engine']
