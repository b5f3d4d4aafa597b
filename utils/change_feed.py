"""
Row-change notifications for the wallet table and the read-through cache the
admin views read from.

Mapper events queue a snapshot of each inserted/updated/deleted wallet row on
the session; the queue is published to the current app's ChangeFeed only
after the session commits, and dropped on rollback.
"""
import logging
import threading

from flask import current_app, has_app_context
from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

from models.wallet_transaction import WalletTransaction

logger = logging.getLogger(__name__)

INSERT = 'insert'
UPDATE = 'update'
DELETE = 'delete'

_PENDING_KEY = 'wallet_changes'
_hooks_installed = False
_hooks_lock = threading.Lock()


class ChangeEvent:
    """One committed change: kind is insert/update/delete, row is a snapshot dict."""

    def __init__(self, kind, row):
        self.kind = kind
        self.row = row

    def __repr__(self):
        return f'<ChangeEvent {self.kind} #{self.row.get("id")}>'


class ChangeFeed:
    """Fan-out of ChangeEvents to subscribers within one process."""

    def __init__(self):
        self._listeners = []
        self._lock = threading.Lock()

    def subscribe(self, listener):
        with self._lock:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, change):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.error("Change listener %r failed for %r", listener, change, exc_info=True)

    def init_app(self, app):
        app.extensions['change_feed'] = self
        install_session_hooks()


def _queue(kind, target):
    session = object_session(target)
    if session is None:
        return
    session.info.setdefault(_PENDING_KEY, []).append((kind, target.snapshot()))


def _after_insert(mapper, connection, target):
    _queue(INSERT, target)


def _after_update(mapper, connection, target):
    _queue(UPDATE, target)


def _after_delete(mapper, connection, target):
    _queue(DELETE, target)


def _after_commit(session):
    changes = session.info.pop(_PENDING_KEY, None)
    if not changes or not has_app_context():
        return
    feed = current_app.extensions.get('change_feed')
    if feed is None:
        return
    for kind, row in changes:
        feed.publish(ChangeEvent(kind, row))


def _after_rollback(session, previous_transaction):
    session.info.pop(_PENDING_KEY, None)


def install_session_hooks():
    """Register the SQLAlchemy listeners once per process."""
    global _hooks_installed
    with _hooks_lock:
        if _hooks_installed:
            return
        event.listen(WalletTransaction, 'after_insert', _after_insert)
        event.listen(WalletTransaction, 'after_update', _after_update)
        event.listen(WalletTransaction, 'after_delete', _after_delete)
        event.listen(Session, 'after_commit', _after_commit)
        event.listen(Session, 'after_soft_rollback', _after_rollback)
        _hooks_installed = True


class TransactionCache:
    """
    Locally cached transaction list, newest first, kept current by ChangeEvents.

    `loader` returns row snapshots; it runs on first use and on refresh().
    Overrides are partial rows merged over the cached ones, used to mask a
    row's state while a multi-step change is in flight.
    """

    def __init__(self, loader):
        self._loader = loader
        self._rows = None
        self._overrides = {}
        self._loads_in_flight = 0
        self._queued = []
        self._lock = threading.RLock()

    def refresh(self):
        with self._lock:
            self._loads_in_flight += 1
        rows = None
        try:
            rows = list(self._loader())
        finally:
            with self._lock:
                self._loads_in_flight -= 1
                queued = self._queued
                if not self._loads_in_flight:
                    self._queued = []
                if rows is not None:
                    self._rows = rows
                    # Changes committed while the loader ran may be missing from its snapshot
                    for change in queued:
                        self._apply_to_rows(change)
        return self.rows()

    def _ensure_loaded(self):
        if self._rows is None:
            self.refresh()

    def rows(self):
        self._ensure_loaded()
        with self._lock:
            return [self._merged(row) for row in self._rows]

    def get(self, transaction_id):
        self._ensure_loaded()
        with self._lock:
            for row in self._rows:
                if row['id'] == transaction_id:
                    return self._merged(row)
        return None

    def _merged(self, row):
        override = self._overrides.get(row['id'])
        if override:
            merged = dict(row)
            merged.update(override)
            return merged
        return dict(row)

    def apply(self, change):
        """ChangeFeed listener"""
        with self._lock:
            if self._loads_in_flight:
                self._queued.append(change)
            if self._rows is None:
                # Not loaded yet; the first load reads the committed state
                return
            self._apply_to_rows(change)

    def _apply_to_rows(self, change):
        row = change.row
        if change.kind == INSERT:
            if not any(r['id'] == row['id'] for r in self._rows):
                self._rows.insert(0, row)
        elif change.kind == UPDATE:
            self._rows = [row if r['id'] == row['id'] else r for r in self._rows]
        elif change.kind == DELETE:
            self._rows = [r for r in self._rows if r['id'] != row['id']]

    def set_override(self, transaction_id, **fields):
        with self._lock:
            self._overrides.setdefault(transaction_id, {}).update(fields)

    def clear_override(self, transaction_id):
        with self._lock:
            self._overrides.pop(transaction_id, None)

    def overrides(self):
        with self._lock:
            return {key: dict(value) for key, value in self._overrides.items()}


def get_transaction_cache():
    """Cache configured for the current app (see app.create_app)."""
    return current_app.extensions['transaction_cache']
