"""
Database-side transition policy for user_wallet.

The trigger refuses a direct approved -> rejected status change; callers have
to pass through pending first. Installed at startup when
WALLET_ENFORCE_TRANSITION_POLICY is on. Safe to run repeatedly.
"""
import logging

from sqlalchemy import text

from models import db

logger = logging.getLogger(__name__)

POLICY_MESSAGE = 'status transition approved -> rejected not allowed'

_SQLITE_STATEMENTS = [
    f"""
    CREATE TRIGGER IF NOT EXISTS user_wallet_status_transition
    BEFORE UPDATE OF status ON user_wallet
    FOR EACH ROW WHEN OLD.status = 'approved' AND NEW.status = 'rejected'
    BEGIN
        SELECT RAISE(ABORT, '{POLICY_MESSAGE}');
    END
    """,
]

_POSTGRES_STATEMENTS = [
    f"""
    CREATE OR REPLACE FUNCTION user_wallet_status_transition() RETURNS trigger AS $$
    BEGIN
        IF OLD.status = 'approved' AND NEW.status = 'rejected' THEN
            RAISE EXCEPTION '{POLICY_MESSAGE}';
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS user_wallet_status_transition ON user_wallet",
    """
    CREATE TRIGGER user_wallet_status_transition
    BEFORE UPDATE OF status ON user_wallet
    FOR EACH ROW EXECUTE FUNCTION user_wallet_status_transition()
    """,
]


def install_transition_policy():
    """Create the trigger for the current engine's dialect. Returns True if installed."""
    dialect = db.engine.dialect.name
    if dialect == 'sqlite':
        statements = _SQLITE_STATEMENTS
    elif dialect == 'postgresql':
        statements = _POSTGRES_STATEMENTS
    else:
        logger.warning("Transition policy not available for dialect %s", dialect)
        return False

    try:
        for statement in statements:
            db.session.execute(text(statement))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Transition policy installed on user_wallet (%s)", dialect)
    return True


def drop_transition_policy():
    """Remove the trigger (used by tests and maintenance scripts)."""
    dialect = db.engine.dialect.name
    if dialect == 'sqlite':
        db.session.execute(text("DROP TRIGGER IF EXISTS user_wallet_status_transition"))
    elif dialect == 'postgresql':
        db.session.execute(text("DROP TRIGGER IF EXISTS user_wallet_status_transition ON user_wallet"))
    db.session.commit()
