"""
Main Flask application entry point for the wallet cash-in admin dashboard
"""
import logging
import os
from datetime import timedelta
from flask import Flask, jsonify, redirect, request, url_for
from config import Config
from models import db
from utils.mail import mail

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    mail.init_app(app)

    from utils.change_feed import ChangeFeed, TransactionCache
    feed = ChangeFeed()
    feed.init_app(app)

    @app.errorhandler(500)
    def handle_500_error(e):
        if request.path.startswith("/admin/api/") or request.is_json:
            return jsonify({"success": False, "message": "Internal server error. Please try again later."}), 500
        return "Internal server error. Please try again later.", 500

    # Create tables and seed only inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
            if app.config.get("WALLET_ENFORCE_TRANSITION_POLICY"):
                from utils.transition_policy import install_transition_policy
                install_transition_policy()
            seed_admin(app.config)
        except Exception as e:
            logger.warning("Database init/seed skipped (non-fatal): %s", e)

    engine = build_status_engine(app.config)
    app.extensions['status_engine'] = engine

    from utils.transaction_store import SQLAlchemyTransactionStore
    store = SQLAlchemyTransactionStore()
    cache = TransactionCache(lambda: [t.snapshot() for t in store.list()])
    feed.subscribe(cache.apply)
    app.extensions['transaction_cache'] = cache

    from routes import admin_auth_bp, admin_dashboard_bp, transactions_bp, admin_notifications_bp
    app.register_blueprint(admin_auth_bp)
    app.register_blueprint(admin_dashboard_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(admin_notifications_bp)

    @app.route("/")
    def index():
        return redirect(url_for("admin_dashboard.dashboard"))

    @app.template_filter("pesos")
    def pesos_filter(amount_cents):
        return f"₱{(amount_cents or 0) / 100:,.2f}"

    return app


def build_status_engine(config):
    """Status engine over the SQLAlchemy store with the configured listeners"""
    from utils.notifications import record_transition_notification
    from utils.status_engine import StatusEngine
    from utils.transaction_store import SQLAlchemyTransactionStore

    engine = StatusEngine(
        SQLAlchemyTransactionStore(),
        reject_window=timedelta(hours=config.get("WALLET_REJECT_WINDOW_HOURS", 24)),
    )
    engine.subscribe(record_transition_notification)

    webhook_url = config.get("WALLET_WEBHOOK_URL")
    if webhook_url:
        from utils.webhook import WebhookNotifier
        engine.subscribe(WebhookNotifier(webhook_url, timeout=config.get("WALLET_WEBHOOK_TIMEOUT", 10)))
    else:
        logger.info("WALLET_WEBHOOK_URL not set; status webhooks disabled")
    return engine


def seed_admin(config):
    """Ensure the default superadmin exists. Existing passwords are left alone."""
    from models.admin import Admin

    seed_email = (config.get("SEED_ADMIN_EMAIL") or "").strip().lower()
    seed_password = config.get("SEED_ADMIN_PASSWORD")
    if not seed_email or not seed_password:
        return None
    seed_username = (config.get("SEED_ADMIN_USERNAME") or seed_email.split("@")[0]).strip()

    admin = Admin.query.filter(Admin.email.ilike(seed_email)).first()
    if admin:
        return admin

    admin = Admin(username=seed_username, email=seed_email, role="superadmin", is_active=True)
    admin.set_password(seed_password)
    db.session.add(admin)
    try:
        db.session.commit()
        logger.info("Superadmin ready. Email: %s", seed_email)
    except Exception as e:
        db.session.rollback()
        logger.error("Error seeding superadmin: %s", e)
        return None
    return admin


# WSGI entry point (Railway/Render/cPanel): gunicorn app:app
app = create_app()
application = app

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1"))
