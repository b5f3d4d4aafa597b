"""
Admin password reset tokens
"""
import hmac
import base64
import time
from flask import current_app

# Password reset token lifetime: 1 hour
RESET_TOKEN_LIFETIME_SECONDS = 60 * 60


def _sign(payload):
    key = current_app.config.get("SECRET_KEY", "").encode("utf-8")
    return hmac.new(key, payload.encode("utf-8"), "sha256").hexdigest()


def generate_admin_reset_token(admin, now=None):
    """
    Signed token "<admin id>|<email>|<expiry>|<sig>", urlsafe base64.
    Expires after RESET_TOKEN_LIFETIME_SECONDS; changing the email invalidates it.
    """
    expiry = int(now if now is not None else time.time()) + RESET_TOKEN_LIFETIME_SECONDS
    payload = f"admin|{admin.id}|{admin.email.strip().lower()}|{expiry}"
    raw = f"{payload}|{_sign(payload)}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("utf-8").rstrip("=")


def verify_admin_reset_token(token, now=None):
    """Return the active Admin for a valid, unexpired token, else None."""
    from models import db
    from models.admin import Admin

    if not token or not isinstance(token, str):
        return None

    try:
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)).decode("utf-8")
        payload, sig = raw.rsplit("|", 1)
        if not hmac.compare_digest(sig, _sign(payload)):
            return None

        kind, admin_id_str, email, expiry_str = payload.split("|", 3)
        if kind != "admin":
            return None
        if int(expiry_str) < int(now if now is not None else time.time()):
            return None

        admin = db.session.get(Admin, int(admin_id_str))
    except (ValueError, UnicodeDecodeError):
        return None

    if not admin or not admin.is_active or admin.email.strip().lower() != email:
        return None
    return admin
