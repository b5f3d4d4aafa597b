"""
Admin authentication routes
"""
from functools import wraps
from flask import render_template, request, redirect, url_for, flash, Blueprint, session, current_app, jsonify
from models import db
from models.admin import Admin
from utils.validators import validate_email
from utils.auth_utils import generate_admin_reset_token, verify_admin_reset_token
from sqlalchemy import func

admin_auth_bp = Blueprint('admin_auth', __name__, url_prefix='/admin')


def get_current_admin():
    """Admin for the current session, or None"""
    admin_id = session.get('admin_id')
    if admin_id is None:
        return None
    return db.session.get(Admin, admin_id)


def _wants_json():
    return request.is_json or request.path.startswith('/admin/api/')


def admin_required(f):
    """Decorator to require admin login and validate admin exists"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        admin = get_current_admin()
        message = None
        if 'admin_id' not in session:
            message = 'Please log in to access the admin panel.'
        elif not admin:
            message = 'Admin account not found. Please log in again.'
        elif not admin.is_active:
            message = 'Your admin account is inactive. Please contact support.'

        if message:
            session.clear()
            if _wants_json():
                return jsonify({'success': False, 'message': message}), 401
            flash(message, 'error')
            return redirect(url_for('admin_auth.login', next=request.path))

        return f(*args, **kwargs)
    return decorated_function


def _safe_next(next_page):
    """Only follow relative in-app redirects"""
    if next_page and next_page.startswith('/') and not next_page.startswith('//'):
        return next_page
    return None


@admin_auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """Admin login"""
    if 'admin_id' in session and get_current_admin():
        return redirect(url_for('admin_dashboard.dashboard'))

    if request.method == 'POST':
        login_id = request.form.get('email', '').strip()  # Can be email or username
        password = request.form.get('password', '')

        if not login_id or not password:
            flash('Please enter both email/username and password.', 'error')
            return render_template('admin/login.html'), 400

        if '@' in login_id and not validate_email(login_id):
            flash('Please enter a valid email address.', 'error')
            return render_template('admin/login.html'), 400

        # Email first (case-insensitive), then username
        admin = None
        if '@' in login_id:
            admin = Admin.query.filter(func.lower(Admin.email) == login_id.lower()).first()
        if not admin:
            admin = Admin.query.filter(func.lower(Admin.username) == login_id.lower()).first()

        if admin and admin.check_password(password):
            if not admin.is_active:
                flash('Your admin account is inactive. Please contact support.', 'error')
                return render_template('admin/login.html'), 403

            session.clear()
            session['admin_id'] = admin.id
            session['admin_username'] = admin.username
            session['admin_role'] = admin.role
            session.permanent = True
            current_app.logger.info("Admin %s logged in", admin.username)

            flash(f'Welcome back, {admin.username}!', 'success')
            return redirect(_safe_next(request.args.get('next')) or url_for('admin_dashboard.dashboard'))

        current_app.logger.warning("Failed admin login for %s", login_id)
        flash('Invalid email or password.', 'error')
        return render_template('admin/login.html'), 401

    return render_template('admin/login.html')


@admin_auth_bp.route("/logout")
def logout():
    """Admin logout"""
    session.clear()
    flash("You have been logged out successfully.", "success")
    return redirect(url_for("admin_auth.login"))


@admin_auth_bp.route("/forgot-password", methods=["GET", "POST"])
def forgot_password():
    """Admin forgot password: enter email, send reset link."""
    if request.method == "POST":
        email = request.form.get("email", "").strip().lower()
        if not email or not validate_email(email):
            flash("Please enter a valid email address.", "error")
            return render_template("admin/forgot_password.html"), 400

        admin = Admin.query.filter(func.lower(Admin.email) == email).first()
        if admin and admin.is_active:
            try:
                from utils.mail import send_admin_password_reset_email
                token = generate_admin_reset_token(admin)
                reset_url = url_for("admin_auth.reset_password", token=token, _external=True)
                send_admin_password_reset_email(admin, reset_url)
            except Exception as e:
                current_app.logger.error("Admin password reset email error: %s", e, exc_info=True)
        flash("If an admin account exists with that email, a password reset link has been sent.", "success")

    return render_template("admin/forgot_password.html")


@admin_auth_bp.route("/reset-password/<token>", methods=["GET", "POST"])
def reset_password(token):
    """Admin reset password with token."""
    admin = verify_admin_reset_token(token)
    if not admin:
        flash("Invalid or expired reset link. Please request a new one.", "error")
        return redirect(url_for("admin_auth.forgot_password"))

    if request.method == "POST":
        password = request.form.get("password", "")
        retype = request.form.get("retype_password", "")
        if not password or len(password) < 8:
            flash("Password must be at least 8 characters.", "error")
            return render_template("admin/reset_password.html", token=token), 400
        if password != retype:
            flash("Passwords do not match.", "error")
            return render_template("admin/reset_password.html", token=token), 400
        try:
            admin.set_password(password)
            db.session.commit()
            flash("Your admin password has been reset. Please log in with your new password.", "success")
            return redirect(url_for("admin_auth.login"))
        except Exception as e:
            db.session.rollback()
            current_app.logger.error("Admin password reset error: %s", e, exc_info=True)
            flash("Failed to reset password. Please try again.", "error")

    return render_template("admin/reset_password.html", token=token)
