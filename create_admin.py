"""
Create a wallet dashboard admin or reset an existing one's password.

    python create_admin.py EMAIL PASSWORD [--username NAME] [--role superadmin|staff]
"""
import argparse
import sys


def create_admin(email, password, username=None, role='staff'):
    """Create or update the admin with this email; returns (admin, created)"""
    from models import db
    from models.admin import Admin

    email = email.strip().lower()
    admin = Admin.query.filter(Admin.email.ilike(email)).first()
    created = admin is None
    if created:
        admin = Admin(username=(username or email.split('@')[0]).strip(), email=email)
        db.session.add(admin)
    elif username:
        admin.username = username.strip()

    admin.role = role
    admin.is_active = True
    admin.set_password(password)
    db.session.commit()
    return admin, created


def main(argv=None, app=None):
    parser = argparse.ArgumentParser(description="Create or reset a wallet dashboard admin")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--username")
    parser.add_argument("--role", choices=("superadmin", "staff"), default="staff")
    args = parser.parse_args(argv)

    if len(args.password) < 8:
        parser.error("password must be at least 8 characters")

    if app is None:
        from app import create_app
        app = create_app()
    with app.app_context():
        admin, created = create_admin(args.email, args.password, username=args.username, role=args.role)
        print(f"[SUCCESS] Admin {'created' if created else 'updated'}: {admin.email} ({admin.role})")
    return 0


if __name__ == '__main__':
    sys.exit(main())
