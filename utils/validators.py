"""
Form input validators
"""
import re

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(email):
    """Basic shape check; delivery is the mail server's problem"""
    return bool(email) and EMAIL_REGEX.match(email.strip()) is not None
