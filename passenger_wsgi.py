"""
cPanel / Passenger WSGI entry point for the wallet admin dashboard.
Passenger looks for a module-level 'application'.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app import application  # noqa: E402,F401
