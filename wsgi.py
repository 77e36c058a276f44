"""
WSGI entry point (gunicorn, Flask CLI).

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi seed-demo
    flask --app wsgi refresh-consolidation Acme --year 2024
"""

from app import create_app

app = create_app()
