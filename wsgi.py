"""
WSGI entry point and Flask CLI target.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi create-user ceo@example.com --role ceo
    flask --app wsgi issue-token ceo@example.com
    flask --app wsgi init-ledgers
"""

from app import create_app

app = create_app()
