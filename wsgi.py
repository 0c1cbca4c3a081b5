"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db migrate -m "description"
    flask --app wsgi sync-progress
"""

from buildtrack import create_app

app = create_app()
