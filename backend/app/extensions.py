"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy as a module-level object so models can be declared
without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` from here wherever needed.

    from backend.app.extensions import db

The Mapbox and S3 clients are NOT module-level: the factory builds them per app
and stores them on app.extensions (see get_mapbox / get_storage), so tests can
swap in fakes per app instance.
"""

from flask import current_app
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def get_mapbox():
    """Returns the MapboxClient attached to the current app."""
    return current_app.extensions["mapbox"]


def get_storage():
    """Returns the S3Storage attached to the current app."""
    return current_app.extensions["storage"]
