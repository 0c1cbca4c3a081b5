"""
BuildTrack — construction project progress service
Model package.

All models share the single ``db`` handle created here; ``create_app``
binds it to the Flask app with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
