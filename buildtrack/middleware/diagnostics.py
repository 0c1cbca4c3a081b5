"""
Startup diagnostics — runs once when the Flask app starts.

Checks the database and the phase catalog, then logs a summary banner.
"""

import logging
import sys

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from buildtrack.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except SQLAlchemyError as exc:
            db_status = "FAILED"
            issues.append(f"Database unreachable: {exc}")

        # ── Phase catalog ────────────────────────────────────────────
        service = app.extensions.get("progress_sync")
        if service is not None:
            catalog = service.catalog
            catalog_desc = " > ".join(f"{p}:{catalog.phase_weight(p)}" for p in catalog.active_phases())
        else:
            catalog_desc = "not initialised"
            issues.append("Progress sync service not registered")

        logger.info(
            "BuildTrack startup — python=%s env=%s debug=%s database=%s (%s)",
            py, app.config.get("ENV", "development"), app.debug, db_type, db_status,
        )
        logger.info("Phase catalog: %s", catalog_desc)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  %s", issue)
        else:
            logger.info("All startup checks passed")
