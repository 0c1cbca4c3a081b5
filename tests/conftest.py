"""
Shared pytest fixtures for the BuildTrack test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - project: Pre-created active Project in the concept phase
    - make_task: factory for ORM-level tasks
"""

import pytest

from buildtrack import create_app
from buildtrack.models import db as _db
from buildtrack.models.project import Project, Task
from buildtrack.services.progress_events import progress_notifier


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        progress_notifier.clear()
        yield
        progress_notifier.clear()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


def create_project(**overrides):
    """Insert a project directly (bypasses API validation)."""
    values = {
        "name": "Riverside Offices",
        "project_type": "new_construction",
        "status": "active",
        "current_phase": "concept",
        "progress_percentage": 0,
    }
    values.update(overrides)
    project = Project(**values)
    _db.session.add(project)
    _db.session.commit()
    return project


@pytest.fixture()
def make_project():
    """Return the project factory for tests that need custom fields."""
    return create_project


@pytest.fixture()
def project():
    """An active new-construction project in the concept phase."""
    return create_project()


@pytest.fixture()
def make_task():
    """Return a factory that inserts a task and commits."""

    def _make(project, *, phase="concept", status="pending", priority="medium", title=None, **extra):
        task = Task(
            project_id=project.id,
            title=title or f"{phase} {priority} task",
            phase=phase,
            status=status,
            priority=priority,
            **extra,
        )
        _db.session.add(task)
        _db.session.commit()
        return task

    return _make
