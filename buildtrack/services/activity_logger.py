"""
Project activity feed writer.

``write_activity`` appends one row and flushes so callers keep transaction
control. ``log_activity`` and the ``log_*`` helpers are best-effort: a store
failure is logged and swallowed inside a savepoint so the caller's unit of
work survives.

Usage:
    from buildtrack.services.activity_logger import log_task_completed

    log_task_completed("Pour foundation", project_id=1, task_id=7)
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from buildtrack.models import db
from buildtrack.models.activity import Activity

logger = logging.getLogger(__name__)


def _request_actor() -> str | None:
    """Actor id from the ``X-User-Id`` header when inside a request."""
    try:
        from flask import has_request_context, request
        if has_request_context():
            return request.headers.get("X-User-Id") or None
    except RuntimeError:
        return None
    return None


def write_activity(
    *,
    activity_type: str,
    title: str,
    description: str,
    project_id: int | None = None,
    task_id: int | None = None,
    user_id: str | None = None,
    metadata: dict | None = None,
) -> Activity:
    """Append a single activity row. Uses ``flush``; the caller commits."""
    activity = Activity(
        project_id=project_id,
        task_id=task_id,
        user_id=user_id if user_id is not None else _request_actor(),
        activity_type=activity_type,
        title=title,
        description=description,
        meta=metadata or {},
    )
    db.session.add(activity)
    db.session.flush()
    return activity


def log_activity(
    activity_type: str,
    title: str,
    description: str,
    project_id: int | None = None,
    task_id: int | None = None,
    metadata: dict | None = None,
    *,
    user_id: str | None = None,
) -> Activity | None:
    """Best-effort ``write_activity``. Returns None if the write failed."""
    try:
        with db.session.begin_nested():
            return write_activity(
                activity_type=activity_type,
                title=title,
                description=description,
                project_id=project_id,
                task_id=task_id,
                user_id=user_id,
                metadata=metadata,
            )
    except SQLAlchemyError:
        logger.exception(
            "Error logging %s activity", activity_type,
            extra={"project_id": project_id, "event_type": activity_type},
        )
        return None


# ── Common activities ────────────────────────────────────────────────────────


def log_task_completed(task_title: str, project_id: int, task_id: int):
    return log_activity(
        "task_completed",
        "Task Completed",
        f'completed task "{task_title}"',
        project_id,
        task_id,
    )


def log_milestone_reached(milestone_name: str, project_id: int, metadata: dict | None = None):
    return log_activity(
        "milestone_reached",
        "Milestone Reached",
        f'reached milestone "{milestone_name}"',
        project_id,
        metadata=metadata,
    )
