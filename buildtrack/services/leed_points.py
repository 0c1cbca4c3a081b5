"""
LEED points on tasks.

A task linked to a LEED subcategory (``leed_subcategory_id``) is worth that
subcategory's maximum score. ``populate_task_leed_points`` fills
``leed_points_possible`` and, for a completed task with nothing recorded yet,
credits the full score as achieved. Recorded achieved points are never
overwritten.

Writers ``flush``; the caller commits.

Usage:
    from buildtrack.services.leed_points import sync_task_leed_points

    synced = sync_task_leed_points(project_id)
"""

from __future__ import annotations

import logging
from collections import defaultdict

from flask import current_app, has_app_context

from buildtrack.core.leed_catalog import DEFAULT_LEED_CATALOG, LEEDCatalog, parse_subcategories_csv
from buildtrack.core.phase_catalog import PhaseCatalog
from buildtrack.models import db
from buildtrack.models.project import Project, Task

logger = logging.getLogger(__name__)


# ── Catalog wiring ───────────────────────────────────────────────────────────


def init_leed_catalog(app) -> LEEDCatalog:
    """Load ``LEED_SUBCATEGORIES_CSV`` when configured, else the built-in BD+C catalog."""
    path = app.config.get("LEED_SUBCATEGORIES_CSV")
    if path:
        with open(path, "rb") as fh:
            catalog = parse_subcategories_csv(fh.read())
        logger.info("Loaded %d LEED subcategories from %s", len(catalog), path)
    else:
        catalog = DEFAULT_LEED_CATALOG
    app.extensions["leed_catalog"] = catalog
    return catalog


def get_leed_catalog() -> LEEDCatalog:
    if has_app_context():
        catalog = current_app.extensions.get("leed_catalog")
        if catalog is not None:
            return catalog
    return DEFAULT_LEED_CATALOG


# ── Points ───────────────────────────────────────────────────────────────────


def populate_task_leed_points(task: Task, catalog: LEEDCatalog | None = None) -> bool:
    """Set the task's LEED points from its subcategory.

    Returns False (task untouched) when the task has no subcategory or the
    subcategory is not in the catalog.
    """
    if catalog is None:
        catalog = get_leed_catalog()
    subcategory = catalog.get(task.leed_subcategory_id)
    if subcategory is None:
        return False
    task.leed_points_possible = subcategory.max_score
    if task.status == "completed" and task.leed_points_achieved is None:
        task.leed_points_achieved = subcategory.max_score
    return True


def sync_task_leed_points(project_id: int, *, catalog: LEEDCatalog | None = None) -> int:
    """Re-derive LEED points for every linked task in a project.

    Returns the number of tasks whose subcategory was found.
    """
    if catalog is None:
        catalog = get_leed_catalog()
    tasks = (
        Task.query
        .filter(Task.project_id == project_id, Task.leed_subcategory_id.isnot(None))
        .order_by(Task.id)
        .all()
    )
    synced = 0
    for task in tasks:
        if populate_task_leed_points(task, catalog):
            synced += 1
        else:
            logger.warning(
                "Task %s references unknown LEED subcategory %s", task.id, task.leed_subcategory_id,
                extra={"project_id": project_id, "event_type": "leed_points_synced"},
            )
    db.session.flush()

    logger.info(
        "Synced LEED points for %d of %d tasks in project %s", synced, len(tasks), project_id,
        extra={"project_id": project_id, "event_type": "leed_points_synced"},
    )
    return synced


def leed_points_summary(project_id: int, *, catalog: LEEDCatalog | None = None) -> dict:
    """Possible and achieved points per category for a project's linked tasks."""
    if catalog is None:
        catalog = get_leed_catalog()
    tasks = Task.query.filter(Task.project_id == project_id, Task.leed_subcategory_id.isnot(None)).all()

    categories = defaultdict(lambda: {"possible": 0, "achieved": 0, "tasks": 0})
    for task in tasks:
        subcategory = catalog.get(task.leed_subcategory_id)
        key = subcategory.category if subcategory else "Unknown"
        bucket = categories[key]
        bucket["tasks"] += 1
        bucket["possible"] += task.leed_points_possible or 0
        bucket["achieved"] += task.leed_points_achieved or 0

    return {
        "project_id": project_id,
        "points_possible": sum(c["possible"] for c in categories.values()),
        "points_achieved": sum(c["achieved"] for c in categories.values()),
        "categories": dict(sorted(categories.items())),
    }


# ── Task seeding ─────────────────────────────────────────────────────────────


def seed_leed_tasks(
    project: Project,
    *,
    catalog: LEEDCatalog | None = None,
    phases: PhaseCatalog | None = None,
    category_ids: list[str] | None = None,
    user_id: str | None = None,
) -> list[Task]:
    """Create one pending task per catalog subcategory not yet linked in the project.

    Phase and priority come from the subcategory: prerequisites and credits
    worth 5+ points are high priority, single-point credits low.
    A subcategory phase missing from ``phases`` falls back to the project's
    current phase.
    """
    if catalog is None:
        catalog = get_leed_catalog()
    existing = {
        sub_id for (sub_id,) in
        db.session.query(Task.leed_subcategory_id)
        .filter(Task.project_id == project.id, Task.leed_subcategory_id.isnot(None))
    }

    created = []
    for subcategory in catalog.subcategories.values():
        if category_ids and subcategory.category_id not in category_ids:
            continue
        if subcategory.id in existing:
            continue
        phase = subcategory.phase
        if phases is not None and not phases.contains(phase):
            phase = project.current_phase
        task = Task(
            project_id=project.id,
            title=subcategory.task_title,
            description=subcategory.task_description,
            phase=phase,
            priority=subcategory.priority,
            status="pending",
            created_by=user_id,
            leed_subcategory_id=subcategory.id,
            leed_points_possible=subcategory.max_score,
        )
        db.session.add(task)
        created.append(task)

    db.session.flush()
    logger.info(
        "Seeded %d LEED tasks for project %s", len(created), project.id,
        extra={"project_id": project.id, "event_type": "leed_tasks_seeded"},
    )
    return created
