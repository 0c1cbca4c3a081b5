"""Project and task CRUD service.

Functions return ``(obj, err)`` tuples where ``err`` is ``{"error": str,
"status": int}``; they ``flush`` and leave the commit to the blueprint.
Progress fields (``current_phase`` advancement, ``progress_percentage``) are
owned by ``progress_sync`` and are not written here.
"""

from __future__ import annotations

import math
from datetime import date
from decimal import Decimal

from buildtrack.core.phase_catalog import PhaseCatalog
from buildtrack.models import db
from buildtrack.models.project import (
    PROJECT_STATUSES,
    PROJECT_TYPES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Project,
    Task,
)
from buildtrack.services.leed_points import get_leed_catalog, populate_task_leed_points
from buildtrack.utils.helpers import parse_date


def _clean(value) -> str:
    return str(value or "").strip()


def _invalid(field: str, allowed) -> dict:
    return {"error": f"{field} must be one of: {', '.join(sorted(allowed))}", "status": 400}


def _parse_amount(field: str, value, parse=Decimal):
    """Parse a non-negative number; blank values become ``None``. Returns ``(value, err)``."""
    if value is None or value == "":
        return None, None
    try:
        number = parse(str(value))
        valid = math.isfinite(number) and number >= 0
    except (ArithmeticError, ValueError, TypeError):
        valid = False
    if not valid:
        return None, {"error": f"{field} must be a non-negative number", "status": 400}
    return number, None


def _leed_subcategory(value) -> tuple[str | None, dict | None]:
    subcategory_id = _clean(value) or None
    if subcategory_id and not get_leed_catalog().contains(subcategory_id):
        return None, {"error": f"Unknown LEED subcategory '{subcategory_id}'", "status": 400}
    return subcategory_id, None


# ── Projects ─────────────────────────────────────────────────────────────────


def list_projects(*, status: str | None = None, phase: str | None = None, owner_id: str | None = None):
    """Return a query of projects, newest first, optionally filtered."""
    query = Project.query
    if status:
        query = query.filter(Project.status == status)
    if phase:
        query = query.filter(Project.current_phase == phase)
    if owner_id:
        query = query.filter(Project.owner_id == owner_id)
    return query.order_by(Project.created_at.desc(), Project.id.desc())


def create_project(*, data: dict, catalog: PhaseCatalog) -> tuple[Project | None, dict | None]:
    """Create a project. New projects start in the catalog's first phase at 0 %."""
    name = _clean(data.get("name"))
    if not name:
        return None, {"error": "name is required", "status": 400}

    project_type = _clean(data.get("project_type")) or "new_construction"
    if project_type not in PROJECT_TYPES:
        return None, _invalid("project_type", PROJECT_TYPES)

    status = _clean(data.get("status")) or "planning"
    if status not in PROJECT_STATUSES:
        return None, _invalid("status", PROJECT_STATUSES)

    current_phase = _clean(data.get("current_phase")) or catalog.first_phase()
    if not catalog.contains(current_phase):
        return None, _invalid("current_phase", catalog.phase_order())

    budget, err = _parse_amount("budget", data.get("budget"))
    if err:
        return None, err

    project = Project(
        name=name,
        description=data.get("description"),
        project_type=project_type,
        status=status,
        current_phase=current_phase,
        progress_percentage=0,
        owner_id=data.get("owner_id"),
        location=data.get("location"),
        budget=budget,
        start_date=parse_date(data.get("start_date")),
        expected_completion_date=parse_date(data.get("expected_completion_date")),
    )
    db.session.add(project)
    db.session.flush()
    return project, None


def update_project(*, project: Project, data: dict, catalog: PhaseCatalog) -> tuple[Project | None, dict | None]:
    """Update editable project fields.

    ``current_phase`` may be set manually (e.g. to correct a project);
    ``progress_percentage`` is derived and cannot be written.
    """
    if "progress_percentage" in data:
        return None, {"error": "progress_percentage is calculated and cannot be set", "status": 400}

    if "name" in data:
        name = _clean(data.get("name"))
        if not name:
            return None, {"error": "name cannot be empty", "status": 400}
        project.name = name

    if "project_type" in data:
        project_type = _clean(data.get("project_type"))
        if project_type not in PROJECT_TYPES:
            return None, _invalid("project_type", PROJECT_TYPES)
        project.project_type = project_type

    if "status" in data:
        status = _clean(data.get("status"))
        if status not in PROJECT_STATUSES:
            return None, _invalid("status", PROJECT_STATUSES)
        project.status = status

    if "current_phase" in data:
        phase = _clean(data.get("current_phase"))
        if not catalog.contains(phase):
            return None, _invalid("current_phase", catalog.phase_order())
        project.current_phase = phase

    if "budget" in data:
        budget, err = _parse_amount("budget", data.get("budget"))
        if err:
            return None, err
        project.budget = budget

    for attr in ("description", "owner_id", "location"):
        if attr in data:
            setattr(project, attr, data.get(attr))

    for attr in ("start_date", "expected_completion_date", "actual_completion_date"):
        if attr in data:
            setattr(project, attr, parse_date(data.get(attr)))

    db.session.flush()
    return project, None


# ── Tasks ────────────────────────────────────────────────────────────────────


def list_tasks(*, project_id: int, phase: str | None = None, status: str | None = None):
    query = Task.query.filter(Task.project_id == project_id)
    if phase:
        query = query.filter(Task.phase == phase)
    if status:
        query = query.filter(Task.status == status)
    return query.order_by(Task.created_at.asc(), Task.id.asc())


def create_task(*, project: Project, data: dict, catalog: PhaseCatalog) -> tuple[Task | None, dict | None]:
    """Create a task in ``project``; defaults to the project's current phase."""
    title = _clean(data.get("title"))
    if not title:
        return None, {"error": "title is required", "status": 400}

    phase = _clean(data.get("phase")) or project.current_phase
    if not catalog.contains(phase):
        return None, _invalid("phase", catalog.phase_order())

    priority = _clean(data.get("priority")) or "medium"
    if priority not in TASK_PRIORITIES:
        return None, _invalid("priority", TASK_PRIORITIES)

    status = _clean(data.get("status")) or "pending"
    if status not in TASK_STATUSES:
        return None, _invalid("status", TASK_STATUSES)

    estimated_hours, err = _parse_amount("estimated_hours", data.get("estimated_hours"), float)
    if err:
        return None, err

    leed_subcategory_id, err = _leed_subcategory(data.get("leed_subcategory_id"))
    if err:
        return None, err

    task = Task(
        project_id=project.id,
        title=title,
        description=data.get("description"),
        phase=phase,
        priority=priority,
        status="pending",
        assigned_to=data.get("assigned_to"),
        created_by=data.get("created_by"),
        ai_generated=bool(data.get("ai_generated", False)),
        estimated_hours=estimated_hours,
        due_date=parse_date(data.get("due_date")),
        leed_subcategory_id=leed_subcategory_id,
    )
    _apply_status(task, status)
    populate_task_leed_points(task)
    db.session.add(task)
    db.session.flush()
    return task, None


def update_task(*, task: Task, data: dict, catalog: PhaseCatalog) -> tuple[Task | None, dict | None]:
    """Update task fields. Status changes go through ``set_task_status``."""
    if "status" in data:
        return None, {"error": "Use PATCH /tasks/<id>/status to change status", "status": 400}

    if "title" in data:
        title = _clean(data.get("title"))
        if not title:
            return None, {"error": "title cannot be empty", "status": 400}
        task.title = title

    if "phase" in data:
        phase = _clean(data.get("phase"))
        if not catalog.contains(phase):
            return None, _invalid("phase", catalog.phase_order())
        task.phase = phase

    if "priority" in data:
        priority = _clean(data.get("priority"))
        if priority not in TASK_PRIORITIES:
            return None, _invalid("priority", TASK_PRIORITIES)
        task.priority = priority

    for attr in ("estimated_hours", "actual_hours"):
        if attr in data:
            hours, err = _parse_amount(attr, data.get(attr), float)
            if err:
                return None, err
            setattr(task, attr, hours)

    if "leed_subcategory_id" in data:
        leed_subcategory_id, err = _leed_subcategory(data.get("leed_subcategory_id"))
        if err:
            return None, err
        if leed_subcategory_id != task.leed_subcategory_id:
            task.leed_subcategory_id = leed_subcategory_id
            task.leed_points_possible = None
            task.leed_points_achieved = None

    if "leed_points_achieved" in data:
        points, err = _parse_amount("leed_points_achieved", data.get("leed_points_achieved"), int)
        if err:
            return None, err
        task.leed_points_achieved = points

    populate_task_leed_points(task)
    if (task.leed_points_possible is not None and task.leed_points_achieved is not None
            and task.leed_points_achieved > task.leed_points_possible):
        return None, {
            "error": f"leed_points_achieved cannot exceed {task.leed_points_possible} possible points",
            "status": 400,
        }

    for attr in ("description", "assigned_to"):
        if attr in data:
            setattr(task, attr, data.get(attr))

    for attr in ("start_date", "due_date"):
        if attr in data:
            setattr(task, attr, parse_date(data.get(attr)))

    db.session.flush()
    return task, None


def _apply_status(task: Task, new_status: str, today: date | None = None) -> None:
    """Set status with its date/percentage side effects."""
    today = today or date.today()
    task.status = new_status
    if new_status == "completed":
        task.completed_date = today
        task.progress_percentage = 100
    else:
        task.completed_date = None
    if new_status == "in_progress" and task.start_date is None:
        task.start_date = today


def set_task_status(*, task: Task, new_status: str) -> tuple[str | None, dict | None]:
    """Change a task's status. Returns ``(old_status, err)``.

    - completed: ``completed_date`` = today, ``progress_percentage`` = 100
    - in_progress: ``start_date`` = today when not yet started
    - anything else clears ``completed_date``
    - a LEED-linked task completed with no points recorded earns the credit's maximum
    """
    new_status = _clean(new_status)
    if new_status not in TASK_STATUSES:
        return None, _invalid("status", TASK_STATUSES)

    old_status = task.status
    _apply_status(task, new_status)
    populate_task_leed_points(task)
    db.session.flush()
    return old_status, None
