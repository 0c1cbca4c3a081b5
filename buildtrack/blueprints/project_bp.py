"""
BuildTrack
Project Blueprint — projects, tasks, and phase-weighted progress.

Endpoints:
    Projects:
        GET    /api/v1/projects                               — List (filters: status, phase, owner_id)
        POST   /api/v1/projects                               — Create (optional apply_template)
        GET    /api/v1/projects/<id>                          — Detail
        PUT    /api/v1/projects/<id>                          — Update
        DELETE /api/v1/projects/<id>                          — Delete (cascades tasks)
        POST   /api/v1/projects/<id>/apply-template           — Seed phases + tasks

    Tasks:
        GET    /api/v1/projects/<pid>/tasks                   — List (filters: phase, status)
        POST   /api/v1/projects/<pid>/tasks                   — Create
        GET    /api/v1/tasks/<id>                             — Detail
        PUT    /api/v1/tasks/<id>                             — Update
        DELETE /api/v1/tasks/<id>                             — Delete
        PATCH  /api/v1/tasks/<id>/status                      — Change status, sync progress

    Progress:
        GET    /api/v1/projects/<id>/progress                 — Phase info + catalog
        GET    /api/v1/projects/<id>/progress/phases          — Progress of every active phase
        POST   /api/v1/projects/<id>/progress/sync            — Full resync
        GET    /api/v1/projects/<id>/progress/history         — Progress snapshots
        GET    /api/v1/projects/<id>/activities               — Activity feed

    LEED:
        GET    /api/v1/projects/<id>/leed                      — Points per category
        POST   /api/v1/projects/<id>/leed/sync                 — Re-derive task points
        POST   /api/v1/projects/<id>/leed/tasks                — Seed one task per credit
"""

import logging

from flask import Blueprint, jsonify, request

from buildtrack.blueprints import paginate_query
from buildtrack.models import db
from buildtrack.models.activity import ACTIVITY_TYPES, Activity, ProgressEntry
from buildtrack.models.project import Project, Task
from buildtrack.services import progress_sync, project_service
from buildtrack.services.activity_logger import log_task_completed, write_activity
from buildtrack.services.leed_points import leed_points_summary, seed_leed_tasks, sync_task_leed_points
from buildtrack.services.project_templates import apply_project_template
from buildtrack.utils.errors import E, api_error
from buildtrack.utils.helpers import db_commit_or_error, get_or_404

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _catalog():
    return progress_sync.get_progress_service().catalog


def _service_error(svc_err):
    return api_error(E.VALIDATION_INVALID, svc_err["error"], status=svc_err["status"])


def _seed_from_template(project, data):
    counts = apply_project_template(
        project,
        total_budget=data.get("total_budget"),
        user_id=request.headers.get("X-User-Id"),
    )
    write_activity(
        activity_type="template_applied",
        title="Template Applied",
        description=f"Applied {project.project_type} template",
        project_id=project.id,
        metadata=counts,
    )
    return counts


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects", methods=["GET"])
def list_projects():
    """Return projects, newest first."""
    query = project_service.list_projects(
        status=request.args.get("status"),
        phase=request.args.get("phase"),
        owner_id=request.args.get("owner_id"),
    )
    projects, total = paginate_query(query)
    return jsonify({"items": [p.to_dict() for p in projects], "total": total}), 200


@project_bp.route("/projects", methods=["POST"])
def create_project():
    """Create a project, optionally seeded from its type's template."""
    data = request.get_json(silent=True) or {}
    project, svc_err = project_service.create_project(data=data, catalog=_catalog())
    if svc_err:
        return _service_error(svc_err)

    template = None
    if data.get("apply_template"):
        template = _seed_from_template(project, data)

    err = db_commit_or_error()
    if err:
        return err

    logger.info("Project %s created", project.id,
                extra={"project_id": project.id, "event_type": "project_created"})
    body = project.to_dict()
    if template is not None:
        body["template"] = template
    return jsonify(body), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    project, err = get_or_404(Project, project_id)
    if err:
        return err
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    """Update project fields. A manual phase change re-derives progress."""
    project, err = get_or_404(Project, project_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    old_phase = project.current_phase
    project, svc_err = project_service.update_project(project=project, data=data, catalog=_catalog())
    if svc_err:
        db.session.rollback()
        return _service_error(svc_err)

    err = db_commit_or_error()
    if err:
        return err

    if project.current_phase != old_phase:
        progress_sync.update_project_progress(project.id)
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    """Delete a project with its tasks, phase plans and history."""
    project, err = get_or_404(Project, project_id)
    if err:
        return err

    name = project.name
    db.session.delete(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": f"Project '{name}' deleted"}), 200


@project_bp.route("/projects/<int:project_id>/apply-template", methods=["POST"])
def apply_template(project_id):
    """Seed phase plans and starter tasks; 409 if already seeded."""
    project, err = get_or_404(Project, project_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    counts = _seed_from_template(project, data)
    err = db_commit_or_error()
    if err:
        return err

    progress = progress_sync.update_project_progress(project.id)
    return jsonify({**counts, "project_progress": progress}), 201


# ═════════════════════════════════════════════════════════════════════════════
# TASKS
# ═════════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/tasks", methods=["GET"])
def list_tasks(project_id):
    _project, err = get_or_404(Project, project_id)
    if err:
        return err

    query = project_service.list_tasks(
        project_id=project_id,
        phase=request.args.get("phase"),
        status=request.args.get("status"),
    )
    tasks, total = paginate_query(query)
    return jsonify({"items": [t.to_dict() for t in tasks], "total": total}), 200


@project_bp.route("/projects/<int:project_id>/tasks", methods=["POST"])
def create_task(project_id):
    """Create a task; the project's progress is recomputed afterwards."""
    project, err = get_or_404(Project, project_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    task, svc_err = project_service.create_task(project=project, data=data, catalog=_catalog())
    if svc_err:
        return _service_error(svc_err)

    err = db_commit_or_error()
    if err:
        return err

    progress = progress_sync.update_project_progress(project_id)
    return jsonify({"task": task.to_dict(), "project_progress": progress}), 201


@project_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    task, err = get_or_404(Task, task_id)
    if err:
        return err
    return jsonify(task.to_dict()), 200


@project_bp.route("/tasks/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    """Update task fields. Phase or priority changes re-derive progress."""
    task, err = get_or_404(Task, task_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    task, svc_err = project_service.update_task(task=task, data=data, catalog=_catalog())
    if svc_err:
        db.session.rollback()
        return _service_error(svc_err)

    err = db_commit_or_error()
    if err:
        return err

    if "phase" in data or "priority" in data:
        progress_sync.update_project_progress(task.project_id)
    return jsonify(task.to_dict()), 200


@project_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    task, err = get_or_404(Task, task_id)
    if err:
        return err

    project_id = task.project_id
    db.session.delete(task)
    err = db_commit_or_error()
    if err:
        return err

    progress = progress_sync.update_project_progress(project_id)
    return jsonify({"message": "Task deleted", "project_progress": progress}), 200


@project_bp.route("/tasks/<int:task_id>/status", methods=["PATCH"])
def change_task_status(task_id):
    """Change a task's status, then advance the phase and sync progress.

    Body: ``{"status": "pending" | "in_progress" | "completed" | "blocked"}``
    """
    task, err = get_or_404(Task, task_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")

    old_status, svc_err = project_service.set_task_status(task=task, new_status=data["status"])
    if svc_err:
        db.session.rollback()
        return _service_error(svc_err)

    if task.status == "completed" and old_status != "completed":
        log_task_completed(task.title, task.project_id, task.id)

    err = db_commit_or_error()
    if err:
        return err

    progress = progress_sync.handle_task_status_change(task.project_id, task.id, old_status, task.status)
    return jsonify({"task": task.to_dict(), "project_progress": progress}), 200


# ═════════════════════════════════════════════════════════════════════════════
# PROGRESS
# ═════════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/progress", methods=["GET"])
def get_progress(project_id):
    _project, err = get_or_404(Project, project_id)
    if err:
        return err
    return jsonify(progress_sync.get_phase_info(project_id)), 200


@project_bp.route("/projects/<int:project_id>/progress/phases", methods=["GET"])
def get_phase_progress(project_id):
    _project, err = get_or_404(Project, project_id)
    if err:
        return err
    return jsonify({
        "project_id": project_id,
        "phases": progress_sync.calculate_all_phase_progress(project_id),
    }), 200


@project_bp.route("/projects/<int:project_id>/progress/sync", methods=["POST"])
def sync_progress(project_id):
    """Advance, recompute and persist; completes active projects at 100 %."""
    project, err = get_or_404(Project, project_id)
    if err:
        return err

    progress = progress_sync.sync_all_project_data(project_id)
    db.session.refresh(project)
    return jsonify({"project_progress": progress, "project": project.to_dict()}), 200


@project_bp.route("/projects/<int:project_id>/progress/history", methods=["GET"])
def progress_history(project_id):
    _project, err = get_or_404(Project, project_id)
    if err:
        return err

    query = (
        ProgressEntry.query
        .filter(ProgressEntry.project_id == project_id)
        .order_by(ProgressEntry.created_at.desc(), ProgressEntry.id.desc())
    )
    entries, total = paginate_query(query)
    return jsonify({"items": [e.to_dict() for e in entries], "total": total}), 200


@project_bp.route("/projects/<int:project_id>/activities", methods=["GET"])
def list_activities(project_id):
    _project, err = get_or_404(Project, project_id)
    if err:
        return err

    query = Activity.query.filter(Activity.project_id == project_id)
    activity_type = request.args.get("activity_type")
    if activity_type:
        if activity_type not in ACTIVITY_TYPES:
            return api_error(
                E.VALIDATION_INVALID,
                f"activity_type must be one of: {', '.join(sorted(ACTIVITY_TYPES))}",
            )
        query = query.filter(Activity.activity_type == activity_type)
    activities, total = paginate_query(query.order_by(Activity.created_at.desc(), Activity.id.desc()))
    return jsonify({"items": [a.to_dict() for a in activities], "total": total}), 200


# ═════════════════════════════════════════════════════════════════════════════
# LEED
# ═════════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/leed", methods=["GET"])
def get_leed_points(project_id):
    _project, err = get_or_404(Project, project_id)
    if err:
        return err
    return jsonify(leed_points_summary(project_id)), 200


@project_bp.route("/projects/<int:project_id>/leed/sync", methods=["POST"])
def sync_leed_points(project_id):
    """Refresh possible/achieved points of every LEED-linked task."""
    _project, err = get_or_404(Project, project_id)
    if err:
        return err

    synced = sync_task_leed_points(project_id)
    write_activity(
        activity_type="leed_points_synced",
        title="LEED Points Synced",
        description=f"Synced LEED points for {synced} task(s)",
        project_id=project_id,
        metadata={"tasks_synced": synced},
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"tasks_synced": synced, **leed_points_summary(project_id)}), 200


@project_bp.route("/projects/<int:project_id>/leed/tasks", methods=["POST"])
def seed_leed_point_tasks(project_id):
    """Create a pending task per LEED credit not yet tracked.

    Body (optional): ``{"categories": ["EA", "WE"]}``
    """
    project, err = get_or_404(Project, project_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    categories = data.get("categories")
    if categories is not None and not isinstance(categories, list):
        return api_error(E.VALIDATION_INVALID, "categories must be a list of category ids")

    tasks = seed_leed_tasks(
        project,
        phases=_catalog(),
        category_ids=categories,
        user_id=request.headers.get("X-User-Id"),
    )
    err = db_commit_or_error()
    if err:
        return err

    progress = progress_sync.update_project_progress(project_id)
    return jsonify({
        "tasks_created": len(tasks),
        "items": [t.to_dict() for t in tasks],
        "project_progress": progress,
    }), 201
