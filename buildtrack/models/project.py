"""
BuildTrack — construction project progress service
Project domain models.

Models:
    - Project: a construction project moving through lifecycle phases.
    - Task: unit of work tagged with the phase it belongs to.
    - ProjectPhasePlan: planned budget/duration per phase (from templates).
"""

from datetime import datetime, timezone

from buildtrack.core.phase_catalog import PHASE_VALUES, ProjectPhase
from buildtrack.models import db

# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = {"planning", "active", "on_hold", "completed", "cancelled"}

PROJECT_TYPES = {
    "new_construction",
    "renovation_repair",
    "interior_fitout",
    "land_development",
    "sustainable_green",
    "affordable_housing",
    "luxury",
    "mixed_use",
    "co_living_working",
    "redevelopment",
}

TASK_STATUSES = {"pending", "in_progress", "completed", "blocked"}

TASK_PRIORITIES = {"low", "medium", "high"}

PROJECT_PHASES = set(PHASE_VALUES)


def _utcnow():
    return datetime.now(timezone.utc)


class Project(db.Model):
    """Construction project.

    ``current_phase`` and ``progress_percentage`` are owned by the progress
    sync service; ``version`` is an optimistic-lock counter so two requests
    updating the same row cannot silently overwrite each other.
    """

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    project_type = db.Column(
        db.String(40), nullable=False, default="new_construction",
        comment="new_construction | renovation_repair | interior_fitout | …",
    )
    status = db.Column(
        db.String(20), nullable=False, default="planning",
        comment="planning | active | on_hold | completed | cancelled",
    )
    current_phase = db.Column(
        db.String(40), nullable=False, default=ProjectPhase.CONCEPT.value,
    )
    progress_percentage = db.Column(db.Integer, nullable=False, default=0)
    owner_id = db.Column(db.String(64), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    budget = db.Column(db.Numeric(14, 2), nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    expected_completion_date = db.Column(db.Date, nullable=True)
    actual_completion_date = db.Column(db.Date, nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    tasks = db.relationship(
        "Task", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    phase_plans = db.relationship(
        "ProjectPhasePlan", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_projects_progress_range",
        ),
        db.Index("ix_projects_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "project_type": self.project_type,
            "status": self.status,
            "current_phase": self.current_phase,
            "progress_percentage": self.progress_percentage,
            "owner_id": self.owner_id,
            "location": self.location,
            "budget": float(self.budget) if self.budget is not None else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "expected_completion_date": (
                self.expected_completion_date.isoformat() if self.expected_completion_date else None
            ),
            "actual_completion_date": (
                self.actual_completion_date.isoformat() if self.actual_completion_date else None
            ),
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name} [{self.current_phase}]>"


class Task(db.Model):
    """Task within a project phase. Read-only input to progress sync."""

    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    phase = db.Column(db.String(40), nullable=False, default=ProjectPhase.CONCEPT.value)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | in_progress | completed | blocked",
    )
    priority = db.Column(
        db.String(10), nullable=False, default="medium",
        comment="low | medium | high",
    )
    assigned_to = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    ai_generated = db.Column(db.Boolean, nullable=False, default=False)
    progress_percentage = db.Column(db.Integer, nullable=False, default=0)
    estimated_hours = db.Column(db.Float, nullable=True)
    actual_hours = db.Column(db.Float, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    completed_date = db.Column(db.Date, nullable=True)

    # LEED credit tracking: points come from the subcategory catalog
    leed_subcategory_id = db.Column(db.String(20), nullable=True, index=True)
    leed_points_possible = db.Column(db.Integer, nullable=True)
    leed_points_achieved = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        db.Index("ix_tasks_project_phase", "project_id", "phase"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "phase": self.phase,
            "status": self.status,
            "priority": self.priority,
            "assigned_to": self.assigned_to,
            "created_by": self.created_by,
            "ai_generated": bool(self.ai_generated),
            "progress_percentage": self.progress_percentage,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "completed_date": self.completed_date.isoformat() if self.completed_date else None,
            "leed_subcategory_id": self.leed_subcategory_id,
            "leed_points_possible": self.leed_points_possible,
            "leed_points_achieved": self.leed_points_achieved,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title} ({self.phase}/{self.status})>"


class ProjectPhasePlan(db.Model):
    """Planned budget and duration of one phase, seeded from a project template."""

    __tablename__ = "project_phases"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase = db.Column(db.String(40), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="planning")
    budget = db.Column(db.Numeric(14, 2), nullable=True)
    duration_weeks = db.Column(db.Integer, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "phase", name="uq_project_phases_project_phase"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase": self.phase,
            "status": self.status,
            "budget": float(self.budget) if self.budget is not None else None,
            "duration_weeks": self.duration_weeks,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

    def __repr__(self) -> str:
        return f"<ProjectPhasePlan {self.project_id}:{self.phase}>"
