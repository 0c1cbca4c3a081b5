"""
BuildTrack — construction project progress service
Append-only history models.

Models:
    - Activity: project activity feed (task status changes, phase
      advancement, completions, ...).
    - ProgressEntry: one row per progress recomputation, an audit trail of
      the project's percentage over time.

Neither table is ever updated or deleted by the application.
"""

from datetime import datetime, timezone

from buildtrack.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_TYPES = {
    "task_status_change",
    "phase_advancement",
    "task_completed",
    "milestone_reached",
    "project_completed",
    "template_applied",
    "leed_points_synced",
}


class Activity(db.Model):
    """Immutable project activity record."""

    __tablename__ = "activities"
    __table_args__ = (
        db.Index("idx_activities_project_ts", "project_id", "created_at"),
        db.Index("idx_activities_type", "activity_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    task_id = db.Column(
        db.Integer,
        db.ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    user_id = db.Column(db.String(64), nullable=True, comment="Actor; NULL for system events")
    activity_type = db.Column(
        db.String(40), nullable=False,
        comment="task_status_change | phase_advancement | task_completed | …",
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=True, default=dict)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "activity_type": self.activity_type,
            "title": self.title,
            "description": self.description,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Activity {self.id}: {self.activity_type} project={self.project_id}>"


class ProgressEntry(db.Model):
    """Snapshot of a project's overall progress at one point in time."""

    __tablename__ = "progress_entries"
    __table_args__ = (
        db.Index("idx_progress_entries_project_ts", "project_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id = db.Column(
        db.Integer,
        db.ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    phase = db.Column(db.String(40), nullable=True, comment="Project phase at snapshot time")
    entry_type = db.Column(
        db.String(30), nullable=False, default="auto_sync",
        comment="auto_sync | manual",
    )
    progress_percentage = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "task_id": self.task_id,
            "phase": self.phase,
            "entry_type": self.entry_type,
            "progress_percentage": self.progress_percentage,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<ProgressEntry project={self.project_id} {self.progress_percentage}%>"
