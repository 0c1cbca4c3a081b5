"""
Phase-weighted project progress and automatic phase advancement.

Progress model:
    - A phase's progress comes from the tasks tagged with that phase,
      weighted by priority (high=3, medium=2, low=1, other=1). Completed
      tasks earn their full weight, in-progress tasks half, the rest nothing.
      A phase without tasks is 0 %, never 100 %.
    - Project progress credits every phase before ``current_phase`` with its
      full catalog weight and the current phase with
      ``weight * phase_progress / 100``; capped at 100.
    - When the current phase reaches 100 % the project moves forward exactly
      one phase, but only into a phase whose weight is above zero.

Every public operation catches store failures at its own boundary: the
``ProgressSyncService`` methods return a ``ProgressResult`` (or
``PhaseAdvancement``) carrying the failure reason, and the module-level
functions collapse failures to 0 / ``{"advanced": False}`` for views.

Usage:
    from buildtrack.services import progress_sync

    progress_sync.calculate_project_progress(project_id)        # -> int
    progress_sync.handle_task_status_change(pid, tid, "pending", "completed")
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from fractions import Fraction
from typing import Iterable

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from buildtrack.core.exceptions import NotFoundError, StoreError
from buildtrack.core.phase_catalog import DEFAULT_CATALOG, PhaseCatalog
from buildtrack.models import db
from buildtrack.models.activity import ProgressEntry
from buildtrack.models.project import Project, Task
from buildtrack.services.activity_logger import log_milestone_reached, write_activity
from buildtrack.services.progress_events import (
    ProgressEvent,
    ProgressNotifier,
    progress_notifier,
)

logger = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {"high": 3, "medium": 2, "low": 1}
DEFAULT_PRIORITY_WEIGHT = 1


# ═════════════════════════════════════════════════════════════════════════════
# Results
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ProgressResult:
    """Percentage on success, failure reason otherwise."""

    value: int | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: int) -> "ProgressResult":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "ProgressResult":
        return cls(error=reason)

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: int = 0) -> int:
        return self.value if self.ok and self.value is not None else default


@dataclass(frozen=True)
class PhaseAdvancement:
    """Outcome of one advancement check."""

    advanced: bool
    from_phase: str | None = None
    new_phase: str | None = None
    phase_progress: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result = {"advanced": self.advanced}
        if self.advanced:
            result["new_phase"] = self.new_phase
        return result


# ═════════════════════════════════════════════════════════════════════════════
# Pure calculations
# ═════════════════════════════════════════════════════════════════════════════


def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero (for value >= 0)."""
    return int(math.floor(value + Fraction(1, 2)))


def priority_weight(priority: str | None) -> int:
    return PRIORITY_WEIGHTS.get(priority, DEFAULT_PRIORITY_WEIGHT)


def compute_phase_progress(tasks: Iterable[tuple[str | None, str | None]]) -> int:
    """Priority-weighted completion of ``(status, priority)`` pairs, 0..100."""
    # Counted in half-weights so in-progress credit stays an exact integer
    total_halves = 0
    completed_halves = 0
    for status, priority in tasks:
        weight = priority_weight(priority)
        total_halves += 2 * weight
        if status == "completed":
            completed_halves += 2 * weight
        elif status == "in_progress":
            completed_halves += weight
    if total_halves == 0:
        return 0
    return round_half_up(Fraction(100 * completed_halves, total_halves))


def compute_project_progress(catalog: PhaseCatalog, current_phase: str, phase_progress: int) -> int:
    """Overall completion given the current phase and its own progress."""
    total = Fraction(catalog.weight_before(current_phase))
    total += Fraction(catalog.phase_weight(current_phase) * phase_progress, 100)
    return min(100, round_half_up(total))


# ═════════════════════════════════════════════════════════════════════════════
# Service
# ═════════════════════════════════════════════════════════════════════════════


class ProgressSyncService:
    """Progress calculation, phase advancement and progress persistence.

    Args:
        catalog: Phase order and weights. Defaults to the shipped catalog.
        notifier: Receives a ``ProgressEvent`` after every persisted update.
    """

    def __init__(self, catalog: PhaseCatalog | None = None, notifier: ProgressNotifier | None = None):
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self.notifier = notifier if notifier is not None else progress_notifier

    # ── Store access ─────────────────────────────────────────────────────

    def _get_project(self, project_id: int) -> Project:
        project = db.session.get(Project, project_id)
        if project is None:
            raise NotFoundError(resource="Project", resource_id=project_id)
        return project

    def _current_phase(self, project: Project) -> str:
        return project.current_phase or self.catalog.first_phase()

    def _phase_tasks(self, project_id: int, phase: str) -> list[tuple[str, str]]:
        return (
            db.session.query(Task.status, Task.priority)
            .filter(Task.project_id == project_id, Task.phase == phase)
            .all()
        )

    def _commit(self, operation: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(operation, exc) from exc

    def _store_failure(self, operation: str, project_id: int, exc: Exception) -> str:
        """Roll back, log and describe a failed store operation."""
        if isinstance(exc, SQLAlchemyError):
            db.session.rollback()
        if isinstance(exc, NotFoundError):
            logger.warning("Cannot %s: %s", operation, exc, extra={"project_id": project_id})
        else:
            logger.exception("Error during %s for project %s", operation, project_id,
                             extra={"project_id": project_id})
        return f"{operation} failed: {exc}"

    # ── Calculations ─────────────────────────────────────────────────────

    def phase_progress(self, project_id: int, phase: str) -> ProgressResult:
        """Completion of ``phase`` for ``project_id`` from its tasks."""
        try:
            rows = self._phase_tasks(project_id, phase)
        except SQLAlchemyError as exc:
            return ProgressResult.failure(
                self._store_failure("calculate phase progress", project_id, exc)
            )
        return ProgressResult.success(compute_phase_progress(rows))

    def project_progress(self, project_id: int) -> ProgressResult:
        """Overall completion: past phases in full, current phase partially."""
        try:
            project = self._get_project(project_id)
            current_phase = self._current_phase(project)
        except (NotFoundError, SQLAlchemyError) as exc:
            return ProgressResult.failure(
                self._store_failure("calculate project progress", project_id, exc)
            )

        if not self.catalog.contains(current_phase):
            logger.warning("Project %s has uncatalogued phase '%s'", project_id, current_phase,
                           extra={"project_id": project_id})
            return ProgressResult.failure(f"unknown phase '{current_phase}'")

        phase_result = self.phase_progress(project_id, current_phase)
        if not phase_result.ok:
            return phase_result
        return ProgressResult.success(
            compute_project_progress(self.catalog, current_phase, phase_result.value)
        )

    def all_phase_progress(self, project_id: int) -> dict[str, int]:
        """Progress of every phase that counts toward completion."""
        buckets: dict[str, list[tuple[str, str]]] = defaultdict(list)
        try:
            rows = (
                db.session.query(Task.phase, Task.status, Task.priority)
                .filter(Task.project_id == project_id)
                .all()
            )
        except SQLAlchemyError as exc:
            self._store_failure("calculate all phase progress", project_id, exc)
            rows = []
        for phase, status, priority in rows:
            buckets[phase].append((status, priority))
        return {
            phase: compute_phase_progress(buckets.get(phase, ()))
            for phase in self.catalog.active_phases()
        }

    # ── State machine ────────────────────────────────────────────────────

    def check_and_advance_phase(self, project_id: int) -> PhaseAdvancement:
        """Move the project one phase forward if its current phase is done.

        Never advances into a zero-weight phase, never moves backwards and
        never skips a phase.
        """
        try:
            project = self._get_project(project_id)
        except (NotFoundError, SQLAlchemyError) as exc:
            return PhaseAdvancement(
                advanced=False, error=self._store_failure("check phase advancement", project_id, exc),
            )

        current_phase = self._current_phase(project)
        phase_result = self.phase_progress(project_id, current_phase)
        if not phase_result.ok:
            return PhaseAdvancement(advanced=False, from_phase=current_phase, error=phase_result.error)

        phase_progress = phase_result.value
        if phase_progress < 100:
            return PhaseAdvancement(advanced=False, from_phase=current_phase, phase_progress=phase_progress)

        next_phase = self.catalog.next_phase(current_phase)
        if next_phase is None or self.catalog.phase_weight(next_phase) <= 0:
            return PhaseAdvancement(advanced=False, from_phase=current_phase, phase_progress=phase_progress)

        try:
            project.current_phase = next_phase
            write_activity(
                activity_type="phase_advancement",
                title="Phase Advanced",
                description=f"Project advanced from {current_phase} to {next_phase} phase",
                project_id=project_id,
                metadata={
                    "from_phase": current_phase,
                    "to_phase": next_phase,
                    "phase_progress": phase_progress,
                },
            )
            log_milestone_reached(
                f"{current_phase.replace('_', ' ').title()} phase complete",
                project_id,
                metadata={"phase": current_phase},
            )
            self._commit("advance phase")
        except (SQLAlchemyError, StoreError) as exc:
            return PhaseAdvancement(
                advanced=False,
                from_phase=current_phase,
                phase_progress=phase_progress,
                error=self._store_failure("advance phase", project_id, exc),
            )

        logger.info("Project %s advanced from %s to %s", project_id, current_phase, next_phase,
                    extra={"project_id": project_id, "event_type": "phase_advancement"})
        return PhaseAdvancement(
            advanced=True, from_phase=current_phase, new_phase=next_phase, phase_progress=phase_progress,
        )

    # ── Persistence ──────────────────────────────────────────────────────

    def update_project_progress(
        self,
        project_id: int,
        progress: int | None = None,
        *,
        task_id: int | None = None,
    ) -> ProgressResult:
        """Store ``progress`` (computed when omitted), snapshot it, notify."""
        if progress is None:
            computed = self.project_progress(project_id)
            if not computed.ok:
                return computed
            progress = computed.value
        progress = max(0, min(100, int(progress)))

        try:
            project = self._get_project(project_id)
            project.progress_percentage = progress
            db.session.add(ProgressEntry(
                project_id=project_id,
                task_id=task_id,
                phase=project.current_phase,
                entry_type="auto_sync",
                progress_percentage=progress,
                created_at=datetime.now(timezone.utc),
            ))
            self._commit("update project progress")
        except (NotFoundError, SQLAlchemyError, StoreError) as exc:
            return ProgressResult.failure(
                self._store_failure("update project progress", project_id, exc)
            )

        self.notifier.publish(ProgressEvent(project_id=project_id, progress=progress))
        return ProgressResult.success(progress)

    # ── Orchestration ────────────────────────────────────────────────────

    def handle_task_status_change(
        self,
        project_id: int,
        task_id: int,
        old_status: str,
        new_status: str,
    ) -> ProgressResult:
        """Advance → recompute → persist → log, each step non-fatal."""
        advancement = self.check_and_advance_phase(project_id)

        progress = self.project_progress(project_id)
        if progress.ok:
            persisted = self.update_project_progress(project_id, progress.value, task_id=task_id)
            if not persisted.ok:
                logger.warning("Progress for project %s not persisted: %s", project_id, persisted.error,
                               extra={"project_id": project_id})
        else:
            logger.warning("Progress for project %s not recomputed: %s", project_id, progress.error,
                           extra={"project_id": project_id})

        description = f"Task status changed from {old_status} to {new_status}"
        if advancement.advanced:
            description += f" - Advanced to {advancement.new_phase} phase"
        try:
            write_activity(
                activity_type="task_status_change",
                title="Task Status Changed",
                description=description,
                project_id=project_id,
                task_id=task_id,
                metadata={
                    "task_id": task_id,
                    "old_status": old_status,
                    "new_status": new_status,
                    "new_progress": progress.value,
                    "phase_advanced": advancement.advanced,
                    "new_phase": advancement.new_phase,
                },
            )
            self._commit("log task status change")
        except (SQLAlchemyError, StoreError) as exc:
            self._store_failure("log task status change", project_id, exc)

        return progress

    def sync_all_project_data(self, project_id: int) -> ProgressResult:
        """Advance, recompute and persist; complete active projects at 100 %."""
        self.check_and_advance_phase(project_id)
        result = self.update_project_progress(project_id)
        if not result.ok or result.value != 100:
            return result

        try:
            project = self._get_project(project_id)
            if project.status == "active":
                project.status = "completed"
                project.current_phase = self.catalog.final_active_phase()
                if project.actual_completion_date is None:
                    project.actual_completion_date = date.today()
                write_activity(
                    activity_type="project_completed",
                    title="Project Completed",
                    description="Project reached 100% and was marked completed",
                    project_id=project_id,
                    metadata={"final_phase": project.current_phase},
                )
                self._commit("complete project")
                logger.info("Project %s marked completed", project_id,
                            extra={"project_id": project_id, "event_type": "project_completed"})
        except (NotFoundError, SQLAlchemyError, StoreError) as exc:
            self._store_failure("complete project", project_id, exc)
        return result

    def phase_info(self, project_id: int) -> dict:
        """Current phase, its progress, overall progress and the catalog."""
        current_phase = self.catalog.first_phase()
        try:
            current_phase = self._current_phase(self._get_project(project_id))
        except (NotFoundError, SQLAlchemyError) as exc:
            self._store_failure("get phase info", project_id, exc)
            return {
                "current_phase": current_phase,
                "current_phase_progress": 0,
                "overall_progress": 0,
                **self.catalog.to_dict(),
            }
        return {
            "current_phase": current_phase,
            "current_phase_progress": self.phase_progress(project_id, current_phase).value_or(0),
            "overall_progress": self.project_progress(project_id).value_or(0),
            **self.catalog.to_dict(),
        }


# ═════════════════════════════════════════════════════════════════════════════
# App wiring & view-level adapters
# ═════════════════════════════════════════════════════════════════════════════

_fallback_service = ProgressSyncService()


def init_progress_sync(app) -> ProgressSyncService:
    """Build the app's service from ``PHASE_WEIGHTS`` config; fails fast on a bad catalog."""
    weights = app.config.get("PHASE_WEIGHTS")
    if weights:
        catalog = PhaseCatalog.from_weights(weights, strict=app.config.get("PHASE_WEIGHTS_STRICT", True))
    else:
        catalog = DEFAULT_CATALOG
    service = ProgressSyncService(catalog=catalog, notifier=progress_notifier)
    app.extensions["progress_sync"] = service
    return service


def get_progress_service() -> ProgressSyncService:
    if has_app_context():
        service = current_app.extensions.get("progress_sync")
        if service is not None:
            return service
    return _fallback_service


def calculate_phase_progress(project_id: int, phase: str) -> int:
    return get_progress_service().phase_progress(project_id, phase).value_or(0)


def calculate_project_progress(project_id: int) -> int:
    return get_progress_service().project_progress(project_id).value_or(0)


def calculate_all_phase_progress(project_id: int) -> dict[str, int]:
    return get_progress_service().all_phase_progress(project_id)


def check_and_advance_phase(project_id: int) -> dict:
    return get_progress_service().check_and_advance_phase(project_id).to_dict()


def update_project_progress(project_id: int, progress: int | None = None) -> int:
    return get_progress_service().update_project_progress(project_id, progress).value_or(0)


def handle_task_status_change(project_id: int, task_id: int, old_status: str, new_status: str) -> int:
    return get_progress_service().handle_task_status_change(
        project_id, task_id, old_status, new_status,
    ).value_or(0)


def sync_all_project_data(project_id: int) -> int:
    return get_progress_service().sync_all_project_data(project_id).value_or(0)


def get_phase_info(project_id: int) -> dict:
    return get_progress_service().phase_info(project_id)
