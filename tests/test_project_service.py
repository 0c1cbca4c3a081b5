from datetime import date
from decimal import Decimal

import pytest

from buildtrack.core.phase_catalog import DEFAULT_CATALOG
from buildtrack.models import db as _db
from buildtrack.models.project import Project
from buildtrack.services import project_service


def test_create_project_defaults(app):
    project, err = project_service.create_project(data={"name": "  Dockside Warehouse "}, catalog=DEFAULT_CATALOG)

    assert err is None
    assert project.id is not None
    assert project.name == "Dockside Warehouse"
    assert project.project_type == "new_construction"
    assert project.status == "planning"
    assert project.current_phase == "concept"
    assert project.progress_percentage == 0


def test_create_project_requires_name(app):
    project, err = project_service.create_project(data={"name": "  "}, catalog=DEFAULT_CATALOG)
    assert project is None
    assert err == {"error": "name is required", "status": 400}


def test_create_project_rejects_unknown_phase(app):
    project, err = project_service.create_project(
        data={"name": "X", "current_phase": "landscaping"}, catalog=DEFAULT_CATALOG,
    )
    assert project is None
    assert err["status"] == 400
    assert "current_phase" in err["error"]


def test_update_project_rejects_progress(project):
    updated, err = project_service.update_project(
        project=project, data={"progress_percentage": 80}, catalog=DEFAULT_CATALOG,
    )
    assert updated is None
    assert "calculated" in err["error"]


def test_update_project_fields(project):
    updated, err = project_service.update_project(
        project=project,
        data={"name": "Renamed", "current_phase": "design", "start_date": "2025-03-01"},
        catalog=DEFAULT_CATALOG,
    )
    assert err is None
    assert updated.name == "Renamed"
    assert updated.current_phase == "design"
    assert updated.start_date == date(2025, 3, 1)


def test_list_projects_filters(make_project):
    make_project(name="A", status="active")
    make_project(name="B", status="on_hold", current_phase="design")

    assert [p.name for p in project_service.list_projects(status="on_hold")] == ["B"]
    assert [p.name for p in project_service.list_projects(phase="concept")] == ["A"]


def test_create_task_defaults_to_project_phase(make_project):
    project = make_project(current_phase="execution")

    task, err = project_service.create_task(project=project, data={"title": "Pour slab"}, catalog=DEFAULT_CATALOG)

    assert err is None
    assert task.phase == "execution"
    assert task.priority == "medium"
    assert task.status == "pending"


def test_create_task_completed_sets_side_effects(project):
    task, err = project_service.create_task(
        project=project, data={"title": "Survey", "status": "completed"}, catalog=DEFAULT_CATALOG,
    )
    assert err is None
    assert task.completed_date == date.today()
    assert task.progress_percentage == 100


def test_create_task_validates_priority(project):
    task, err = project_service.create_task(
        project=project, data={"title": "Survey", "priority": "urgent"}, catalog=DEFAULT_CATALOG,
    )
    assert task is None
    assert "priority" in err["error"]


def test_update_task_refuses_status(project, make_task):
    task = make_task(project)
    updated, err = project_service.update_task(task=task, data={"status": "completed"}, catalog=DEFAULT_CATALOG)
    assert updated is None
    assert "PATCH" in err["error"]


def test_set_task_status_side_effects(project, make_task):
    task = make_task(project)

    old, err = project_service.set_task_status(task=task, new_status="in_progress")
    assert (old, err) == ("pending", None)
    assert task.start_date == date.today()

    old, err = project_service.set_task_status(task=task, new_status="completed")
    assert old == "in_progress"
    assert task.completed_date == date.today()
    assert task.progress_percentage == 100

    old, err = project_service.set_task_status(task=task, new_status="pending")
    assert old == "completed"
    assert task.completed_date is None
    assert task.progress_percentage == 100


def test_set_task_status_rejects_unknown(project, make_task):
    task = make_task(project)
    old, err = project_service.set_task_status(task=task, new_status="done")
    assert old is None
    assert err["status"] == 400
    _db.session.rollback()


def test_create_project_parses_budget(app):
    project, err = project_service.create_project(
        data={"name": "Depot", "budget": "250000.50"}, catalog=DEFAULT_CATALOG,
    )
    assert err is None
    assert project.budget == Decimal("250000.50")


@pytest.mark.parametrize("budget", ["abc", "-5", "NaN", [1]])
def test_create_project_rejects_bad_budget(app, budget):
    project, err = project_service.create_project(
        data={"name": "Depot", "budget": budget}, catalog=DEFAULT_CATALOG,
    )
    assert project is None
    assert err == {"error": "budget must be a non-negative number", "status": 400}
    assert Project.query.count() == 0


def test_update_project_rejects_bad_budget(project):
    updated, err = project_service.update_project(
        project=project, data={"budget": "lots"}, catalog=DEFAULT_CATALOG,
    )
    assert updated is None
    assert err["status"] == 400
    assert "budget" in err["error"]


def test_update_project_clears_budget(make_project):
    project = make_project(budget=Decimal("1000"))
    updated, err = project_service.update_project(project=project, data={"budget": None}, catalog=DEFAULT_CATALOG)
    assert err is None
    assert updated.budget is None


def test_create_task_rejects_bad_hours(project):
    task, err = project_service.create_task(
        project=project, data={"title": "Survey", "estimated_hours": "two days"}, catalog=DEFAULT_CATALOG,
    )
    assert task is None
    assert err == {"error": "estimated_hours must be a non-negative number", "status": 400}


def test_update_task_hours(project, make_task):
    task = make_task(project)

    updated, err = project_service.update_task(
        task=task, data={"estimated_hours": "12.5", "actual_hours": 3}, catalog=DEFAULT_CATALOG,
    )
    assert err is None
    assert (updated.estimated_hours, updated.actual_hours) == (12.5, 3.0)

    updated, err = project_service.update_task(task=task, data={"actual_hours": "-1"}, catalog=DEFAULT_CATALOG)
    assert updated is None
    assert "actual_hours" in err["error"]
