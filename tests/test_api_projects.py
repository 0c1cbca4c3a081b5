"""
HTTP API tests: projects, tasks, status changes and progress endpoints.
"""

import pytest

from buildtrack.models import db
from buildtrack.models.project import Project
from buildtrack.services.progress_events import subscribe

BASE = "/api/v1"


def _create_project(client, **overrides):
    payload = {"name": "Harbour View Tower", "status": "active"}
    payload.update(overrides)
    res = client.post(f"{BASE}/projects", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _create_task(client, project_id, **overrides):
    payload = {"title": "Site survey", "priority": "high"}
    payload.update(overrides)
    res = client.post(f"{BASE}/projects/{project_id}/tasks", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()["task"]


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════


class TestProjects:
    def test_create_and_get(self, client):
        project = _create_project(client)
        assert project["current_phase"] == "concept"
        assert project["progress_percentage"] == 0

        res = client.get(f"{BASE}/projects/{project['id']}")
        assert res.status_code == 200
        assert res.get_json()["name"] == "Harbour View Tower"

    def test_create_requires_name(self, client):
        res = client.post(f"{BASE}/projects", json={})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_create_with_template(self, client):
        project = _create_project(client, project_type="interior_fitout", apply_template=True)
        assert project["template"] == {"phases_created": 5, "tasks_created": 6}

        res = client.get(f"{BASE}/projects/{project['id']}/tasks")
        assert res.get_json()["total"] == 6

    def test_create_luxury_with_template(self, client):
        project = _create_project(client, name="Penthouse", project_type="luxury", apply_template=True)
        assert project["template"] == {"phases_created": 5, "tasks_created": 7}

    def test_create_with_unknown_type_stores_nothing(self, client):
        res = client.post(f"{BASE}/projects", json={"name": "Depot", "project_type": "warehouse",
                                                    "apply_template": True})
        assert res.status_code == 400
        assert Project.query.count() == 0

    def test_create_with_non_numeric_budget(self, client):
        res = client.post(f"{BASE}/projects", json={"name": "B", "budget": "abc"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert Project.query.count() == 0

    def test_update_with_non_numeric_budget_keeps_stored_value(self, client):
        project = _create_project(client, budget=1500)
        res = client.put(f"{BASE}/projects/{project['id']}", json={"name": "Renamed", "budget": "abc"})
        assert res.status_code == 400
        stored = db.session.get(Project, project["id"])
        assert (stored.name, stored.budget) == ("Harbour View Tower", 1500)

    def test_list_paginates(self, client):
        for i in range(3):
            _create_project(client, name=f"P{i}")
        res = client.get(f"{BASE}/projects?limit=2")
        body = res.get_json()
        assert body["total"] == 3
        assert len(body["items"]) == 2

    def test_update_rejects_progress(self, client):
        project = _create_project(client)
        res = client.put(f"{BASE}/projects/{project['id']}", json={"progress_percentage": 90})
        assert res.status_code == 400

    def test_manual_phase_change_recomputes_progress(self, client):
        project = _create_project(client)
        res = client.put(f"{BASE}/projects/{project['id']}", json={"current_phase": "execution"})
        assert res.status_code == 200
        assert db.session.get(Project, project["id"]).progress_percentage == 45

    def test_delete(self, client):
        project = _create_project(client)
        _create_task(client, project["id"])
        res = client.delete(f"{BASE}/projects/{project['id']}")
        assert res.status_code == 200
        assert client.get(f"{BASE}/projects/{project['id']}").status_code == 404

    def test_missing_project_404(self, client):
        res = client.get(f"{BASE}/projects/999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_apply_template_twice_conflicts(self, client):
        project = _create_project(client)
        first = client.post(f"{BASE}/projects/{project['id']}/apply-template", json={})
        assert first.status_code == 201
        assert first.get_json()["tasks_created"] == 12

        second = client.post(f"{BASE}/projects/{project['id']}/apply-template", json={})
        assert second.status_code == 409


# ═════════════════════════════════════════════════════════════════════════════
# TASKS
# ═════════════════════════════════════════════════════════════════════════════


class TestTasks:
    def test_create_task_returns_progress(self, client):
        project = _create_project(client)
        body = client.post(
            f"{BASE}/projects/{project['id']}/tasks",
            json={"title": "Feasibility", "status": "in_progress", "priority": "medium"},
        ).get_json()
        assert body["task"]["phase"] == "concept"
        assert body["project_progress"] == 5

    def test_update_task_rejects_status(self, client):
        project = _create_project(client)
        task = _create_task(client, project["id"])
        res = client.put(f"{BASE}/tasks/{task['id']}", json={"status": "completed"})
        assert res.status_code == 400

    def test_create_task_with_non_numeric_hours(self, client):
        project = _create_project(client)
        res = client.post(f"{BASE}/projects/{project['id']}/tasks",
                          json={"title": "Survey", "estimated_hours": "abc"})
        assert res.status_code == 400
        assert client.get(f"{BASE}/projects/{project['id']}/tasks").get_json()["total"] == 0

    def test_delete_task_recomputes(self, client):
        project = _create_project(client)
        _create_task(client, project["id"], status="completed")
        pending = _create_task(client, project["id"], priority="high")

        res = client.delete(f"{BASE}/tasks/{pending['id']}")

        assert res.status_code == 200
        assert res.get_json()["project_progress"] == 10


class TestTaskStatus:
    def test_completing_last_concept_task_advances(self, client):
        project = _create_project(client)
        task = _create_task(client, project["id"])
        events = []
        subscribe(events.append)

        res = client.patch(f"{BASE}/tasks/{task['id']}/status", json={"status": "completed"})

        assert res.status_code == 200
        body = res.get_json()
        assert body["task"]["status"] == "completed"
        assert body["task"]["completed_date"] is not None
        assert body["project_progress"] == 10
        assert db.session.get(Project, project["id"]).current_phase == "design"
        assert events[-1].progress == 10

        types = {
            a["activity_type"]
            for a in client.get(f"{BASE}/projects/{project['id']}/activities").get_json()["items"]
        }
        assert {"task_completed", "phase_advancement", "milestone_reached", "task_status_change"} <= types

        res = client.get(f"{BASE}/projects/{project['id']}/activities?activity_type=milestone_reached")
        assert res.get_json()["total"] == 1

    def test_activity_filter_rejects_unknown_type(self, client):
        project = _create_project(client)
        res = client.get(f"{BASE}/projects/{project['id']}/activities?activity_type=comment_added")
        assert res.status_code == 400

    def test_status_required(self, client):
        project = _create_project(client)
        task = _create_task(client, project["id"])
        res = client.patch(f"{BASE}/tasks/{task['id']}/status", json={})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_invalid_status(self, client):
        project = _create_project(client)
        task = _create_task(client, project["id"])
        res = client.patch(f"{BASE}/tasks/{task['id']}/status", json={"status": "done"})
        assert res.status_code == 400

    def test_non_json_body_rejected(self, client):
        project = _create_project(client)
        task = _create_task(client, project["id"])
        res = client.patch(f"{BASE}/tasks/{task['id']}/status", data="status=completed",
                           content_type="text/plain")
        assert res.status_code == 415


# ═════════════════════════════════════════════════════════════════════════════
# PROGRESS
# ═════════════════════════════════════════════════════════════════════════════


class TestProgressEndpoints:
    def test_phase_info(self, client):
        project = _create_project(client)
        _create_task(client, project["id"], status="completed", priority="high")
        _create_task(client, project["id"], priority="low")

        body = client.get(f"{BASE}/projects/{project['id']}/progress").get_json()

        assert body["current_phase"] == "concept"
        assert body["current_phase_progress"] == 75
        assert body["overall_progress"] == 8
        assert body["phase_weights"]["handover"] == 10

    def test_all_phases(self, client):
        project = _create_project(client)
        _create_task(client, project["id"], phase="design", status="completed")
        body = client.get(f"{BASE}/projects/{project['id']}/progress/phases").get_json()
        assert body["phases"]["design"] == 100
        assert "operations_maintenance" not in body["phases"]

    @pytest.mark.parametrize("status, expected", [("active", "completed"), ("on_hold", "on_hold")])
    def test_sync_completion(self, client, status, expected):
        project = _create_project(client, status=status, current_phase="handover")
        for phase in ("concept", "design", "pre_construction", "execution", "handover"):
            _create_task(client, project["id"], phase=phase, status="completed")

        body = client.post(f"{BASE}/projects/{project['id']}/progress/sync", json={}).get_json()

        assert body["project_progress"] == 100
        assert body["project"]["status"] == expected
        assert body["project"]["current_phase"] == "handover"

    def test_history(self, client):
        project = _create_project(client)
        _create_task(client, project["id"], status="completed")
        client.post(f"{BASE}/projects/{project['id']}/progress/sync", json={})

        items = client.get(f"{BASE}/projects/{project['id']}/progress/history").get_json()["items"]

        assert len(items) >= 2
        assert items[0]["progress_percentage"] == 10


class TestTemplatesAndHealth:
    def test_list_templates(self, client):
        body = client.get(f"{BASE}/templates").get_json()
        assert body["total"] == 10

    def test_get_template(self, client):
        assert client.get(f"{BASE}/templates/land_development").status_code == 200
        assert client.get(f"{BASE}/templates/luxury").status_code == 200
        assert client.get(f"{BASE}/templates/warehouse").status_code == 404

    def test_health(self, client):
        assert client.get(f"{BASE}/health/ready").get_json() == {"status": "ok"}
        body = client.get(f"{BASE}/health/live").get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["phase_catalog"]["phases"] == 7
